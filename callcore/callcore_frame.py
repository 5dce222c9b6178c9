"""
Call frames: parameter binding, result slots and the defer stack.
"""
import collections.abc
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from callcore.callcore_datatypes import (
    Environment, FunctionHandle, SliceValue, Spread, Return,
    ArityError, FrameStateError, ReturnError,
    copy_value, zero, check_value,
)
from callcore.callcore_signature import FunctionDescriptor, ReturnSlot


class CallState(Enum):
    BINDING = "binding"
    EXECUTING = "executing"
    RETURNING = "returning"
    DRAINING = "draining"
    FINALIZED = "finalized"


# Executing may go straight to Draining when the body fails.
_TRANSITIONS: Dict[CallState, Tuple[CallState, ...]] = {
    CallState.BINDING: (CallState.EXECUTING,),
    CallState.EXECUTING: (CallState.RETURNING, CallState.DRAINING),
    CallState.RETURNING: (CallState.DRAINING,),
    CallState.DRAINING: (CallState.FINALIZED,),
    CallState.FINALIZED: (),
}


# =================================================================
# Parameter Binding
# =================================================================

def bind_parameters(descriptor: FunctionDescriptor, args: Sequence[Any],
                    parent: Optional[Environment] = None) -> Environment:
    """Binds call arguments into a fresh Environment.

    Fixed parameters receive copies of their arguments. A trailing variadic
    parameter either aliases a Spread argument's slice or collects the
    remaining arguments into a new slice.
    """
    args = list(args)
    fixed = descriptor.fixed_params
    variadic = descriptor.variadic_param
    name = descriptor.name

    spread_at = [i for i, a in enumerate(args) if isinstance(a, Spread)]
    if spread_at:
        if variadic is None:
            raise ArityError(f"cannot use spread argument in call to non-variadic {name}")
        if spread_at != [len(args) - 1] or len(args) != len(fixed) + 1:
            raise ArityError(
                f"spread argument must be the only argument in the variadic position of {name}",
                detail=f"have {len(args)} arguments, want {len(fixed)} followed by a spread",
            )

    if len(args) < len(fixed):
        raise ArityError(
            f"not enough arguments in call to {name}",
            detail=f"have {len(args)}, want {'at least ' if variadic else ''}{len(fixed)}",
        )
    if variadic is None and len(args) > len(fixed):
        raise ArityError(
            f"too many arguments in call to {name}",
            detail=f"have {len(args)}, want {len(fixed)}",
        )

    env = Environment(parent=parent)
    for param, arg in zip(fixed, args):
        check_value(arg, param.kind, f"argument {param.name!r} to {name}")
        env[param.name] = copy_value(arg)
        env.kinds[param.name] = param.kind

    if variadic is not None:
        rest = args[len(fixed):]
        if spread_at:
            storage = rest[0].slice
            check_value(storage, variadic.binding_kind, f"spread argument {variadic.name!r} to {name}")
        else:
            for v in rest:
                check_value(v, variadic.kind, f"variadic argument {variadic.name!r} to {name}")
            storage = SliceValue([copy_value(v) for v in rest], variadic.kind)
        env[variadic.name] = storage
        env.kinds[variadic.name] = variadic.binding_kind
    return env


# =================================================================
# Result Slots
# =================================================================

class ReturnSlots(collections.abc.Mapping):
    """Result storage for one frame.

    Named slots are readable and writable by name from the body and its
    deferred computations; anonymous slots are only filled by an explicit
    return. Once sealed, no slot may be written.
    """
    def __init__(self, slots: Sequence[ReturnSlot], owner: str = "<call>"):
        self.slots: List[ReturnSlot] = list(slots)
        self.owner = owner
        self.sealed = False
        self._values: List[Any] = [zero(s.kind) for s in self.slots]
        self._index: Dict[str, int] = {s.name: i for i, s in enumerate(self.slots) if s.name}

    def __getitem__(self, name: str) -> Any:
        if name not in self._index:
            raise KeyError(f"'{name}'")
        return self._values[self._index[name]]

    def __setitem__(self, name: str, value: Any):
        if self.sealed:
            raise FrameStateError(f"result {name!r} of {self.owner} written after the call finalized")
        if name not in self._index:
            raise KeyError(f"'{name}'")
        i = self._index[name]
        check_value(value, self.slots[i].kind, f"assignment to result {name!r} of {self.owner}")
        self._values[i] = copy_value(value)

    def __iter__(self):
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def fill(self, values: Sequence[Any]):
        """Overwrites every slot with the operands of an explicit return."""
        if self.sealed:
            raise FrameStateError(f"results of {self.owner} written after the call finalized")
        if len(values) != len(self.slots):
            raise ReturnError(
                f"wrong number of return values from {self.owner}",
                detail=f"have {len(values)}, want {len(self.slots)}",
            )
        for slot, v in zip(self.slots, values):
            check_value(v, slot.kind, f"return value of {self.owner}")
        self._values = [copy_value(v) for v in values]

    def snapshot(self) -> Tuple[Any, ...]:
        return tuple(self._values)

    def seal(self):
        self.sealed = True

    def __repr__(self) -> str:
        pairs = ", ".join(f"{s.name or i}={v!r}" for i, (s, v) in enumerate(zip(self.slots, self._values)))
        return f"<ReturnSlots {pairs}{' sealed' if self.sealed else ''}>"


# =================================================================
# Defer Stack
# =================================================================

class DeferredCall:
    """A deferred computation. Arguments are evaluated and copied at registration."""
    def __init__(self, func: Any, args: Sequence[Any] = (), label: Optional[str] = None):
        self.func = func
        self.args: Tuple[Any, ...] = tuple(copy_value(a) for a in args)
        self.label = label or getattr(func, "name", None) or getattr(func, "__name__", None) or "<deferred>"

    def __repr__(self) -> str:
        return f"<DeferredCall {self.label} args={self.args!r}>"


class DeferStack:
    """LIFO stack of deferred computations owned by one frame."""
    def __init__(self):
        self.entries: List[DeferredCall] = []

    def push(self, entry: DeferredCall):
        self.entries.append(entry)

    def __len__(self) -> int:
        return len(self.entries)

    def drain(self, run: Callable[[DeferredCall], Any]) -> List[Exception]:
        """Pops and runs every entry, newest first.

        A failing entry does not stop the unwind; the failures are returned in
        the order they happened.
        """
        failures: List[Exception] = []
        while self.entries:
            entry = self.entries.pop()
            try:
                run(entry)
            except Exception as e:
                failures.append(e)
        return failures


# =================================================================
# Call Frame
# =================================================================

class Frame:
    """One activation of a function.

    Bodies read and write parameters and locals with `frame[name]`, named
    results through `frame.results`, register deferred computations with
    `frame.defer(...)`, and call other functions with `frame.call(...)`.
    """
    def __init__(self, handle: FunctionHandle, evaluator: Any, scope: Environment):
        self.handle = handle
        self.descriptor: FunctionDescriptor = handle.descriptor
        self.evaluator = evaluator
        self.scope = scope
        self.results = ReturnSlots(self.descriptor.returns, owner=self.descriptor.name)
        self.defers = DeferStack()
        self.state = CallState.BINDING
        # index of this frame's entry on the evaluator's call_stack
        self.stack_depth = 0

    @property
    def name(self) -> str:
        return self.descriptor.name

    def transition(self, new_state: CallState):
        if new_state not in _TRANSITIONS[self.state]:
            raise FrameStateError(
                f"illegal call state transition {self.state.value} -> {new_state.value} in {self.name}"
            )
        self.state = new_state

    # --- Variables ---
    def __getitem__(self, name: str) -> Any:
        return self.scope[name]

    def __setitem__(self, name: str, value: Any):
        """Assigns to the nearest binding of name (parameter, local or captured variable)."""
        owner = self.scope.find_owner(name)
        if owner is not None and name in owner.kinds:
            check_value(value, owner.kinds[name], f"assignment to parameter {name!r}")
        self.scope.assign(name, copy_value(value))

    def __contains__(self, name: str) -> bool:
        return name in self.scope

    def get(self, name: str, default: Any = None) -> Any:
        return self.scope.get(name, default)

    def declare(self, name: str, value: Any) -> Any:
        """Binds a new local in this frame, shadowing any outer binding."""
        value = copy_value(value)
        self.scope[name] = value
        # a local shadowing a parameter is untyped
        self.scope.kinds.pop(name, None)
        return value

    # --- Control ---
    def defer(self, func: Any, *args: Any, label: Optional[str] = None) -> DeferredCall:
        if self.state is not CallState.EXECUTING:
            raise FrameStateError(f"defer registered on {self.name} while {self.state.value}")
        if not (isinstance(func, FunctionHandle) or callable(func)):
            raise FrameStateError(f"defer expects a function value, got {type(func).__name__}")
        entry = DeferredCall(func, args, label=label)
        self.defers.push(entry)
        return entry

    def call(self, func: Any, *args: Any) -> Tuple[Any, ...]:
        return self.evaluator.call(func, list(args))

    def closure(self, descriptor: FunctionDescriptor) -> FunctionHandle:
        """Creates a function value that shares this frame's variable storage."""
        return FunctionHandle(descriptor.validate(), self.scope)

    def ret(self, *values: Any) -> Return:
        return Return(*values)

    def __repr__(self) -> str:
        return f"<Frame {self.name} state={self.state.value}>"
