# callcore_runtime.py

import inspect
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

import pystache

from callcore.callcore_interpreter import Evaluator
from callcore.callcore_datatypes import (
    Environment, FunctionHandle, FuncType, Kind, SliceValue, DomainError, ErrorValue,
    CallError, ArityError, SignatureError, KindError, ReturnError, FrameStateError, UnrecoveredFailure,
    resolve_kind, zero, check_value, copy_value, kind_of,
)
from callcore.callcore_signature import FunctionDescriptor

# ===================================================================
# 1. Host-visible Variables
# ===================================================================


class Variable:
    """A typed variable owned by the host, zero-initialized at declaration."""
    def __init__(self, name: str, kind: Any):
        self.name = name
        self.kind: Kind = resolve_kind(kind)
        self.value: Any = zero(self.kind)

    def __repr__(self) -> str:
        from callcore.callcore_printer import Printer
        p = Printer()
        return f"<Variable {self.name} {p.pformat(self.kind)} = {p.pformat(self.value)}>"


# ===================================================================
# 2. The Standard Library
# ===================================================================
class StdLib:
    """Python implementations of the builtins visible to every function body."""
    def __init__(self, evaluator: Evaluator):
        self.evaluator = evaluator

    # --- Errors ---
    def _new_error(self, message):
        return DomainError(message)

    def _errorf(self, template, **values):
        """Builds a DomainError from a Mustache template, e.g. 'negative: {{value}}'."""
        renderer = pystache.Renderer(escape=lambda u: u, missing_tags='strict')
        return DomainError(renderer.render(template, values))

    def _is_nil(self, value): return value is None

    def _discard(self, *values):
        """Explicitly ignores values, typically an error the caller chose not to check."""
        return None

    # --- Slices ---
    def _make_slice(self, *values):
        """Builds a slice whose element kind is inferred from the first value; KindError on mixed kinds."""
        elem = kind_of(values[0]) if values else None
        return SliceValue([copy_value(v) for v in values], elem)

    def _append(self, slice_value, *values):
        # Always allocates: the result never shares storage with the input.
        base = list(slice_value) if slice_value is not None else []
        elem = slice_value.elem if isinstance(slice_value, SliceValue) else None
        return SliceValue(base + [copy_value(v) for v in values], elem)

    def _len(self, collection):
        return 0 if collection is None else len(collection)

    # --- Functions ---
    def _call(self, func, *args):
        return self.evaluator.call(func, list(args))

    # --- Side Effects ---
    def _emit(self, topic_or_topics, *message_parts):
        """Generates a side-effect event for the host application."""
        topics = topic_or_topics if isinstance(topic_or_topics, list) else [topic_or_topics]
        message = " ".join(map(str, message_parts))
        event = {"topics": topics, "message": message}
        if self.evaluator:
            self.evaluator.side_effects.append(event)
        return None


# ===================================================================
# 3. Execution
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of a host-level call."""
    status: Literal['success', 'error']
    value: Optional[Tuple[Any, ...]] = None
    error_message: Optional[str] = None
    error: Optional[BaseException] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        return str(self.error_message or "Unknown error")

    @property
    def stdout(self) -> List[str]:
        return [e.get('message', '') for e in self.side_effects if e.get('topics') == ['stdout']]


class Runtime:
    """Hosts function definitions and runs invocations for a caller such as a test driver."""

    def __init__(self, load_library: bool = True, debug: Optional[bool] = None):
        self.root_scope = Environment()
        self.evaluator = Evaluator(debug=debug)
        self.variables: Dict[str, Variable] = {}

        stdlib = StdLib(self.evaluator)
        for name, member in inspect.getmembers(stdlib):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                self.root_scope[name[1:]] = member

        if load_library:
            from callcore.callcore_library import LIBRARY
            for descriptor in LIBRARY:
                self.define(descriptor)

    # --- Definitions and variables ---
    def define(self, descriptor: FunctionDescriptor) -> FunctionHandle:
        """Registers a function and binds it in the root scope under its name."""
        if not isinstance(descriptor, FunctionDescriptor):
            raise SignatureError(f"define expects a FunctionDescriptor, got {type(descriptor).__name__}")
        descriptor.validate()
        handle = FunctionHandle(descriptor, self.root_scope)
        self.root_scope[descriptor.name] = handle
        self.evaluator._dbg("define", descriptor.name)
        return handle

    def lookup(self, name: str) -> Any:
        return self.root_scope[name]

    def declare(self, name: str, kind: Any) -> Variable:
        var = Variable(name, kind)
        self.variables[name] = var
        return var

    def assign(self, variable: Union[Variable, str], value: Any) -> Variable:
        """Binds value to a declared variable.

        Function values must match the variable's function type exactly
        (SignatureError); any other mismatch raises KindError.
        """
        if isinstance(variable, str):
            if variable not in self.variables:
                raise CallError(f"assignment to undeclared variable {variable!r}")
            var = self.variables[variable]
        else:
            var = variable
        if isinstance(var.kind, FuncType) and value is not None and not isinstance(value, FunctionHandle):
            raise SignatureError(f"cannot assign {type(value).__name__} to function variable {var.name}")
        check_value(value, var.kind, f"assignment to {var.name}")
        var.value = copy_value(value)
        return var

    def _resolve_callable(self, target: Any) -> Any:
        if isinstance(target, Variable):
            return target.value
        if isinstance(target, str):
            return self.lookup(target)
        return target

    # --- Invocation ---
    def invoke(self, handle: Any, *args: Any) -> Tuple[Any, ...]:
        """Invokes a function and returns its result tuple; errors propagate."""
        return self.evaluator.call(self._resolve_callable(handle), list(args))

    def run(self, handle: Any, *args: Any) -> ExecutionResult:
        """Invokes a function and reports the outcome without raising."""
        self.evaluator.side_effects.clear()
        self.evaluator.call_stack.clear()
        try:
            value = self.invoke(handle, *args)
            return ExecutionResult(status='success', value=value, side_effects=list(self.evaluator.side_effects))
        except Exception as e:
            err_msg = self._format_runtime_error(e)
            self.evaluator.side_effects.append({'topics': ['stderr'], 'message': err_msg})
            return ExecutionResult(
                status='error',
                error_message=err_msg,
                error=e,
                side_effects=list(self.evaluator.side_effects),
            )

    # --- Error reporting ---
    def _format_runtime_error(self, e: BaseException) -> str:
        match e:
            case ArityError() | SignatureError() | KindError() | ReturnError() | FrameStateError():
                msg = f"{type(e).__name__}: {e}"
                if e.detail:
                    msg = f"{msg}\n{e.detail}"
            case UnrecoveredFailure():
                msg = f"UnrecoveredFailure: {e}"
                if len(e.failures) > 1:
                    earlier = "; ".join(f"{type(f).__name__}: {f}" for f in e.failures[:-1])
                    msg = f"{msg}\nearlier failures: {earlier}"
            case KeyError(args=(inner,)):
                msg = f"NameNotFound: {str(inner).strip(chr(39))}"
            case CallError():
                msg = f"CallError: {e}"
            case _:
                msg = f"InternalError: {e}"

        st = self._format_stacktrace()
        if st:
            msg += "\n" + st
        return msg

    def _format_stacktrace(self) -> str:
        stack = self.evaluator.call_stack
        if not stack:
            return ""
        from callcore.callcore_printer import Printer
        pf = Printer().pformat

        def fmt(arg):
            match arg:
                case FunctionHandle():
                    return arg.name
                case SliceValue() | list():
                    return f"[{len(arg)}]"
                case ErrorValue() | None | bool() | int() | str():
                    return pf(arg)
            if callable(arg):
                return getattr(arg, '__name__', '<callable>')
            return pf(arg)

        frames = []
        for frame in stack:
            name = frame.get('name') or '<call>'
            args_s = " ".join(fmt(a) for a in frame.get('args') or []).strip()
            frames.append(f"({name} {args_s})" if args_s else f"({name})")
        return "callcore stacktrace: " + " ".join(frames)
