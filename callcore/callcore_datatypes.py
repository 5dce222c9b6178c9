"""
Defines the core data types for the callcore runtime.

This module provides the value kinds the invocation engine operates on, the
runtime value classes (errors, slices, function handles), the lexical
Environment used for parameters, locals and closures, and the exceptions
raised by binding, returning and draining.
"""

import collections.abc
from dataclasses import dataclass
from typing import List, Dict, Any, Optional, Tuple


# =================================================================
# Exceptions
# =================================================================

class CallError(Exception):
    """Base class for errors that are fatal to a single call or assignment."""
    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.detail = detail


class ArityError(CallError):
    """Wrong number of arguments for a fixed or variadic signature."""
    pass


class SignatureError(CallError):
    """Malformed descriptor or incompatible function-type assignment."""
    pass


class KindError(CallError):
    """A value does not conform to the kind declared for its slot."""
    pass


class ReturnError(CallError):
    """A body returned the wrong number of values, or none where some were required."""
    pass


class FrameStateError(CallError):
    """An operation was attempted in a call state that does not permit it."""
    pass


class UnrecoveredFailure(Exception):
    """A failure that escaped a function body or one of its deferred computations.

    The defer stack has been fully unwound by the time this is raised.
    `failures` holds every failure observed during the unwind, oldest first;
    the last one is the outcome and is also chained as `__cause__`.
    """
    def __init__(self, message: str, failures: Optional[List[BaseException]] = None):
        super().__init__(message)
        self.failures: List[BaseException] = list(failures or [])


# =================================================================
# Kinds
# =================================================================

class Kind:
    """Abstract base class for value kinds."""
    pass


@dataclass(frozen=True)
class ScalarKind(Kind):
    name: str

    def __repr__(self) -> str:
        return self.name


INT = ScalarKind("int")
STRING = ScalarKind("string")
ERROR = ScalarKind("error")

SCALAR_KINDS: Dict[str, ScalarKind] = {k.name: k for k in (INT, STRING, ERROR)}


@dataclass(frozen=True)
class SliceKind(Kind):
    """A sequence of values of one element kind, with shared-reference semantics."""
    elem: Kind

    def __repr__(self) -> str:
        return f"[]{self.elem!r}"


@dataclass(frozen=True)
class FuncType(Kind):
    """The type of a function value.

    Parameter and return names are not part of the type. When `variadic` is
    set, the last entry of `params` is the element kind of the repeatable
    parameter.
    """
    params: Tuple[Kind, ...]
    returns: Tuple[Kind, ...]
    variadic: bool = False

    def __repr__(self) -> str:
        from callcore.callcore_printer import Printer
        return Printer().pformat(self)


def resolve_kind(kind: Any) -> Kind:
    """Accepts a Kind or the name of a scalar kind ('int', 'string', 'error')."""
    if isinstance(kind, Kind):
        return kind
    if isinstance(kind, str) and kind in SCALAR_KINDS:
        return SCALAR_KINDS[kind]
    raise SignatureError(f"Unknown kind: {kind!r}")


# =================================================================
# Runtime Values
# =================================================================

class ErrorValue:
    """A non-nil error value. Nil errors are represented by None."""
    def __init__(self, message: str):
        self.message = str(message)

    def error(self) -> str:
        return self.message

    def copy(self) -> 'ErrorValue':
        return type(self)(self.message)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"

    def __eq__(self, other):
        if not isinstance(other, ErrorValue):
            return NotImplemented
        return type(self) is type(other) and self.message == other.message

    __hash__ = None


class DomainError(ErrorValue):
    """An error value produced by a function body for its own failure condition.

    The engine never inspects it; it travels in an ordinary error result slot.
    """
    pass


class SliceValue(collections.abc.MutableSequence):
    """A slice: a view over a backing list that is shared, never copied, on assignment."""
    def __init__(self, items: Optional[collections.abc.Iterable] = None, elem: Optional[Kind] = None):
        # A list is adopted as backing storage as-is so that wrapping aliases it.
        self.items: list = items if isinstance(items, list) else list(items or [])
        self.elem = elem
        if elem is not None:
            for v in self.items:
                check_value(v, elem, "slice element")

    def __getitem__(self, index):
        if isinstance(index, slice):
            return SliceValue(self.items[index], self.elem)
        return self.items[index]

    def __setitem__(self, index, value):
        if isinstance(index, slice):
            value = list(value)
        if self.elem is not None:
            for v in (value if isinstance(index, slice) else [value]):
                check_value(v, self.elem, "slice element assignment")
        self.items[index] = value

    def __delitem__(self, index):
        del self.items[index]

    def __len__(self) -> int:
        return len(self.items)

    def insert(self, index, value):
        if self.elem is not None:
            check_value(value, self.elem, "slice element insertion")
        self.items.insert(index, value)

    def __eq__(self, other):
        if isinstance(other, SliceValue):
            return self.items == other.items
        if isinstance(other, list):
            return self.items == other
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        from callcore.callcore_printer import Printer
        return f"SliceValue({Printer().pformat(self)})"


class Spread:
    """Marks a pre-built sequence passed in the variadic position (`f(xs...)`).

    The engine binds the wrapped slice directly as the variadic parameter's
    storage. A plain list is adopted as the slice's backing storage.
    """
    def __init__(self, seq: Any):
        if isinstance(seq, SliceValue):
            self.slice = seq
        elif isinstance(seq, list):
            self.slice = SliceValue(seq)
        else:
            raise KindError(f"Spread expects a slice or list, got {type(seq).__name__}")

    def __repr__(self) -> str:
        return f"Spread({self.slice!r})"


class Return:
    """The explicit return signal produced by a function body.

    `Return()` with no operands is a blank return: the named result slots are
    returned as they currently stand.
    """
    def __init__(self, *values: Any):
        self.values: Tuple[Any, ...] = values

    @property
    def blank(self) -> bool:
        return not self.values

    def __repr__(self) -> str:
        from callcore.callcore_printer import Printer
        return Printer().pformat(self)

    def __eq__(self, other):
        if not isinstance(other, Return):
            return NotImplemented
        return self.values == other.values


def is_return(x) -> bool:
    return isinstance(x, Return)


# =================================================================
# Environments and Function Values
# =================================================================

class Environment:
    """A lexical variable store with a parent link.

    Frames keep their parameters and locals in an Environment whose parent is
    the environment the function closed over. Closures hold a reference to the
    creating frame's Environment, not a copy, so writes through either side
    are visible to both and the storage lives as long as any closure does.
    """
    def __init__(self, parent: Optional['Environment'] = None):
        self.bindings: Dict[str, Any] = {}
        # declared kinds of bindings that must stay kind-checked (parameters)
        self.kinds: Dict[str, Kind] = {}
        self.parent = parent

    def __setitem__(self, key: str, value: Any):
        if not isinstance(key, str):
            raise TypeError(f"Environment key must be a str, not {type(key)}")
        self.bindings[key] = value

    def __getitem__(self, key: str) -> Any:
        owner = self.find_owner(key)
        if owner is not None:
            return owner.bindings[key]
        raise KeyError(f"'{key}'")

    def __delitem__(self, key: str):
        if key not in self.bindings:
            raise KeyError(f"'{key}'")
        del self.bindings[key]

    def __contains__(self, key: Any) -> bool:
        return isinstance(key, str) and self.find_owner(key) is not None

    def find_owner(self, key: str) -> Optional['Environment']:
        """Finds the Environment in the lexical chain that binds key."""
        env = self
        while env is not None:
            if key in env.bindings:
                return env
            env = env.parent
        return None

    def get(self, key: str, default: Any = None) -> Any:
        owner = self.find_owner(key)
        if owner is not None:
            return owner.bindings[key]
        return default

    def assign(self, key: str, value: Any) -> 'Environment':
        """Writes to the nearest existing binding of key; binds locally if there is none."""
        owner = self.find_owner(key) or self
        owner.bindings[key] = value
        return owner

    def keys(self) -> collections.abc.KeysView:
        """Returns a view of keys bound in this environment only."""
        return self.bindings.keys()

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        parent_id = f", parent=#{id(self.parent)}" if self.parent else ""
        return f"<Environment bindings=[{keys}]{parent_id}>"


class FunctionHandle:
    """A function value.

    Bundles a FunctionDescriptor with the Environment it closes over. Handles
    returned by `Runtime.define` close over the runtime's root scope; closures
    created inside a body close over that body's frame environment.
    """
    def __init__(self, descriptor: Any, closure: Optional[Environment] = None):
        self.descriptor = descriptor
        self.closure = closure if closure is not None else Environment()
        self.meta: Dict[str, Any] = {}

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def signature(self) -> FuncType:
        return self.descriptor.signature

    def __repr__(self) -> str:
        from callcore.callcore_printer import Printer
        return Printer().pformat(self)


# =================================================================
# Value Model Operations
# =================================================================

def copy_value(value: Any) -> Any:
    """Copies a value according to its kind.

    Integers, strings and errors get an independent copy. Slices and function
    references are returned as-is, so the copy shares their storage.
    """
    if isinstance(value, ErrorValue):
        return value.copy()
    return value


def zero(kind: Kind) -> Any:
    """Returns the zero value for a kind."""
    kind = resolve_kind(kind)
    if kind == INT:
        return 0
    if kind == STRING:
        return ""
    # error, function and slice kinds are all nil-able
    return None


def equal(a: Any, b: Any) -> bool:
    """Structural equality between two values. Functions compare by identity."""
    if isinstance(a, FunctionHandle) or isinstance(b, FunctionHandle):
        return a is b
    if isinstance(a, SliceValue) and isinstance(b, SliceValue):
        return len(a) == len(b) and all(equal(x, y) for x, y in zip(a, b))
    if isinstance(a, bool) or isinstance(b, bool):
        return False
    return type(a) is type(b) and a == b


def kind_of(value: Any) -> Optional[Kind]:
    """Infers the kind of a non-nil value; None when it cannot be determined."""
    match value:
        case bool():
            return None
        case int():
            return INT
        case str():
            return STRING
        case ErrorValue():
            return ERROR
        case FunctionHandle():
            return value.signature
        case SliceValue() if value.elem is not None:
            return SliceKind(value.elem)
        case _:
            return None


def conforms(value: Any, kind: Kind) -> bool:
    """True when value may be stored in a slot of the given kind."""
    kind = resolve_kind(kind)
    match kind:
        case ScalarKind(name="int"):
            return isinstance(value, int) and not isinstance(value, bool)
        case ScalarKind(name="string"):
            return isinstance(value, str)
        case ScalarKind(name="error"):
            return value is None or isinstance(value, ErrorValue)
        case SliceKind():
            if value is None:
                return True
            if not isinstance(value, SliceValue):
                return False
            if value.elem is not None:
                return value.elem == kind.elem
            return all(conforms(v, kind.elem) for v in value)
        case FuncType():
            return value is None or (isinstance(value, FunctionHandle) and value.signature == kind)
    return False


def check_value(value: Any, kind: Kind, what: str) -> None:
    """Raises when value does not conform to kind.

    Function values with the wrong signature raise SignatureError; every other
    mismatch raises KindError.
    """
    kind = resolve_kind(kind)
    if conforms(value, kind):
        return
    from callcore.callcore_printer import Printer
    p = Printer()
    if isinstance(kind, FuncType) and isinstance(value, FunctionHandle):
        raise SignatureError(
            f"cannot use {p.pformat(value.signature)} as {p.pformat(kind)} in {what}",
            detail=f"{value.name} has signature {p.pformat(value.signature)}",
        )
    raise KindError(
        f"cannot use {p.pformat(value)} as {p.pformat(kind)} in {what}",
        detail=f"got {type(value).__name__}",
    )
