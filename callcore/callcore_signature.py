"""
Function descriptors, function types and signature matching.
"""
from typing import Any, Callable, List, Optional, Sequence, Union

from callcore.callcore_datatypes import (
    Kind, FuncType, SliceKind, FunctionHandle, SignatureError, resolve_kind,
)


class Param:
    """A declared parameter. A variadic parameter's kind is its element kind."""
    def __init__(self, name: str, kind: Any, variadic: bool = False):
        self.name = name
        self.kind = resolve_kind(kind)
        self.variadic = bool(variadic)

    @property
    def binding_kind(self) -> Kind:
        """The kind of the value bound in the frame (a slice for variadics)."""
        return SliceKind(self.kind) if self.variadic else self.kind

    def __repr__(self) -> str:
        dots = "..." if self.variadic else ""
        return f"Param({self.name!r}, {dots}{self.kind!r})"

    def __eq__(self, other):
        return isinstance(other, Param) and (
            self.name == other.name and self.kind == other.kind and self.variadic == other.variadic
        )


class ReturnSlot:
    """A declared result slot, anonymous when name is None."""
    def __init__(self, kind: Any, name: Optional[str] = None):
        self.kind = resolve_kind(kind)
        self.name = name

    def __repr__(self) -> str:
        return f"ReturnSlot({self.kind!r}, name={self.name!r})"

    def __eq__(self, other):
        return isinstance(other, ReturnSlot) and self.kind == other.kind and self.name == other.name


def _to_param(spec: Any) -> Param:
    if isinstance(spec, Param):
        return spec
    if isinstance(spec, (tuple, list)) and len(spec) in (2, 3):
        return Param(*spec)
    raise SignatureError(f"Malformed parameter declaration: {spec!r}")


def _to_slot(spec: Any) -> ReturnSlot:
    if isinstance(spec, ReturnSlot):
        return spec
    # ("result", INT) names the slot; a bare kind is anonymous
    if isinstance(spec, (tuple, list)) and len(spec) == 2 and isinstance(spec[0], str):
        return ReturnSlot(spec[1], name=spec[0])
    return ReturnSlot(spec)


class FunctionDescriptor:
    """Represents a callable: parameters, result slots and an opaque body.

    The body is a host callable taking the call Frame. It returns a Return
    (explicit or blank) or None to fall through the end of the function.
    """
    def __init__(self, name: str, params: Sequence[Any] = (), returns: Sequence[Any] = (),
                 body: Optional[Callable] = None, doc: Optional[str] = None):
        self.name = name
        self.params: List[Param] = [_to_param(p) for p in params]
        self.returns: List[ReturnSlot] = [_to_slot(r) for r in returns]
        self.body = body
        self.doc = doc

    @property
    def fixed_params(self) -> List[Param]:
        return [p for p in self.params if not p.variadic]

    @property
    def variadic_param(self) -> Optional[Param]:
        if self.params and self.params[-1].variadic:
            return self.params[-1]
        return None

    @property
    def named_returns(self) -> bool:
        return bool(self.returns) and all(r.name for r in self.returns)

    @property
    def signature(self) -> FuncType:
        return FuncType(
            tuple(p.kind for p in self.params),
            tuple(r.kind for r in self.returns),
            self.variadic_param is not None,
        )

    def validate(self) -> 'FunctionDescriptor':
        """Checks the descriptor is well formed; raises SignatureError otherwise."""
        if not isinstance(self.name, str) or not self.name:
            raise SignatureError(f"Function name must be a non-empty string, got {self.name!r}")
        if not callable(self.body):
            raise SignatureError(f"Function {self.name!r} has no callable body")

        seen = set()
        for i, p in enumerate(self.params):
            if p.name in seen:
                raise SignatureError(f"Duplicate parameter {p.name!r} in {self.name!r}")
            seen.add(p.name)
            if p.variadic and i != len(self.params) - 1:
                raise SignatureError(
                    f"Variadic parameter {p.name!r} in {self.name!r} must be the last parameter",
                    detail="can only use ... with final parameter in list",
                )

        named = [r for r in self.returns if r.name]
        if named and len(named) != len(self.returns):
            raise SignatureError(f"Function {self.name!r} mixes named and unnamed results")
        for r in named:
            if r.name in seen:
                raise SignatureError(f"Result {r.name!r} in {self.name!r} duplicates a parameter or result name")
            seen.add(r.name)
        return self

    def __repr__(self) -> str:
        from callcore.callcore_printer import Printer
        return f"<FunctionDescriptor {Printer().format_descriptor(self)}>"


def function(name: Optional[str] = None, params: Sequence[Any] = (), returns: Sequence[Any] = ()):
    """Decorator that turns a body function into a validated FunctionDescriptor.

        @function(params=[("a", INT), ("b", INT)], returns=[INT])
        def add(frame):
            return Return(frame["a"] + frame["b"])
    """
    def wrap(body: Callable) -> FunctionDescriptor:
        return FunctionDescriptor(name or body.__name__, params, returns, body, doc=body.__doc__).validate()
    return wrap


def make_function_type(param_kinds: Sequence[Any], return_kinds: Sequence[Any] = (),
                       variadic: bool = False) -> FuncType:
    """Builds a function type. With variadic set, the last param kind repeats."""
    params = tuple(resolve_kind(k) for k in param_kinds)
    if variadic and not params:
        raise SignatureError("A variadic function type needs at least one parameter kind")
    return FuncType(params, tuple(resolve_kind(k) for k in return_kinds), bool(variadic))


def signature_of(obj: Union[FuncType, FunctionDescriptor, FunctionHandle]) -> FuncType:
    match obj:
        case FuncType():
            return obj
        case FunctionDescriptor() | FunctionHandle():
            return obj.signature
    raise SignatureError(f"Object has no function signature: {obj!r}")


def signature_compatible(a, b) -> bool:
    """Two functions are interchangeable iff their function types are equal."""
    return signature_of(a) == signature_of(b)
