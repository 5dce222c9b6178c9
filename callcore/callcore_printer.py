"""
A pretty-printer for callcore values, kinds and function types.
"""
import collections.abc

from callcore.callcore_datatypes import (
    ScalarKind, SliceKind, FuncType, ErrorValue, DomainError, SliceValue,
    Spread, Return, Environment, FunctionHandle,
)


class Printer:
    """Formats callcore objects into short, readable strings."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, ErrorValue): return self._pformat_error
        if isinstance(obj, collections.abc.Mapping): return self._pformat_dict
        if isinstance(obj, list): return self._pformat_seq
        return repr

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            int: self._pformat_primitive,
            float: self._pformat_primitive,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            tuple: self._pformat_results,
            ScalarKind: self._pformat_scalar_kind,
            SliceKind: self._pformat_slice_kind,
            FuncType: self._pformat_func_type,
            ErrorValue: self._pformat_error,
            DomainError: self._pformat_error,
            SliceValue: self._pformat_seq,
            Spread: self._pformat_spread,
            Return: self._pformat_return,
            Environment: self._pformat_environment,
            FunctionHandle: self._pformat_function,
        }

    def _pformat_primitive(self, obj):
        return str(obj)

    def _pformat_str(self, obj):
        return f"'{obj}'"

    def _pformat_bool(self, obj):
        return 'true' if obj else 'false'

    def _pformat_none(self, obj):
        return 'nil'

    def _pformat_results(self, obj):
        return f"({', '.join(self.pformat(v) for v in obj)})"

    def _pformat_seq(self, obj):
        return f"[{' '.join(self.pformat(v) for v in obj)}]"

    def _pformat_dict(self, obj):
        items = ' '.join(f"{k}:{self.pformat(v)}" for k, v in obj.items())
        return f"map[{items}]"

    def _pformat_spread(self, obj):
        return f"{self.pformat(obj.slice)}..."

    def _pformat_error(self, obj):
        return f"error('{obj.message}')"

    def _pformat_return(self, obj):
        if obj.blank:
            return "return"
        return "return " + ", ".join(self.pformat(v) for v in obj.values)

    def _pformat_environment(self, obj):
        return f"<env {', '.join(obj.bindings.keys())}>"

    # --- Kinds ---
    def _pformat_scalar_kind(self, obj):
        return obj.name

    def _pformat_slice_kind(self, obj):
        return f"[]{self.pformat(obj.elem)}"

    def _pformat_func_type(self, obj):
        params = [self.pformat(k) for k in obj.params]
        if obj.variadic:
            params[-1] = f"...{params[-1]}"
        return f"func({', '.join(params)}){self._format_returns([self.pformat(k) for k in obj.returns])}"

    def _format_returns(self, rets, named=False):
        if not rets:
            return ""
        if len(rets) == 1 and not named:
            return f" {rets[0]}"
        return f" ({', '.join(rets)})"

    # --- Functions ---
    def format_descriptor(self, descriptor):
        """Renders a declaration line such as `func divide(a int, b int) (int, error)`."""
        params = []
        for p in descriptor.params:
            dots = "..." if p.variadic else ""
            params.append(f"{p.name} {dots}{self.pformat(p.kind)}")
        rets = [f"{r.name} {self.pformat(r.kind)}" if r.name else self.pformat(r.kind)
                for r in descriptor.returns]
        return f"func {descriptor.name}({', '.join(params)}){self._format_returns(rets, descriptor.named_returns)}"

    def _pformat_function(self, obj):
        return self.format_descriptor(obj.descriptor)
