from __future__ import annotations

import json
from typing import Any, Optional
import collections.abc

import yaml

from callcore.callcore_datatypes import DomainError, ErrorValue, FunctionHandle, SliceValue, FuncType


# --------------------------
# Helpers
# --------------------------

def to_builtin(value: Any) -> Any:
    """Converts callcore values into plain Python structures."""
    from callcore.callcore_printer import Printer
    match value:
        case SliceValue() | list() | tuple():
            return [to_builtin(v) for v in value]
        case ErrorValue():
            return {"error": value.message}
        case FunctionHandle():
            return {"func": Printer().format_descriptor(value.descriptor)}
        case FuncType():
            return Printer().pformat(value)
        case collections.abc.Mapping():
            return {k: to_builtin(v) for k, v in value.items()}
    return value


def from_builtin(obj: Any) -> Any:
    """Converts plain structures into callcore values.

    Sequences become slices and a single-key {'error': message} mapping
    becomes a DomainError.
    """
    if isinstance(obj, list):
        return SliceValue([from_builtin(x) for x in obj])
    if isinstance(obj, collections.abc.Mapping):
        if set(obj.keys()) == {"error"}:
            return DomainError(str(obj["error"]))
        return {k: from_builtin(v) for k, v in obj.items()}
    return obj


def detect_format(data_hint: Optional[str] = None) -> Optional[str]:
    if data_hint is None:
        return None
    s = data_hint.lstrip()
    if s.startswith('{') or s.startswith('['):
        return 'json'
    return 'yaml'


# --------------------------
# Public API
# --------------------------

def deserialize(data: bytes | bytearray | str, *, fmt: Optional[str] = None) -> Any:
    """
    Convert text to callcore values.
    Supported fmt: 'json', 'yaml'. If fmt is None, sniffs the data.
    """
    text = data.decode('utf-8', errors='replace') if isinstance(data, (bytes, bytearray)) else str(data)
    f = fmt or detect_format(text)
    if f == 'json':
        try:
            return from_builtin(json.loads(text))
        except json.JSONDecodeError:
            # YAML is a superset of JSON
            return from_builtin(yaml.safe_load(text))
    if f == 'yaml':
        return from_builtin(yaml.safe_load(text))
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def serialize(value: Any, *, fmt: str, pretty: bool = True) -> str:
    """
    Convert a callcore value into a textual representation.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    built = to_builtin(value)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "deserialize",
    "serialize",
    "detect_format",
    "to_builtin",
    "from_builtin",
]
