import json

import pytest
import yaml

from callcore.callcore_datatypes import DomainError, SliceValue
from callcore.callcore_runtime import Runtime
from callcore.callcore_serialize import serialize, deserialize, detect_format, to_builtin


def test_serialize_results_to_json():
    assert serialize((3, None), fmt="json", pretty=False) == "[3, null]"


def test_serialize_error_results_to_yaml():
    text = serialize((0, DomainError("division by zero")), fmt="yaml")
    assert yaml.safe_load(text) == [0, {"error": "division by zero"}]


def test_serialize_pretty_json():
    text = serialize(SliceValue([1, 2]), fmt="json")
    assert json.loads(text) == [1, 2]
    assert "\n" in text


def test_function_values_serialize_as_declarations():
    handle = Runtime().lookup("add")
    assert to_builtin(handle) == {"func": "func add(a int, b int) int"}


def test_deserialize_json_list_is_slice():
    value = deserialize("[1, 2, 3]")
    assert isinstance(value, SliceValue)
    assert value == [1, 2, 3]


def test_deserialize_error_mapping():
    assert deserialize("{error: boom}", fmt="yaml") == DomainError("boom")
    assert deserialize('{"error": "boom"}') == DomainError("boom")


@pytest.mark.parametrize("text, expected", [
    ("hello", "hello"),
    ("42", 42),
    ("-3", -3),
])
def test_deserialize_yaml_scalars(text, expected):
    assert deserialize(text, fmt="yaml") == expected


def test_deserialize_bytes():
    assert deserialize(b"[1]") == [1]


def test_detect_format():
    assert detect_format("  [1, 2]") == "json"
    assert detect_format("hello") == "yaml"
    assert detect_format(None) is None


def test_unsupported_format():
    with pytest.raises(ValueError):
        serialize(1, fmt="xml")
    with pytest.raises(ValueError):
        deserialize("1", fmt="xml")
