import pytest
from callcore.callcore_datatypes import (
    INT, STRING, ERROR, SliceKind, FuncType,
    ErrorValue, DomainError, SliceValue, Spread, Return, Environment, FunctionHandle,
    KindError, SignatureError,
    copy_value, zero, equal, conforms, kind_of, check_value, is_return,
)
from callcore.callcore_signature import FunctionDescriptor, make_function_type


def _add_descriptor():
    return FunctionDescriptor("add", [("a", INT), ("b", INT)], [INT],
                              lambda f: Return(f["a"] + f["b"]))

# --- Environment Tests ---

def test_environment_init():
    parent = Environment()
    child = Environment(parent=parent)
    assert child.parent is parent
    assert not child.bindings
    assert Environment().parent is None


def test_environment_lookup_walks_parent_chain():
    parent = Environment()
    parent["a"] = 1
    child = Environment(parent=parent)
    child["b"] = 2

    assert child["a"] == 1
    assert child["b"] == 2
    assert "a" in child
    with pytest.raises(KeyError):
        _ = child["c"]


def test_environment_setitem_shadows_parent():
    parent = Environment()
    parent["x"] = 100
    child = Environment(parent=parent)
    child["x"] = 1

    assert child["x"] == 1
    assert parent["x"] == 100


def test_environment_assign_writes_to_owner():
    parent = Environment()
    parent["count"] = 0
    child = Environment(parent=parent)

    owner = child.assign("count", 5)

    assert owner is parent
    assert parent["count"] == 5
    assert "count" not in child.bindings


def test_environment_assign_binds_locally_when_unbound():
    parent = Environment()
    child = Environment(parent=parent)
    owner = child.assign("fresh", 1)
    assert owner is child
    assert "fresh" not in parent


def test_environment_rejects_non_str_keys():
    env = Environment()
    with pytest.raises(TypeError):
        env[1] = "x"


def test_environment_delitem_only_touches_own_bindings():
    parent = Environment()
    parent["a"] = 1
    child = Environment(parent=parent)
    child["a"] = 2
    del child["a"]
    assert child["a"] == 1
    with pytest.raises(KeyError):
        del child["a"]

# --- Value Model Tests ---

def test_zero_values():
    assert zero(INT) == 0
    assert zero(STRING) == ""
    assert zero(ERROR) is None
    assert zero(make_function_type([INT], [INT])) is None
    assert zero(SliceKind(INT)) is None
    assert zero("int") == 0


def test_zero_of_unknown_kind_raises():
    with pytest.raises(SignatureError):
        zero("float")


def test_copy_value_gives_errors_independent_storage():
    original = DomainError("boom")
    copied = copy_value(original)
    assert copied == original
    assert copied is not original
    assert type(copied) is DomainError

    copied.message = "changed"
    assert original.message == "boom"


def test_copy_value_keeps_slices_and_functions_shared():
    s = SliceValue([1, 2])
    h = FunctionHandle(_add_descriptor())
    assert copy_value(s) is s
    assert copy_value(h) is h
    assert copy_value(3) == 3
    assert copy_value("x") == "x"
    assert copy_value(None) is None


def test_equal_is_structural():
    assert equal(SliceValue([1, 2]), SliceValue([1, 2]))
    assert not equal(SliceValue([1, 2]), SliceValue([1, 2, 3]))
    assert equal(DomainError("a"), DomainError("a"))
    assert not equal(DomainError("a"), ErrorValue("a"))
    assert not equal(1, True)
    assert not equal(1, "1")
    assert equal(None, None)


def test_equal_compares_functions_by_identity():
    d = _add_descriptor()
    h1 = FunctionHandle(d)
    h2 = FunctionHandle(d)
    assert equal(h1, h1)
    assert not equal(h1, h2)


def test_conforms_scalars():
    assert conforms(1, INT)
    assert not conforms(True, INT)
    assert not conforms("1", INT)
    assert conforms("s", STRING)
    assert conforms(None, ERROR)
    assert conforms(DomainError("x"), ERROR)
    assert not conforms(1, ERROR)


def test_conforms_slices():
    assert conforms(SliceValue([1, 2]), SliceKind(INT))
    assert not conforms(SliceValue([1, "a"]), SliceKind(INT))
    assert not conforms(SliceValue([], STRING), SliceKind(INT))
    assert conforms(None, SliceKind(INT))
    assert not conforms([1, 2], SliceKind(INT))


def test_conforms_functions_by_signature():
    h = FunctionHandle(_add_descriptor())
    assert conforms(h, make_function_type([INT, INT], [INT]))
    assert not conforms(h, make_function_type([STRING, STRING], [STRING]))
    assert conforms(None, make_function_type([INT, INT], [INT]))


def test_kind_of():
    assert kind_of(1) == INT
    assert kind_of("a") == STRING
    assert kind_of(DomainError("x")) == ERROR
    assert kind_of(True) is None
    assert kind_of(SliceValue([1], INT)) == SliceKind(INT)
    assert kind_of(FunctionHandle(_add_descriptor())) == FuncType((INT, INT), (INT,), False)


def test_check_value_function_mismatch_is_signature_error():
    h = FunctionHandle(_add_descriptor())
    with pytest.raises(SignatureError):
        check_value(h, make_function_type([STRING], [STRING]), "test")


def test_check_value_other_mismatch_is_kind_error():
    with pytest.raises(KindError) as exc:
        check_value("x", INT, "argument 'n'")
    assert "argument 'n'" in str(exc.value)

# --- Slices, Spread, Return ---

def test_slice_value_shares_adopted_list():
    backing = [1, 2, 3]
    s = SliceValue(backing)
    s[0] = 10
    s.append(4)
    assert backing == [10, 2, 3, 4]
    assert len(s) == 4


def test_slice_value_subslice():
    s = SliceValue([1, 2, 3], INT)
    sub = s[1:]
    assert isinstance(sub, SliceValue)
    assert sub == [2, 3]
    assert sub.elem == INT


def test_spread_adopts_list_without_copying():
    items = [1, 2]
    sp = Spread(items)
    assert sp.slice.items is items
    s = SliceValue([3])
    assert Spread(s).slice is s


def test_spread_rejects_non_sequences():
    with pytest.raises(KindError):
        Spread(5)
    with pytest.raises(KindError):
        Spread((1, 2))


def test_return_blank_and_operands():
    assert Return().blank
    assert not Return(None).blank
    assert Return(1, "a").values == (1, "a")
    assert is_return(Return())
    assert not is_return(None)


def test_typed_slice_checks_element_kind():
    s = SliceValue([1, 2], INT)
    with pytest.raises(KindError):
        s[0] = "one"
    with pytest.raises(KindError):
        s.append("three")
    with pytest.raises(KindError):
        s[0:1] = ["x"]
    assert s == [1, 2]

    s[0:1] = [10, 11]
    assert s == [10, 11, 2]


def test_typed_slice_construction_checks_elements():
    with pytest.raises(KindError):
        SliceValue([1, "two"], INT)


def test_untyped_slice_accepts_any_element():
    s = SliceValue([1])
    s.append("x")
    assert s == [1, "x"]
