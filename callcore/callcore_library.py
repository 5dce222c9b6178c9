"""
The core library: prebuilt functions loaded into every Runtime's root scope.

Each one exercises a piece of the call semantics: multiple and named
results, variadics, closures, higher-order functions and deferred calls.
"""
from callcore.callcore_datatypes import INT, STRING, ERROR, SliceKind, Return
from callcore.callcore_signature import FunctionDescriptor, function, make_function_type

BINARY_INT = make_function_type([INT, INT], [INT])
UNARY_INT = make_function_type([INT], [INT])
INT_SOURCE = make_function_type([], [INT])


def _trunc_div(a: int, b: int) -> int:
    # integer division truncating toward zero
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


@function(params=[("a", INT), ("b", INT)], returns=[INT])
def add(frame):
    return Return(frame["a"] + frame["b"])


@function(params=[("a", INT), ("b", INT)], returns=[INT])
def multiply(frame):
    return Return(frame["a"] * frame["b"])


@function(params=[("a", STRING), ("b", STRING)], returns=[STRING])
def concat(frame):
    return Return(frame["a"] + frame["b"])


@function(params=[("a", STRING), ("b", STRING)], returns=[STRING, STRING])
def swap(frame):
    return Return(frame["b"], frame["a"])


@function(name="sum", params=[("nums", INT, True)], returns=[INT])
def sum_ints(frame):
    total = 0
    for n in frame["nums"]:
        total += n
    return Return(total)


@function(params=[("sep", STRING), ("parts", STRING, True)], returns=[STRING])
def join(frame):
    return Return(frame["sep"].join(frame["parts"]))


@function(params=[("a", INT), ("b", INT)], returns=[INT, ERROR])
def divide(frame):
    """Integer division; reports division by zero as an error result."""
    if frame["b"] == 0:
        return Return(0, frame["new_error"]("division by zero"))
    return Return(_trunc_div(frame["a"], frame["b"]), None)


@function(params=[("total", INT)], returns=[("x", INT), ("y", INT)])
def split(frame):
    frame.results["x"] = _trunc_div(frame["total"] * 4, 9)
    frame.results["y"] = frame["total"] - frame.results["x"]
    return Return()


@function(params=[("a", INT), ("b", INT)], returns=[("result", INT), ("err", ERROR)])
def checked_subtract(frame):
    """Subtracts b from a; a negative difference leaves result at zero and sets err."""
    diff = frame["a"] - frame["b"]
    if diff < 0:
        frame.results["err"] = frame["errorf"]("result is negative: {{value}}", value=diff)
        return Return()
    frame.results["result"] = diff
    return Return()


@function(returns=[("result", INT), ("second", INT)])
def deferred_override(frame):
    frame.results["result"] = 15
    frame.results["second"] = 20

    def override():
        frame.results["result"] = 10

    frame.defer(override)
    return Return()


@function(params=[("n", INT)], returns=[("result", INT)])
def doubled_on_return(frame):
    """Returns n explicitly; a deferred call then doubles the result slot."""
    def double():
        frame.results["result"] = frame.results["result"] * 2

    frame.defer(double)
    return Return(frame["n"])


@function(params=[("n", INT)])
def deferred_countdown(frame):
    # Each deferred emit captures the loop value at registration.
    for i in range(frame["n"]):
        frame.defer(frame["emit"], "stdout", i)


def _multiplier_body(frame):
    return Return(frame["x"] * frame["factor"])


@function(params=[("factor", INT)], returns=[UNARY_INT])
def create_multiplier(frame):
    return Return(frame.closure(FunctionDescriptor("multiplier", [("x", INT)], [INT], _multiplier_body)))


def _tick_body(frame):
    frame["count"] = frame["count"] + 1
    return Return(frame["count"])


@function(returns=[INT_SOURCE])
def counter(frame):
    frame.declare("count", 0)
    return Return(frame.closure(FunctionDescriptor("tick", [], [INT], _tick_body)))


@function(params=[("op", BINARY_INT), ("a", INT), ("b", INT)], returns=[INT])
def apply(frame):
    result, = frame.call(frame["op"], frame["a"], frame["b"])
    return Return(result)


@function(params=[("n", INT)], returns=[INT])
def increment(frame):
    frame["n"] = frame["n"] + 1
    return Return(frame["n"])


@function(params=[("values", SliceKind(INT))])
def double_each(frame):
    values = frame["values"]
    for i in range(len(values)):
        values[i] = values[i] * 2
    # Rebinding the parameter does not reach the caller's slice.
    frame["values"] = None


@function(params=[("n", INT)], returns=[INT])
def factorial(frame):
    n = frame["n"]
    if n <= 1:
        return Return(1)
    sub, = frame.call(frame["factorial"], n - 1)
    return Return(n * sub)


LIBRARY = [
    add,
    multiply,
    concat,
    swap,
    sum_ints,
    join,
    divide,
    split,
    checked_subtract,
    deferred_override,
    doubled_on_return,
    deferred_countdown,
    create_multiplier,
    counter,
    apply,
    increment,
    double_each,
    factorial,
]
