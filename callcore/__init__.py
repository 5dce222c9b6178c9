from callcore.callcore_datatypes import (
    INT, STRING, ERROR, SliceKind, FuncType,
    ErrorValue, DomainError, SliceValue, Spread, Return, Environment, FunctionHandle,
    CallError, ArityError, SignatureError, KindError, ReturnError, FrameStateError, UnrecoveredFailure,
    copy_value, zero, equal, conforms, kind_of,
)
from callcore.callcore_signature import (
    Param, ReturnSlot, FunctionDescriptor, function, make_function_type, signature_compatible,
)
from callcore.callcore_frame import CallState, Frame, bind_parameters
from callcore.callcore_interpreter import Evaluator
from callcore.callcore_runtime import Runtime, ExecutionResult, Variable, StdLib

__all__ = [
    "INT", "STRING", "ERROR", "SliceKind", "FuncType",
    "ErrorValue", "DomainError", "SliceValue", "Spread", "Return", "Environment", "FunctionHandle",
    "CallError", "ArityError", "SignatureError", "KindError", "ReturnError", "FrameStateError",
    "UnrecoveredFailure",
    "copy_value", "zero", "equal", "conforms", "kind_of",
    "Param", "ReturnSlot", "FunctionDescriptor", "function", "make_function_type", "signature_compatible",
    "CallState", "Frame", "bind_parameters",
    "Evaluator",
    "Runtime", "ExecutionResult", "Variable", "StdLib",
]
