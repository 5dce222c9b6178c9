"""
The callcore invocation engine.

Every call of a FunctionHandle runs the same state machine:
Binding -> Executing -> Returning -> Draining -> Finalized.
"""
import os
import sys
from typing import Any, List, Optional, Tuple

from callcore.callcore_datatypes import (
    FunctionHandle, CallError, ReturnError, UnrecoveredFailure, is_return,
)
from callcore.callcore_frame import CallState, DeferredCall, Frame, bind_parameters


class Evaluator:
    """The callcore execution engine."""
    def __init__(self, debug: Optional[bool] = None):
        self.side_effects: List[Any] = []
        self.call_stack: List[dict] = []
        self.current_frame: Optional[Frame] = None
        self.debug = bool(os.environ.get("CALLCORE_DEBUG")) if debug is None else debug

    def _push_frame(self, name, func, args) -> int:
        # A running body that recovered from a nested failure leaves that
        # failure's entries behind; drop them before the next call.
        caller = self.current_frame
        if caller is not None and caller.state is CallState.EXECUTING:
            del self.call_stack[caller.stack_depth + 1:]
        self.call_stack.append({
            'name': name,
            'func': func,
            'args': args,
        })
        return len(self.call_stack) - 1

    def _pop_frame(self, depth: int):
        del self.call_stack[depth:]

    def _dbg(self, *parts):
        if self.debug:
            print("[DBG]", *parts, file=sys.stderr)

    def call(self, func: Any, args: List[Any]) -> Tuple[Any, ...]:
        """Calls a function value (FunctionHandle or host callable) and returns its results."""
        args = list(args)
        match func:
            case FunctionHandle():
                return self.invoke(func, args)

            case None:
                raise UnrecoveredFailure("call of nil function value")

            case _ if callable(func):
                # Host callables report a single result, a tuple of results, or nothing.
                name = getattr(func, '__name__', '<callable>')
                self._dbg("host call", name, "argc", len(args))
                depth = self._push_frame(name, func, args)
                result = func(*args)
                self._pop_frame(depth)
                if result is None:
                    return ()
                if isinstance(result, tuple):
                    return result
                return (result,)

            case _:
                raise CallError(f"Object is not callable: {func!r}")

    def invoke(self, handle: FunctionHandle, args: List[Any]) -> Tuple[Any, ...]:
        """Runs one invocation of handle through to Finalized."""
        descriptor = handle.descriptor
        name = descriptor.name
        if self.current_frame is None:
            # A new top-level call starts with a clean trace.
            self.call_stack.clear()

        # Binding: failures leave no frame behind.
        scope = bind_parameters(descriptor, args, parent=handle.closure)
        frame = Frame(handle, self, scope)
        frame.stack_depth = self._push_frame(name, handle, args)
        self._dbg("invoke", name, "argc", len(args))

        prev_frame = self.current_frame
        self.current_frame = frame
        body_failure: Optional[Exception] = None
        try:
            frame.transition(CallState.EXECUTING)
            try:
                outcome = descriptor.body(frame)
                frame.transition(CallState.RETURNING)
                self._apply_return(frame, outcome)
            except Exception as e:
                self._dbg("body failed", name, type(e).__name__, e)
                body_failure = e

            frame.transition(CallState.DRAINING)
            if len(frame.defers):
                self._dbg("draining", name, "deferred", len(frame.defers))
            deferred_failures = frame.defers.drain(self._run_deferred)

            frame.transition(CallState.FINALIZED)
            results = frame.results.snapshot()
        finally:
            frame.results.seal()
            self.current_frame = prev_frame

        if body_failure is not None or deferred_failures:
            raise self._outcome_failure(name, body_failure, deferred_failures)
        self._pop_frame(frame.stack_depth)
        self._dbg("finalized", name, results)
        return results

    def _apply_return(self, frame: Frame, outcome: Any):
        """Writes the body's return operands into the result slots."""
        descriptor = frame.descriptor
        if outcome is None or (is_return(outcome) and outcome.blank):
            if descriptor.returns and not descriptor.named_returns:
                raise ReturnError(
                    f"missing return values in {descriptor.name}",
                    detail=f"want {len(descriptor.returns)} values",
                )
            # Blank return: named slots are returned as they stand.
            return
        if not is_return(outcome):
            raise ReturnError(
                f"body of {descriptor.name} must produce a Return or None, got {type(outcome).__name__}"
            )
        frame.results.fill(outcome.values)

    def _run_deferred(self, entry: DeferredCall):
        self._dbg("deferred", entry.label, "args", entry.args)
        self.call(entry.func, list(entry.args))

    def _outcome_failure(self, name: str, body_failure: Optional[Exception],
                         deferred_failures: List[Exception]) -> Exception:
        """Picks the exception a failed invocation raises.

        The most recent failure wins. A CallError or UnrecoveredFailure from
        the body propagates unchanged when no deferred computation failed;
        everything else surfaces as an UnrecoveredFailure.
        """
        if not deferred_failures and isinstance(body_failure, (CallError, UnrecoveredFailure)):
            return body_failure
        failures = ([body_failure] if body_failure is not None else []) + list(deferred_failures)
        last = failures[-1]
        if len(failures) == 1 and isinstance(last, UnrecoveredFailure):
            return last
        origin = "deferred call" if deferred_failures else "body"
        err = UnrecoveredFailure(f"{type(last).__name__} in {origin} of {name}: {last}", failures)
        err.__cause__ = last
        return err
