# application/executor/restart_controller.py
from __future__ import annotations

import copy
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from application.exceptions import CacheError, HandlerFaultError, TransportPausedError
from application.executor.handler_registry import HandlerRegistry
from application.outcome import HandlerOutcome
from application.services.execution_deps import ExecutionDeps
from domain.exceptions import RunStateError
from domain.ids import Fingerprint
from domain.run import (
    AttemptRecord,
    ControllerState,
    HandlerDecision,
    RestartType,
    RunContext,
)
from domain.termination import ExitCode, ExitCodes, TerminationSignal
from domain.work_item import WorkItem

DEFAULT_MAX_RETRIES = 5
DEFAULT_HANDLER_NAME = "<default>"


@dataclass(frozen=True)
class RestartResult:
    run_id: str
    label: str
    state: ControllerState
    exit_status: Optional[int]          # None while paused
    message: str
    outputs: Dict[str, Any] = field(default_factory=dict)
    attempts: List[AttemptRecord] = field(default_factory=list)
    is_from_cache: bool = False
    fingerprint: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == ControllerState.SUCCEEDED

    @property
    def paused(self) -> bool:
        return self.state == ControllerState.PAUSED

    @property
    def last_signal(self) -> Optional[TerminationSignal]:
        return self.attempts[-1].signal if self.attempts else None

    @property
    def decisions(self) -> List[HandlerDecision]:
        return [d for attempt in self.attempts for d in attempt.decisions]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "label": self.label,
            "state": self.state.value,
            "exit_status": self.exit_status,
            "message": self.message,
            "outputs": self.outputs,
            "is_from_cache": self.is_from_cache,
            "fingerprint": self.fingerprint,
            "error": self.error,
            "attempts": [
                {
                    "iteration": a.iteration,
                    "status": a.signal.status,
                    "message": a.signal.message,
                    "decisions": [
                        {
                            "handler": d.handler,
                            "handled": d.handled,
                            "restart_type": d.restart_type.value,
                            "do_break": d.do_break,
                            "message": d.message,
                        }
                        for d in a.decisions
                    ],
                }
                for a in self.attempts
            ],
        }


class RestartController:
    """
    Runs one work item to completion, restarting through recoverable failures.

    One instance per work item. The only blocking point is the wait on the
    engine future; everything else is decision logic on the ``RunContext``.
    """

    def __init__(
        self,
        work_item: WorkItem,
        registry: HandlerRegistry,
        deps: ExecutionDeps,
        max_retries: Optional[int] = None,
        restart_input_slot: str = "parent_folder",
        run_id: Optional[str] = None,
    ):
        if max_retries is None:
            max_retries = work_item.max_retries if work_item.max_retries is not None else DEFAULT_MAX_RETRIES
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0: {max_retries}")

        self._item = work_item
        self._registry = registry
        self._restart_input_slot = restart_input_slot
        self._ctx = RunContext(
            run_id=run_id or uuid.uuid4().hex,
            inputs=copy.deepcopy(work_item.inputs),
            max_retries=max_retries,
        )
        self._deps = deps.with_logger(deps.logger.bind(run_id=self._ctx.run_id, item=work_item.label))
        self._state = ControllerState.INIT
        self._result: Optional[RestartResult] = None
        self._lock = threading.Lock()
        self._cancel_requested = threading.Event()

        # Unhashable inputs are a caller error: surface it before anything runs.
        self._fingerprint: Optional[Fingerprint] = None
        if self._deps.cache is not None and work_item.caching:
            self._fingerprint = self._deps.cache.fingerprint(work_item)

    @property
    def run_id(self) -> str:
        return self._ctx.run_id

    @property
    def work_item(self) -> WorkItem:
        return self._item

    @property
    def state(self) -> ControllerState:
        with self._lock:
            return self._state

    @property
    def context(self) -> RunContext:
        return self._ctx

    @property
    def result(self) -> Optional[RestartResult]:
        return self._result

    def run(self) -> RestartResult:
        with self._lock:
            if self._state == ControllerState.FAILED and self._cancel_requested.is_set():
                return self._result
            if self._state != ControllerState.INIT:
                raise RunStateError(f"Controller already started: {self.run_id} ({self._state.value})")
            self._state = ControllerState.RUNNING

        self._deps.logger.info(
            "controller.start",
            code=self._item.code,
            max_retries=self._ctx.max_retries,
            fingerprint=self._fingerprint.short() if self._fingerprint else None,
        )

        cached = self._try_cache()
        if cached is not None:
            return cached
        return self._loop()

    def resume(self) -> RestartResult:
        with self._lock:
            if self._state != ControllerState.PAUSED:
                raise RunStateError(f"Controller is not paused: {self.run_id} ({self._state.value})")
            self._state = ControllerState.RUNNING

        self._deps.logger.info("controller.resume", iteration=self._ctx.iteration)
        return self._loop()

    def cancel(self) -> bool:
        """
        Request cancellation. Takes effect between attempts, never mid-attempt.

        Returns False when the run had already reached a terminal state.
        """
        self._cancel_requested.set()
        with self._lock:
            if self._state.is_terminal:
                return False
            if self._state in (ControllerState.INIT, ControllerState.PAUSED):
                self._result = self._build_result(
                    ControllerState.FAILED,
                    ExitCodes.ERROR_CANCELLED.status,
                    ExitCodes.ERROR_CANCELLED.message,
                )
                self._state = ControllerState.FAILED
        self._deps.logger.info("controller.cancel_requested")
        return True

    # state machine

    def _loop(self) -> RestartResult:
        ctx = self._ctx
        while True:
            if self._cancel_requested.is_set():
                return self._fail(ExitCodes.ERROR_CANCELLED)

            self._transition(ControllerState.RUNNING)
            try:
                attempt = self._run_attempt(ctx)
            except TransportPausedError as exc:
                return self._pause(exc)

            self._transition(ControllerState.EVALUATING)
            if attempt.signal.ok:
                return self._succeed(attempt.signal)

            # a cancelled run never reaches handler dispatch
            if self._cancel_requested.is_set():
                return self._fail(ExitCodes.ERROR_CANCELLED)

            try:
                handler_name, outcome = self._dispatch(ctx, attempt)
            except HandlerFaultError as exc:
                return self._fail(ExitCodes.ERROR_HANDLER_FAULT, message=str(exc), error=repr(exc.cause))

            if outcome.do_break:
                return self._fail(
                    ExitCodes.ERROR_UNRECOVERABLE_FAILURE,
                    message=outcome.message or ExitCodes.ERROR_UNRECOVERABLE_FAILURE.message,
                )

            if ctx.iteration > ctx.max_retries:
                self._deps.logger.error(
                    "controller.retries_exhausted",
                    iteration=ctx.iteration,
                    max_retries=ctx.max_retries,
                    status=attempt.signal.status,
                )
                return self._fail(ExitCodes.ERROR_MAXIMUM_RETRIES_EXCEEDED)

            self._transition(ControllerState.RETRYING)
            try:
                self._apply_restart(ctx, attempt, handler_name, outcome)
            except HandlerFaultError as exc:
                return self._fail(ExitCodes.ERROR_HANDLER_FAULT, message=str(exc), error=repr(exc.cause))

    def _run_attempt(self, ctx: RunContext) -> AttemptRecord:
        iteration = ctx.iteration + 1
        inputs = copy.deepcopy(ctx.inputs)

        self._deps.logger.info("attempt.start", iteration=iteration)
        t0 = time.perf_counter()

        try:
            future = self._deps.engine.submit(self._item.code, inputs, dict(self._item.options))
            signal = future.result()
        except TransportPausedError:
            raise
        except Exception as exc:
            self._deps.logger.error("attempt.engine_failure", iteration=iteration, error=repr(exc))
            signal = TerminationSignal.unexpected_failure(exc)

        if signal is None:
            signal = TerminationSignal.unexpected_failure(RuntimeError("engine returned no termination signal"))

        ctx.iteration = iteration
        self._deps.logger.info(
            "attempt.end",
            iteration=iteration,
            status=signal.status,
            elapsed_ms=int((time.perf_counter() - t0) * 1000),
        )

        attempt = AttemptRecord(iteration=iteration, inputs=inputs, signal=signal)
        ctx.history.append(attempt)
        return attempt

    def _dispatch(self, ctx: RunContext, attempt: AttemptRecord) -> Tuple[str, HandlerOutcome]:
        """Highest priority first; the first handler that reports ``handled`` wins."""
        status = attempt.signal.status

        for handler in self._registry.candidates(status):
            try:
                outcome = handler.handle(ctx, attempt)
            except Exception as exc:
                self._deps.logger.error("handler.fault", handler=handler.name, status=status, error=repr(exc))
                raise HandlerFaultError(handler.name, exc) from exc

            if outcome is None:
                raise HandlerFaultError(handler.name, RuntimeError("Handler returned None"))

            attempt.decisions.append(
                HandlerDecision(
                    handler=handler.name,
                    status=status,
                    handled=outcome.handled,
                    restart_type=outcome.restart_type,
                    do_break=outcome.do_break,
                    message=outcome.message,
                )
            )
            if outcome.handled:
                self._deps.logger.info(
                    "handler.selected",
                    handler=handler.name,
                    priority=handler.priority,
                    status=status,
                    restart_type=outcome.restart_type.value,
                    do_break=outcome.do_break,
                    action=outcome.message,
                )
                return handler.name, outcome

            self._deps.logger.debug("handler.declined", handler=handler.name, status=status)

        # implicit default handler: bounded resubmission of unknown/infrastructure failures
        outcome = HandlerOutcome(
            handled=True,
            restart_type=RestartType.RESUBMIT,
            message=f"no handler dealt with status {status}, resubmitting",
        )
        attempt.decisions.append(
            HandlerDecision(
                handler=DEFAULT_HANDLER_NAME,
                status=status,
                handled=True,
                restart_type=RestartType.RESUBMIT,
                message=outcome.message,
            )
        )
        self._deps.logger.warning("handler.default", status=status, message=attempt.signal.message)
        return DEFAULT_HANDLER_NAME, outcome

    def _apply_restart(
        self,
        ctx: RunContext,
        attempt: AttemptRecord,
        handler_name: str,
        outcome: HandlerOutcome,
    ) -> None:
        if outcome.restart_type != RestartType.FULL:
            return

        slot = outcome.restart_from
        if not slot or slot not in attempt.signal.outputs:
            raise HandlerFaultError(
                handler_name,
                LookupError(f"restart artifact '{slot}' missing from outputs of attempt {attempt.iteration}"),
            )

        artifact = attempt.signal.outputs[slot]
        ctx.state.clear()
        ctx.inputs[self._restart_input_slot] = copy.deepcopy(artifact)
        self._deps.logger.info("controller.full_restart", restart_from=slot, iteration=attempt.iteration)

    def _try_cache(self) -> Optional[RestartResult]:
        cache = self._deps.cache
        if cache is None or self._fingerprint is None:
            return None

        entry = cache.lookup(self._fingerprint)
        if entry is None:
            self._deps.logger.debug("cache.miss", fingerprint=self._fingerprint.short())
            return None

        self._deps.logger.info("cache.hit", fingerprint=self._fingerprint.short())
        return self._finish(
            ControllerState.SUCCEEDED,
            ExitCodes.SUCCESS.status,
            entry.message or ExitCodes.SUCCESS.message,
            outputs=cache.clone(entry),
            is_from_cache=True,
        )

    # terminal transitions

    def _succeed(self, signal: TerminationSignal) -> RestartResult:
        self._deps.logger.info("controller.end", state=ControllerState.SUCCEEDED.value, iterations=self._ctx.iteration)
        result = self._finish(
            ControllerState.SUCCEEDED,
            signal.status,
            signal.message or ExitCodes.SUCCESS.message,
            outputs=copy.deepcopy(dict(signal.outputs)),
        )
        self._store(signal)
        return result

    def _store(self, signal: TerminationSignal) -> None:
        # the run is already SUCCEEDED here; a failed write only costs a future hit
        cache = self._deps.cache
        if cache is None or self._fingerprint is None:
            return
        try:
            stored = cache.store(self._fingerprint, signal)
        except CacheError as exc:
            self._deps.logger.error("cache.store_failed", fingerprint=self._fingerprint.short(), error=str(exc))
            return
        self._deps.logger.info("cache.store", fingerprint=self._fingerprint.short(), stored=stored)

    def _fail(self, code: ExitCode, message: Optional[str] = None, error: Optional[str] = None) -> RestartResult:
        self._deps.logger.info(
            "controller.end",
            state=ControllerState.FAILED.value,
            exit_status=code.status,
            iterations=self._ctx.iteration,
        )
        return self._finish(ControllerState.FAILED, code.status, message or code.message, error=error)

    def _pause(self, exc: TransportPausedError) -> RestartResult:
        self._deps.logger.warning(
            "controller.paused",
            operation=exc.operation,
            attempts=exc.attempts,
            iteration=self._ctx.iteration,
        )
        return self._finish(ControllerState.PAUSED, None, str(exc), error=repr(exc.cause))

    def _finish(self, state: ControllerState, exit_status: Optional[int], message: str, **kwargs: Any) -> RestartResult:
        result = self._build_result(state, exit_status, message, **kwargs)
        with self._lock:
            self._state = state
            self._result = result
        return result

    def _build_result(self, state: ControllerState, exit_status: Optional[int], message: str, **kwargs: Any) -> RestartResult:
        return RestartResult(
            run_id=self._ctx.run_id,
            label=self._item.label,
            state=state,
            exit_status=exit_status,
            message=message,
            attempts=list(self._ctx.history),
            fingerprint=self._fingerprint.value if self._fingerprint else None,
            **kwargs,
        )

    def _transition(self, state: ControllerState) -> None:
        with self._lock:
            self._state = state
