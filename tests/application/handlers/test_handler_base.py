from __future__ import annotations

from application.handlers.base import FunctionErrorHandler, statuses
from application.outcome import HandlerOutcome
from domain.run import AttemptRecord, RestartType, RunContext
from domain.termination import ExitCodes, TerminationSignal


def test_function_handler_wraps_callable() -> None:
    # Arrange
    calls = []

    def apply(ctx, attempt):
        calls.append(attempt.iteration)
        ctx.inputs["retried"] = True
        return HandlerOutcome(handled=True, restart_type=RestartType.RESUBMIT)

    handler = FunctionErrorHandler("retry_once", 450, apply, [ExitCodes.ERROR_OUT_OF_WALLTIME, 410])
    ctx = RunContext(inputs={})
    attempt = AttemptRecord(iteration=2, inputs={}, signal=TerminationSignal(status=410))

    # Act
    outcome = handler.handle(ctx, attempt)

    # Assert
    assert handler.name == "retry_once"
    assert handler.priority == 450
    assert handler.exit_statuses == frozenset({400, 410})
    assert handler.supports(400) and not handler.supports(0)
    assert outcome.handled is True
    assert outcome.restart_type == RestartType.RESUBMIT
    assert ctx.inputs["retried"] is True
    assert calls == [2]


def test_function_handler_without_statuses_matches_nothing() -> None:
    handler = FunctionErrorHandler(name="noop", priority=0, apply=lambda ctx, attempt: HandlerOutcome.declined())

    assert handler.exit_statuses == frozenset()
    assert handler.supports(410) is False
    assert "noop" in repr(handler)


def test_statuses_accepts_exit_codes_and_ints() -> None:
    assert statuses([ExitCodes.ERROR_CANCELLED, 410, 410]) == frozenset({302, 410})
