from __future__ import annotations

import pytest

from application.handlers.pw_handlers import (
    BUILTIN_HANDLERS,
    DiagonalizationErrorsHandler,
    ElectronicConvergenceNotReachedHandler,
    KnownUnrecoverableFailureHandler,
    OutOfWalltimeHandler,
    default_pw_handlers,
)
from domain.run import AttemptRecord, RestartType, RunContext
from domain.termination import ExitCodes, TerminationSignal


def _attempt(code, outputs=None, iteration=1) -> AttemptRecord:
    return AttemptRecord(
        iteration=iteration,
        inputs={},
        signal=TerminationSignal.from_exit_code(code, outputs=outputs),
    )


def _ctx(**electrons) -> RunContext:
    return RunContext(run_id="run-1", inputs={"parameters": {"ELECTRONS": dict(electrons)}}, max_retries=5)


class TestElectronicConvergenceNotReached:
    def test_reduces_mixing_beta_and_restarts_in_full(self):
        ctx = _ctx(mixing_beta=0.4)
        attempt = _attempt(ExitCodes.ERROR_ELECTRONIC_CONVERGENCE_NOT_REACHED, {"remote_folder": {"path": "/a"}})

        outcome = ElectronicConvergenceNotReachedHandler().handle(ctx, attempt)

        assert outcome.handled is True
        assert outcome.restart_type == RestartType.FULL
        assert outcome.restart_from == "remote_folder"
        assert ctx.inputs["parameters"]["ELECTRONS"]["mixing_beta"] == pytest.approx(0.32)

    def test_uses_default_mixing_beta_when_unset(self):
        ctx = RunContext(inputs={})
        attempt = _attempt(ExitCodes.ERROR_ELECTRONIC_CONVERGENCE_NOT_REACHED)

        ElectronicConvergenceNotReachedHandler(factor=0.5).handle(ctx, attempt)

        assert ctx.inputs["parameters"]["ELECTRONS"]["mixing_beta"] == pytest.approx(0.35)

    def test_only_supports_its_status(self):
        handler = ElectronicConvergenceNotReachedHandler()
        assert handler.supports(410) is True
        assert handler.supports(463) is False
        assert handler.priority == 410


class TestDiagonalizationErrors:
    def test_switches_to_next_algorithm(self):
        ctx = _ctx()
        attempt = _attempt(ExitCodes.ERROR_COMPUTING_CHOLESKY)

        outcome = DiagonalizationErrorsHandler().handle(ctx, attempt)

        assert outcome.restart_type == RestartType.RESUBMIT
        assert ctx.inputs["parameters"]["ELECTRONS"]["diagonalization"] == "ppcg"
        assert ctx.state["diagonalizations_tried"] == ["david"]

    def test_cycles_through_algorithms_then_aborts(self):
        ctx = _ctx()
        handler = DiagonalizationErrorsHandler()
        attempt = _attempt(ExitCodes.ERROR_DIAGONALIZATION_TOO_MANY_BANDS_NOT_CONVERGED)

        chosen = []
        for _ in range(3):
            handler.handle(ctx, attempt)
            chosen.append(ctx.inputs["parameters"]["ELECTRONS"]["diagonalization"])
        final = handler.handle(ctx, attempt)

        assert chosen == ["ppcg", "paro", "cg"]
        assert final.do_break is True

    def test_starts_from_configured_algorithm(self):
        ctx = _ctx(diagonalization="cg")

        DiagonalizationErrorsHandler().handle(ctx, _attempt(ExitCodes.ERROR_COMPUTING_CHOLESKY))

        assert ctx.inputs["parameters"]["ELECTRONS"]["diagonalization"] == "david"


class TestOutOfWalltime:
    def test_full_restart_and_takes_output_structure(self):
        ctx = RunContext(inputs={"structure": "old"})
        attempt = _attempt(
            ExitCodes.ERROR_OUT_OF_WALLTIME,
            {"remote_folder": {"path": "/a"}, "output_structure": "relaxed"},
        )

        outcome = OutOfWalltimeHandler().handle(ctx, attempt)

        assert outcome.restart_type == RestartType.FULL
        assert outcome.restart_from == "remote_folder"
        assert ctx.inputs["structure"] == "relaxed"


class TestKnownUnrecoverableFailure:
    def test_aborts(self):
        outcome = KnownUnrecoverableFailureHandler().handle(RunContext(), _attempt(ExitCodes.ERROR_READING_PSEUDO_FILE))

        assert outcome.do_break is True
        assert "pseudopotential" in outcome.message


def test_builtin_handlers_are_keyed_by_name() -> None:
    assert set(BUILTIN_HANDLERS) == {
        "handle_known_unrecoverable_failure",
        "handle_out_of_walltime",
        "handle_diagonalization_errors",
        "handle_electronic_convergence_not_reached",
    }


def test_default_pw_handlers_returns_fresh_instances() -> None:
    first = default_pw_handlers()
    second = default_pw_handlers()

    assert sorted(h.priority for h in first) == [410, 500, 580, 590]
    assert all(a is not b for a, b in zip(first, second))
