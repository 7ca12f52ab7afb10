from __future__ import annotations

from domain.termination import ExitCode, ExitCodes, TerminationSignal


def test_success_signal_is_ok() -> None:
    assert TerminationSignal(status=0).ok is True
    assert TerminationSignal(status=410).ok is False


def test_from_exit_code_copies_outputs() -> None:
    outputs = {"remote_folder": {"path": "/a"}}

    signal = TerminationSignal.from_exit_code(ExitCodes.ERROR_OUT_OF_WALLTIME, outputs)
    outputs["extra"] = 1

    assert signal.status == 400
    assert signal.message == ExitCodes.ERROR_OUT_OF_WALLTIME.message
    assert "extra" not in signal.outputs


def test_unexpected_failure_carries_error_text() -> None:
    signal = TerminationSignal.unexpected_failure(RuntimeError("disk full"))

    assert signal.status == 120
    assert "disk full" in signal.message
    assert signal.outputs == {}


def test_controller_statuses_do_not_collide_with_calculation_statuses() -> None:
    codes = [v for v in vars(ExitCodes).values() if isinstance(v, ExitCode)]
    statuses = [c.status for c in codes]

    assert len(statuses) == len(set(statuses))
    assert {301, 302, 310, 401} <= set(statuses)
