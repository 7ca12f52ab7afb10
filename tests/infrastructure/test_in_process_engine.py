from __future__ import annotations

import pytest

from application.exceptions import TransportPausedError
from application.services.transport_retry import TransportRetryPolicy
from domain.termination import ExitCodes
from infrastructure.engine.demo_pw_calculation import DemoPwCalculation, EquationOfState
from infrastructure.engine.in_process_engine import InProcessExecutionEngine
from tests.fakes import RecordingLogger

INPUTS = {"scale_factor": 1.0, "parameters": {"ELECTRONS": {"mixing_beta": 0.3}}}


@pytest.fixture
def sleeps():
    return []


def _engine(calculation, sleeps, max_attempts=5):
    policy = TransportRetryPolicy(max_attempts=max_attempts, initial_interval_sec=1.0)
    return InProcessExecutionEngine(calculation, RecordingLogger(), policy=policy, max_workers=2, sleep=sleeps.append)


def test_converged_calculation_returns_energy(sleeps) -> None:
    # Arrange
    engine = _engine(DemoPwCalculation(), sleeps)

    # Act
    signal = engine.submit("pw.x", INPUTS, {}).result(timeout=5)
    engine.shutdown()

    # Assert
    assert signal.ok is True
    params = signal.outputs["output_parameters"]
    assert params["volume"] == pytest.approx(EquationOfState().volume0)
    assert params["energy"] == pytest.approx(EquationOfState().energy0)
    assert params["restarted_from"] is None
    assert signal.outputs["remote_folder"]["computer"] == "localhost"
    assert sleeps == []


def test_unstable_mixing_beta_fails_with_convergence_status(sleeps) -> None:
    engine = _engine(DemoPwCalculation(), sleeps)

    signal = engine.submit("pw.x", {"scale_factor": 1.0}, {}).result(timeout=5)
    engine.shutdown()

    assert signal.status == ExitCodes.ERROR_ELECTRONIC_CONVERGENCE_NOT_REACHED.status
    assert "remote_folder" in signal.outputs


def test_restart_records_parent_folder(sleeps) -> None:
    engine = _engine(DemoPwCalculation(), sleeps)
    inputs = dict(INPUTS, parent_folder={"computer": "localhost", "path": "/scratch/old"})

    signal = engine.submit("pw.x", inputs, {}).result(timeout=5)
    engine.shutdown()

    assert signal.outputs["output_parameters"]["restarted_from"] == "/scratch/old"


def test_transient_transport_failures_are_retried(sleeps) -> None:
    engine = _engine(DemoPwCalculation(transport_failures=2), sleeps)

    signal = engine.submit("pw.x", INPUTS, {}).result(timeout=5)
    engine.shutdown()

    assert signal.ok is True
    assert sleeps == [1.0, 2.0]


def test_exhausted_transport_surfaces_as_paused(sleeps) -> None:
    engine = _engine(DemoPwCalculation(transport_failures=10), sleeps, max_attempts=3)

    future = engine.submit("pw.x", INPUTS, {})
    with pytest.raises(TransportPausedError) as excinfo:
        future.result(timeout=5)
    engine.shutdown()

    assert excinfo.value.operation == "upload"
    assert excinfo.value.attempts == 3


def test_job_is_polled_until_done(sleeps) -> None:
    # Arrange
    policy = TransportRetryPolicy(initial_interval_sec=1.0)
    engine = InProcessExecutionEngine(
        DemoPwCalculation(polls_until_done=3),
        RecordingLogger(),
        policy=policy,
        sleep=sleeps.append,
        poll_interval_sec=0.5,
    )

    # Act
    signal = engine.submit("pw.x", INPUTS, {}).result(timeout=5)
    engine.shutdown()

    # Assert
    assert signal.ok is True
    assert sleeps == [0.5, 0.5]


def test_stash_option_adds_remote_stash_output(sleeps) -> None:
    calculation = DemoPwCalculation()
    engine = _engine(calculation, sleeps)

    signal = engine.submit("pw.x", INPUTS, {"stash": {"target_base": "/archive/eos/"}}).result(timeout=5)
    engine.shutdown()

    stash = signal.outputs["remote_stash"]
    workdir = signal.outputs["remote_folder"]["path"]
    assert stash["path"].startswith("/archive/eos/")
    assert calculation.stashed == {stash["path"]: workdir}
    assert signal.outputs["output_parameters"]["energy"] == pytest.approx(EquationOfState().energy0)


def test_no_stash_without_option(sleeps) -> None:
    calculation = DemoPwCalculation()
    engine = _engine(calculation, sleeps)

    signal = engine.submit("pw.x", INPUTS, {}).result(timeout=5)
    engine.shutdown()

    assert "remote_stash" not in signal.outputs
    assert calculation.stashed == {}


def test_energy_curve_has_minimum_at_equilibrium() -> None:
    eos = EquationOfState()

    assert eos.energy(eos.volume0) < eos.energy(eos.volume0 * 0.95)
    assert eos.energy(eos.volume0) < eos.energy(eos.volume0 * 1.05)
