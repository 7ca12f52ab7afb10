from __future__ import annotations

from datetime import datetime, timedelta, timezone

from domain.run import ControllerState
from domain.run_record import RunRecord, RunStatus

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _record(status: RunStatus, **kwargs) -> RunRecord:
    values = dict(
        run_id="run-1",
        plan_id="eos",
        item_label="s100",
        status=status,
        created_at=NOW,
        updated_at=NOW,
        result=None,
        error=None,
        error_detail=None,
    )
    values.update(kwargs)
    return RunRecord(**values)


def test_status_mapping_from_controller_state() -> None:
    assert RunStatus.from_controller_state(ControllerState.INIT) == RunStatus.QUEUED
    assert RunStatus.from_controller_state(ControllerState.EVALUATING) == RunStatus.RUNNING
    assert RunStatus.from_controller_state(ControllerState.RETRYING) == RunStatus.RUNNING
    assert RunStatus.from_controller_state(ControllerState.PAUSED) == RunStatus.PAUSED
    assert RunStatus.from_controller_state(ControllerState.FAILED) == RunStatus.FAILED


def test_with_status_keeps_identity_and_updates_time() -> None:
    later = NOW + timedelta(seconds=5)

    updated = _record(RunStatus.QUEUED).with_status(RunStatus.RUNNING, later)

    assert updated.run_id == "run-1"
    assert updated.created_at == NOW
    assert updated.updated_at == later
    assert updated.status == RunStatus.RUNNING


def test_error_survives_failure_but_not_resume() -> None:
    paused = _record(RunStatus.PAUSED, error="ssh refused", error_detail={"code": "paused"})

    resumed = paused.with_status(RunStatus.RUNNING, NOW)
    failed = paused.with_status(RunStatus.FAILED, NOW)

    assert resumed.error is None
    assert resumed.error_detail is None
    assert failed.error == "ssh refused"


def test_terminal_statuses() -> None:
    assert RunStatus.SUCCEEDED.is_terminal is True
    assert RunStatus.PAUSED.is_terminal is False
