from __future__ import annotations

import pytest

from application.exceptions import TransportPausedError
from application.services.controller_factory import ControllerFactory
from application.services.process_manager import ProcessManager
from application.services.result_cache import ResultCache
from domain.exceptions import RunStateError, ValidationError
from domain.run_record import RunStatus
from domain.work_plan import PlanMeta, WorkPlan
from infrastructure.cache.in_memory_cache_store import InMemoryCacheStore
from infrastructure.run.in_memory_run_repository import InMemoryRunRepository
from tests.fakes import (
    SUCCESS,
    ManualScheduler,
    RecordingLogger,
    ScriptedEngine,
    failure,
    make_deps,
    make_item,
)


def _manager(engine, logger=None):
    logger = logger or RecordingLogger()
    scheduler = ManualScheduler()
    repository = InMemoryRunRepository()
    factory = ControllerFactory(deps=make_deps(engine, logger=logger), default_max_retries=2)
    manager = ProcessManager(factory, repository, scheduler, lambda run_id: logger)
    return manager, scheduler


def _submit(manager, label="item"):
    registry = manager._factory.registry_for(WorkPlan(meta=PlanMeta(id="p", name="p"), items=[]))
    return manager.submit("p", make_item(label=label), registry)


def test_submit_queues_then_records_success() -> None:
    # Arrange
    manager, scheduler = _manager(ScriptedEngine([SUCCESS]))

    # Act
    run_id = _submit(manager)
    queued = manager.get(run_id)
    scheduler.run(run_id)
    record = manager.get(run_id)

    # Assert
    assert queued.status == RunStatus.QUEUED
    assert record.status == RunStatus.SUCCEEDED
    assert record.item_label == "item"
    assert record.result["exit_status"] == 0
    assert record.error is None
    assert manager.wait(run_id, timeout_sec=0) is True


def test_failed_run_records_error_detail() -> None:
    manager, scheduler = _manager(ScriptedEngine([], default=failure(999)))

    run_id = _submit(manager)
    scheduler.run(run_id)
    record = manager.get(run_id)

    assert record.status == RunStatus.FAILED
    assert record.error_detail["code"] == "run_failed"
    assert record.error_detail["exit_status"] == 401
    assert len(record.result["attempts"]) == 3


def test_paused_run_can_be_played() -> None:
    # Arrange
    engine = ScriptedEngine([TransportPausedError("upload", 5), SUCCESS])
    manager, scheduler = _manager(engine)
    run_id = _submit(manager)
    scheduler.run(run_id)

    paused = manager.get(run_id)

    # Act
    manager.play(run_id)
    scheduler.run(run_id)

    # Assert
    assert paused.status == RunStatus.PAUSED
    assert paused.error_detail["code"] == "paused"
    record = manager.get(run_id)
    assert record.status == RunStatus.SUCCEEDED
    assert record.error is None
    assert record.error_detail is None


def test_play_requires_paused_run() -> None:
    manager, scheduler = _manager(ScriptedEngine([SUCCESS]))
    run_id = _submit(manager)

    with pytest.raises(RunStateError):
        manager.play(run_id)


def test_kill_queued_run_fails_it_immediately() -> None:
    # Arrange
    engine = ScriptedEngine([])
    manager, scheduler = _manager(engine)
    run_id = _submit(manager)

    # Act
    record = manager.kill(run_id)
    scheduler.run(run_id)

    # Assert
    assert record.status == RunStatus.FAILED
    assert record.error_detail["exit_status"] == 302
    assert manager.get(run_id).status == RunStatus.FAILED
    assert engine.submissions == []


def test_kill_paused_run() -> None:
    manager, scheduler = _manager(ScriptedEngine([TransportPausedError("retrieve", 5)]))
    run_id = _submit(manager)
    scheduler.run(run_id)

    record = manager.kill(run_id)

    assert record.status == RunStatus.FAILED
    assert record.result["exit_status"] == 302


def test_kill_running_run_takes_effect_after_attempt() -> None:
    # Arrange
    holder = {}

    def kill_mid_attempt(inputs):
        holder["during"] = holder["manager"].kill(holder["run_id"])
        return failure(410)

    manager, scheduler = _manager(ScriptedEngine([kill_mid_attempt]))
    holder["manager"] = manager
    holder["run_id"] = run_id = _submit(manager)

    # Act
    scheduler.run(run_id)

    # Assert
    assert holder["during"].status == RunStatus.RUNNING
    record = manager.get(run_id)
    assert record.status == RunStatus.FAILED
    assert record.result["exit_status"] == 302


def test_kill_finished_run_raises() -> None:
    manager, scheduler = _manager(ScriptedEngine([SUCCESS]))
    run_id = _submit(manager)
    scheduler.run(run_id)

    with pytest.raises(RunStateError):
        manager.kill(run_id)


def test_unknown_run_raises_key_error() -> None:
    manager, _ = _manager(ScriptedEngine([]))

    with pytest.raises(KeyError):
        manager.play("missing")
    with pytest.raises(KeyError):
        manager.kill("missing")
    assert manager.get("missing") is None


def test_submit_plan_creates_one_run_per_item() -> None:
    manager, scheduler = _manager(ScriptedEngine([], default=SUCCESS))
    plan = WorkPlan(
        meta=PlanMeta(id="eos", name="eos"),
        items=[make_item(label="a"), make_item(label="b")],
    )

    run_ids = manager.submit_plan(plan)

    assert len(run_ids) == 2
    assert sorted(r.item_label for r in manager.list()) == ["a", "b"]
    assert len(manager.list(RunStatus.QUEUED)) == 2
    assert all(r.plan_id == "eos" for r in manager.list())


def test_run_events_reach_the_run_logger() -> None:
    logger = RecordingLogger()
    manager, scheduler = _manager(ScriptedEngine([SUCCESS]), logger=logger)

    run_id = _submit(manager)
    scheduler.run(run_id)

    events = logger.events()
    assert events[0] == "run.submitted"
    assert "controller.start" in events
    assert events[-1] == "run.end"


def test_list_filters_by_plan() -> None:
    manager, scheduler = _manager(ScriptedEngine([], default=SUCCESS))
    eos = WorkPlan(meta=PlanMeta(id="eos", name="eos"), items=[make_item(label="a")])
    scf = WorkPlan(meta=PlanMeta(id="scf", name="scf"), items=[make_item(label="b")])
    manager.submit_plan(eos)
    [scf_run] = manager.submit_plan(scf)
    scheduler.run(scf_run)

    assert [r.item_label for r in manager.list(plan_id="eos")] == ["a"]
    assert [r.item_label for r in manager.list(RunStatus.SUCCEEDED, plan_id="scf")] == ["b"]
    assert manager.list(RunStatus.SUCCEEDED, plan_id="eos") == []


def test_kill_between_pause_and_record_is_recorded_as_cancelled() -> None:
    # Arrange
    manager, scheduler = _manager(ScriptedEngine([TransportPausedError("submit", 5)]))
    run_id = _submit(manager)
    controller = manager.controller(run_id)
    pause_then_kill = controller.run
    killed = {}

    def run_and_kill():
        result = pause_then_kill()
        killed["record"] = manager.kill(run_id)
        return result

    controller.run = run_and_kill

    # Act
    scheduler.run(run_id)

    # Assert
    assert killed["record"].status == RunStatus.RUNNING
    record = manager.get(run_id)
    assert record.status == RunStatus.FAILED
    assert record.result["exit_status"] == 302
    with pytest.raises(RunStateError):
        manager.play(run_id)


def test_plan_with_unfingerprintable_item_queues_nothing() -> None:
    logger = RecordingLogger()
    scheduler = ManualScheduler()
    deps = make_deps(ScriptedEngine([], default=SUCCESS), cache=ResultCache(InMemoryCacheStore()), logger=logger)
    manager = ProcessManager(ControllerFactory(deps=deps), InMemoryRunRepository(), scheduler, lambda run_id: logger)
    plan = WorkPlan(
        meta=PlanMeta(id="eos", name="eos"),
        items=[
            make_item(label="good"),
            make_item(label="bad", inputs={"kpoints": {6: "mesh"}}),
        ],
    )

    with pytest.raises(ValidationError):
        manager.submit_plan(plan)

    assert manager.list() == []
    assert scheduler.pending == {}
