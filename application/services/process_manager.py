# application/services/process_manager.py
from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from application.executor.handler_registry import HandlerRegistry
from application.executor.restart_controller import RestartController, RestartResult
from application.ports.logger import LoggerPort
from application.ports.run_repository import RunRepositoryPort
from application.ports.run_scheduler import RunSchedulerPort
from application.services.controller_factory import ControllerFactory
from application.services.execution_error_builder import ExecutionErrorBuilder
from domain.exceptions import RunStateError
from domain.run import ControllerState
from domain.run_record import RunRecord, RunStatus
from domain.work_item import WorkItem
from domain.work_plan import WorkPlan


class ProcessManager:
    """
    Operator-facing bookkeeping: submit, list, play (resume) and kill runs.

    Each run is one ``RestartController``; the repository mirrors its state.
    """

    def __init__(
        self,
        factory: ControllerFactory,
        repository: RunRepositoryPort,
        scheduler: RunSchedulerPort,
        logger_factory: Callable[[str], LoggerPort],
    ) -> None:
        self._factory = factory
        self._repository = repository
        self._scheduler = scheduler
        self._logger_factory = logger_factory
        self._error_builder = ExecutionErrorBuilder()
        self._controllers: Dict[str, RestartController] = {}
        self._lock = Lock()
        self._record_lock = Lock()

    def submit_plan(self, plan: WorkPlan) -> List[str]:
        registry = self._factory.registry_for(plan)
        # build every controller first so a rejected item leaves nothing queued
        prepared = [self._prepare(item, registry) for item in plan.items]
        return [self._enqueue(plan.meta.id, *entry) for entry in prepared]

    def submit(self, plan_id: str, item: WorkItem, registry: HandlerRegistry) -> str:
        return self._enqueue(plan_id, *self._prepare(item, registry))

    def _prepare(self, item: WorkItem, registry: HandlerRegistry) -> Tuple[str, WorkItem, RestartController, LoggerPort]:
        run_id = uuid4().hex
        logger = self._logger_factory(run_id).bind(run_id=run_id)
        controller = self._factory.build(item, registry, run_id=run_id, logger=logger)
        return run_id, item, controller, logger

    def _enqueue(self, plan_id: str, run_id: str, item: WorkItem, controller: RestartController, logger: LoggerPort) -> str:
        now = datetime.now(timezone.utc)
        self._repository.create(
            RunRecord(
                run_id=run_id,
                plan_id=plan_id,
                item_label=item.label,
                status=RunStatus.QUEUED,
                created_at=now,
                updated_at=now,
                result=None,
                error=None,
                error_detail=None,
            )
        )
        with self._lock:
            self._controllers[run_id] = controller

        logger.info("run.submitted", plan_id=plan_id, item=item.label)
        self._scheduler.submit(run_id, lambda: self._drive(run_id, controller, controller.run, RunStatus.QUEUED, logger))
        return run_id

    def play(self, run_id: str) -> RunRecord:
        controller = self._require_controller(run_id)
        record = self._require_record(run_id)
        if record.status != RunStatus.PAUSED:
            raise RunStateError(f"Run is not paused: {run_id} ({record.status.value})")

        logger = self._logger_factory(run_id).bind(run_id=run_id)
        logger.info("run.play")
        self._scheduler.submit(run_id, lambda: self._drive(run_id, controller, controller.resume, RunStatus.PAUSED, logger))
        return record

    def kill(self, run_id: str) -> RunRecord:
        controller = self._require_controller(run_id)
        self._require_record(run_id)
        logger = self._logger_factory(run_id).bind(run_id=run_id)

        with self._record_lock:
            cancelled = controller.cancel()
            record = self._require_record(run_id)
            if not cancelled:
                raise RunStateError(f"Run already finished: {run_id} ({record.status.value})")
            logger.info("run.kill", status=record.status.value)

            # Queued and paused runs have no worker that would record the outcome.
            if controller.state == ControllerState.FAILED and record.status in (RunStatus.QUEUED, RunStatus.PAUSED):
                try:
                    return self._record_result(run_id, controller.result, expected=record.status)
                except RunStateError:
                    logger.debug("run.kill_raced_worker", run_id=run_id)
        return self._require_record(run_id)

    def get(self, run_id: str) -> Optional[RunRecord]:
        return self._repository.get(run_id)

    def list(self, status: Optional[RunStatus] = None, plan_id: Optional[str] = None) -> List[RunRecord]:
        return self._repository.list(status, plan_id)

    def wait(self, run_id: str, timeout_sec: Optional[float]) -> bool:
        return self._scheduler.wait(run_id, timeout_sec)

    def controller(self, run_id: str) -> Optional[RestartController]:
        with self._lock:
            return self._controllers.get(run_id)

    def _drive(
        self,
        run_id: str,
        controller: RestartController,
        step: Callable[[], RestartResult],
        expected: RunStatus,
        logger: LoggerPort,
    ) -> Optional[RestartResult]:
        try:
            self._repository.transition_status(run_id, expected, RunStatus.RUNNING)
        except RunStateError as exc:
            logger.error("run.transition_failed", error=str(exc))
            return None

        try:
            result = step()
        except Exception as exc:
            logger.error("run.crashed", error=repr(exc))
            self._repository.transition_status(
                run_id,
                RunStatus.RUNNING,
                RunStatus.FAILED,
                error=str(exc),
                error_detail=asdict(self._error_builder.build_from_exception(str(exc))),
            )
            raise

        with self._record_lock:
            # a kill that landed after the pause has already failed the controller
            latest = controller.result
            if latest is not None and latest.state != result.state and latest.state.is_terminal:
                result = latest
            self._record_result(run_id, result, expected=RunStatus.RUNNING)
        logger.info("run.end", status=RunStatus.from_controller_state(result.state).value)
        return result

    def _record_result(self, run_id: str, result: RestartResult, expected: RunStatus) -> RunRecord:
        status = RunStatus.from_controller_state(result.state)
        if result.ok:
            return self._repository.transition_status(run_id, expected, status, result=result.to_dict())
        return self._repository.transition_status(
            run_id,
            expected,
            status,
            result=result.to_dict(),
            error=result.message,
            error_detail=asdict(self._error_builder.build_from_result(result)),
        )

    def _require_controller(self, run_id: str) -> RestartController:
        controller = self.controller(run_id)
        if controller is None:
            raise KeyError(run_id)
        return controller

    def _require_record(self, run_id: str) -> RunRecord:
        record = self._repository.get(run_id)
        if record is None:
            raise KeyError(run_id)
        return record
