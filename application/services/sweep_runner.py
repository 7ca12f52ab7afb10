# application/services/sweep_runner.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from application.executor.restart_controller import RestartResult
from application.ports.logger import LoggerPort
from application.ports.run_scheduler import RunSchedulerPort
from application.services.controller_factory import ControllerFactory
from domain.work_plan import WorkPlan


@dataclass(frozen=True)
class SweepResult:
    plan_id: str
    results: Dict[str, RestartResult]

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results.values())

    @property
    def failed(self) -> List[str]:
        return sorted(label for label, r in self.results.items() if not r.ok)

    @property
    def outputs(self) -> Dict[str, Dict[str, Any]]:
        return {label: r.outputs for label, r in self.results.items() if r.ok}


class SweepRunner:
    """Runs every item of a plan under its own controller, concurrently."""

    def __init__(self, factory: ControllerFactory, scheduler: RunSchedulerPort, logger: LoggerPort):
        self._factory = factory
        self._scheduler = scheduler
        self._logger = logger

    def run(self, plan: WorkPlan, timeout_sec: Optional[float] = None) -> SweepResult:
        registry = self._factory.registry_for(plan)
        logger = self._logger.bind(plan_id=plan.meta.id)
        logger.info("sweep.start", items=len(plan.items), handlers=len(registry))

        futures = {}
        for item in plan.items:
            controller = self._factory.build(item, registry, logger=logger)
            futures[item.label] = self._scheduler.submit(controller.run_id, controller.run)

        results: Dict[str, RestartResult] = {}
        for label, future in futures.items():
            results[label] = future.result(timeout=timeout_sec)

        sweep = SweepResult(plan_id=plan.meta.id, results=results)
        logger.info("sweep.end", ok=sweep.ok, failed=sweep.failed)
        return sweep
