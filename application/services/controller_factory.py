# application/services/controller_factory.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from application.executor.handler_registry import HandlerRegistry
from application.executor.restart_controller import DEFAULT_MAX_RETRIES, RestartController
from application.handlers.factory import HandlerFactory
from application.handlers.pw_handlers import default_pw_handlers
from application.ports.logger import LoggerPort
from application.services.execution_deps import ExecutionDeps
from domain.work_item import WorkItem
from domain.work_plan import WorkPlan


@dataclass(frozen=True)
class ControllerFactory:
    deps: ExecutionDeps
    default_max_retries: int = DEFAULT_MAX_RETRIES
    handler_factory: HandlerFactory = field(default_factory=HandlerFactory)

    def registry_for(self, plan: WorkPlan) -> HandlerRegistry:
        # Reason: Most plans target pw.x and do not spell out handlers.
        # Impact: A plan without a handlers section gets the builtin pw.x set.
        if not plan.handlers:
            return HandlerRegistry(default_pw_handlers())
        return HandlerRegistry(self.handler_factory.build_all(plan.handlers))

    def build(
        self,
        item: WorkItem,
        registry: HandlerRegistry,
        run_id: Optional[str] = None,
        logger: Optional[LoggerPort] = None,
    ) -> RestartController:
        deps = self.deps if logger is None else self.deps.with_logger(logger)
        max_retries = item.max_retries if item.max_retries is not None else self.default_max_retries
        return RestartController(
            item,
            registry,
            deps,
            max_retries=max_retries,
            run_id=run_id,
        )
