from __future__ import annotations

from dataclasses import dataclass

from domain.work_plan import WorkPlan
from domain.work_plan_validator import WorkPlanValidator


@dataclass(frozen=True)
class WorkPlanValidatorService:
    validator: WorkPlanValidator

    def validate(self, plan: WorkPlan) -> None:
        self.validator.validate(plan)

    @classmethod
    def default(cls) -> "WorkPlanValidatorService":
        return cls(validator=WorkPlanValidator())
