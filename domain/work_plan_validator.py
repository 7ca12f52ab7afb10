from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import List

from domain.exceptions import ValidationError
from domain.work_plan import WorkPlan


@dataclass(frozen=True)
class WorkPlanValidator:
    def validate(self, plan: WorkPlan) -> None:
        if not plan.items:
            raise ValidationError(f"Work plan has no items: {plan.meta.id}")

        duplicates = self._find_duplicate_labels(plan)
        if duplicates:
            raise ValidationError(f"Duplicate item labels: {', '.join(duplicates)}")

        if plan.defaults.max_retries is not None and plan.defaults.max_retries < 0:
            raise ValidationError("defaults.max_retries must be >= 0")

        for item in plan.items:
            missing = [key for key in plan.inputs.required if item.inputs.get(key) is None]
            if missing:
                raise ValidationError(
                    f"Missing required inputs for {item.label}: {', '.join(missing)}"
                )

    def _find_duplicate_labels(self, plan: WorkPlan) -> List[str]:
        counts = Counter(item.label for item in plan.items)
        return sorted(label for label, count in counts.items() if count > 1)
