# domain/work_plan.py
"""
Work plan domain model
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from domain.work_item import WorkItem


@dataclass(frozen=True)
class PlanMeta:
    id: str
    name: str
    version: int = 1
    description: str = ""


@dataclass(frozen=True)
class PlanInputs:
    required: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PlanDefaults:
    code: str = ""
    max_retries: Optional[int] = None
    caching: bool = True
    options: Dict[str, Any] = field(default_factory=dict)
    inputs: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HandlerSpec:
    type: str                 # "builtin" | "scale_parameter"
    name: str
    priority: Optional[int] = None
    exit_statuses: List[int] = field(default_factory=list)
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WorkPlan:
    """
    Work plan aggregate root
    """
    meta: PlanMeta
    items: List[WorkItem]
    inputs: PlanInputs = field(default_factory=PlanInputs)
    defaults: PlanDefaults = field(default_factory=PlanDefaults)
    handlers: List[HandlerSpec] = field(default_factory=list)

    def item(self, label: str) -> WorkItem:
        for work_item in self.items:
            if work_item.label == label:
                return work_item
        raise KeyError(label)
