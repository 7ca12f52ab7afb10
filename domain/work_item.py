# domain/work_item.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from domain.exceptions import ValidationError


@dataclass(frozen=True)
class WorkItem:
    """
    One schedulable unit of work: resolved inputs plus execution options.

    ``inputs`` is treated as immutable; the controller works on a deep copy.
    """
    label: str
    code: str
    inputs: Dict[str, Any] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)
    max_retries: Optional[int] = None
    caching: bool = True

    def __post_init__(self) -> None:
        if not self.label or not self.label.strip():
            raise ValidationError("WorkItem label must not be empty")
        if not self.code or not self.code.strip():
            raise ValidationError(f"WorkItem code must not be empty: {self.label}")
        if self.max_retries is not None and self.max_retries < 0:
            raise ValidationError(f"max_retries must be >= 0: {self.label}")
