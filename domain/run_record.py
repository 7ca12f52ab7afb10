from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from domain.run import ControllerState


class RunStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    PAUSED = "paused"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.SUCCEEDED, RunStatus.FAILED)

    @classmethod
    def from_controller_state(cls, state: ControllerState) -> "RunStatus":
        if state == ControllerState.INIT:
            return cls.QUEUED
        if state == ControllerState.PAUSED:
            return cls.PAUSED
        if state == ControllerState.SUCCEEDED:
            return cls.SUCCEEDED
        if state == ControllerState.FAILED:
            return cls.FAILED
        return cls.RUNNING


@dataclass(frozen=True)
class RunRecord:
    run_id: str
    plan_id: str
    item_label: str
    status: RunStatus
    created_at: datetime
    updated_at: datetime
    result: Optional[Dict[str, Any]]
    error: Optional[str]
    error_detail: Optional[Dict[str, Any]]

    def with_status(
        self,
        status: RunStatus,
        updated_at: datetime,
        result: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        error_detail: Optional[Dict[str, Any]] = None,
    ) -> "RunRecord":
        return RunRecord(
            run_id=self.run_id,
            plan_id=self.plan_id,
            item_label=self.item_label,
            status=status,
            created_at=self.created_at,
            updated_at=updated_at,
            result=result if result is not None else self.result,
            error=error if error is not None else self._carried(status, self.error),
            error_detail=error_detail if error_detail is not None else self._carried(status, self.error_detail),
        )

    @staticmethod
    def _carried(status: RunStatus, value: Any) -> Any:
        # a resumed run that succeeds must not keep the error of its pause
        return None if status in (RunStatus.RUNNING, RunStatus.SUCCEEDED) else value
