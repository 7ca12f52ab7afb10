from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from domain.run_record import RunRecord, RunStatus


class RunRepositoryPort(ABC):
    @abstractmethod
    def create(self, record: RunRecord) -> None:
        ...

    @abstractmethod
    def get(self, run_id: str) -> Optional[RunRecord]:
        ...

    @abstractmethod
    def list(self, status: Optional[RunStatus] = None, plan_id: Optional[str] = None) -> List[RunRecord]:
        """Records matching every given filter, oldest first."""
        ...

    @abstractmethod
    def transition_status(
        self,
        run_id: str,
        expected: RunStatus,
        new_status: RunStatus,
        result: Optional[dict] = None,
        error: Optional[str] = None,
        error_detail: Optional[dict] = None,
    ) -> RunRecord:
        ...
