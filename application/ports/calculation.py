from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict

from domain.termination import TerminationSignal


class CalculationPort(ABC):
    """
    The transport-bound stages of one calculation attempt.

    upload -> submit -> update (until done) -> stash (optional) -> retrieve.
    Any stage may raise ``TransportError`` for a transient failure.
    """

    @abstractmethod
    def upload(self, code: str, inputs: Dict[str, Any], options: Dict[str, Any]) -> str:
        """Stage the inputs and return a handle to the remote working directory."""
        ...

    @abstractmethod
    def submit(self, workdir: str) -> str:
        """Hand the job to the scheduler and return its job id."""
        ...

    @abstractmethod
    def update(self, job_id: str) -> bool:
        """Poll the scheduler; True once the job has left the queue."""
        ...

    @abstractmethod
    def stash(self, workdir: str, target_base: str) -> Dict[str, Any]:
        """Copy the working directory under ``target_base`` and return the stash artifact."""
        ...

    @abstractmethod
    def retrieve(self, workdir: str, job_id: str) -> TerminationSignal:
        """Fetch and parse the outputs of a finished job."""
        ...
