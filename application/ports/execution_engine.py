# application/ports/execution_engine.py
from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any, Dict

from domain.termination import TerminationSignal


class ExecutionEnginePort(ABC):
    @abstractmethod
    def submit(self, code: str, inputs: Dict[str, Any], options: Dict[str, Any]) -> "Future[TerminationSignal]":
        """
        Start one attempt and return a future that yields exactly one signal.

        The future raises ``TransportPausedError`` when the substrate gave up on
        a transport operation.
        """
        ...

    def shutdown(self) -> None:
        return None
