# domain/run.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from domain.termination import TerminationSignal


class ControllerState(str, Enum):
    INIT = "init"
    RUNNING = "running"
    EVALUATING = "evaluating"
    RETRYING = "retrying"
    PAUSED = "paused"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ControllerState.SUCCEEDED, ControllerState.FAILED)


class RestartType(str, Enum):
    NONE = "none"
    RESUBMIT = "resubmit"
    FULL = "full"


@dataclass(frozen=True)
class HandlerDecision:
    handler: str          # "<default>" for the implicit handler
    status: int
    handled: bool
    restart_type: RestartType = RestartType.NONE
    do_break: bool = False
    message: str = ""


@dataclass(frozen=True)
class AttemptRecord:
    iteration: int
    inputs: Dict[str, Any]
    signal: TerminationSignal
    decisions: List[HandlerDecision] = field(default_factory=list)


@dataclass
class RunContext:
    run_id: str = ""

    inputs: Dict[str, Any] = field(default_factory=dict)
    iteration: int = 0
    max_retries: int = 0
    history: List[AttemptRecord] = field(default_factory=list)
    # handler scratch space, survives RESUBMIT, cleared on FULL
    state: Dict[str, Any] = field(default_factory=dict)

    @property
    def last(self) -> Optional[AttemptRecord]:
        return self.history[-1] if self.history else None
