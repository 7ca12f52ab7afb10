# application/outcome.py
from dataclasses import dataclass
from typing import Optional

from domain.run import RestartType


@dataclass(frozen=True)
class HandlerOutcome:
    handled: bool
    restart_type: RestartType = RestartType.NONE
    do_break: bool = False
    restart_from: Optional[str] = None   # output slot of the failed attempt, FULL only
    message: str = ""

    @classmethod
    def declined(cls, message: str = "") -> "HandlerOutcome":
        return cls(handled=False, message=message)

    @classmethod
    def abort(cls, message: str = "") -> "HandlerOutcome":
        return cls(handled=True, do_break=True, message=message)
