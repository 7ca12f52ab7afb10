# application/handlers/scale_parameter.py
from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional

from application.handlers.base import ErrorHandler, statuses
from application.handlers.parameters import get_path, set_path
from application.outcome import HandlerOutcome
from domain.run import RestartType

if TYPE_CHECKING:
    from domain.run import AttemptRecord, RunContext


class ScaleParameterHandler(ErrorHandler):
    """
    Multiply a numeric input by ``factor`` and restart.

    When the scaled value would drop below ``minimum`` the handler breaks
    instead, so a parameter that keeps shrinking cannot loop forever.
    """

    def __init__(
        self,
        name: str,
        priority: int,
        exit_statuses: Iterable[object],
        parameter: str,
        factor: float,
        default: Optional[float] = None,
        minimum: Optional[float] = None,
        restart_type: RestartType = RestartType.RESUBMIT,
        restart_from: Optional[str] = None,
    ) -> None:
        if factor <= 0:
            raise ValueError(f"factor must be positive: {factor}")
        if restart_type == RestartType.FULL and not restart_from:
            raise ValueError("restart_from is required for a full restart")
        self.name = name
        self.priority = priority
        self.exit_statuses = statuses(exit_statuses)
        self.parameter = parameter
        self.factor = factor
        self.default = default
        self.minimum = minimum
        self.restart_type = restart_type
        self.restart_from = restart_from

    def handle(self, ctx: "RunContext", attempt: "AttemptRecord") -> HandlerOutcome:
        current = get_path(ctx.inputs, self.parameter, self.default)
        if current is None:
            return HandlerOutcome.declined(f"{self.parameter} is not set")

        scaled = current * self.factor
        if self.minimum is not None and scaled < self.minimum:
            return HandlerOutcome.abort(
                f"{self.parameter} would drop to {scaled:g}, below the minimum {self.minimum:g}"
            )

        set_path(ctx.inputs, self.parameter, scaled)
        return HandlerOutcome(
            handled=True,
            restart_type=self.restart_type,
            restart_from=self.restart_from,
            message=f"scaled {self.parameter} from {current:g} to {scaled:g}",
        )
