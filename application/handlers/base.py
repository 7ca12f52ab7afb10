# application/handlers/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, FrozenSet, Iterable

from application.outcome import HandlerOutcome

if TYPE_CHECKING:
    from domain.run import AttemptRecord, RunContext


class ErrorHandler(ABC):
    name: str = ""
    priority: int = 0
    exit_statuses: FrozenSet[int] = frozenset()

    def supports(self, status: int) -> bool:
        return status in self.exit_statuses

    @abstractmethod
    def handle(self, ctx: "RunContext", attempt: "AttemptRecord") -> HandlerOutcome: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"


class FunctionErrorHandler(ErrorHandler):
    """Adapts a plain ``apply(ctx, attempt)`` callable to the handler interface."""

    def __init__(
        self,
        name: str,
        priority: int,
        apply: Callable[["RunContext", "AttemptRecord"], HandlerOutcome],
        exit_statuses: Iterable[object] = (),
    ) -> None:
        self.name = name
        self.priority = priority
        self.apply = apply
        self.exit_statuses = statuses(exit_statuses)

    def handle(self, ctx: "RunContext", attempt: "AttemptRecord") -> HandlerOutcome:
        return self.apply(ctx, attempt)


def statuses(values: Iterable[object]) -> FrozenSet[int]:
    """Normalise a mix of ints and ``ExitCode`` objects to a set of statuses."""
    out = set()
    for value in values:
        out.add(int(getattr(value, "status", value)))
    return frozenset(out)
