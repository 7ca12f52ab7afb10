# application/executor/handler_registry.py
from __future__ import annotations

from typing import Iterator, List

from application.handlers.base import ErrorHandler


class HandlerRegistry:
    def __init__(self, handlers: List[ErrorHandler]):
        # sorted() is stable: equal priorities keep registration order
        self._handlers = tuple(sorted(handlers, key=lambda h: h.priority, reverse=True))

    @property
    def handlers(self) -> List[ErrorHandler]:
        return list(self._handlers)

    def candidates(self, status: int) -> Iterator[ErrorHandler]:
        for h in self._handlers:
            if h.supports(status):
                yield h

    def __len__(self) -> int:
        return len(self._handlers)
