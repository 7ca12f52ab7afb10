# application/exceptions.py
from __future__ import annotations


class ApplicationError(Exception):
    pass


class TransportError(ApplicationError):
    """A low-level transport operation failed and may be retried."""


class TransportPausedError(ApplicationError):
    def __init__(self, operation: str, attempts: int, cause: BaseException | None = None) -> None:
        super().__init__(f"Transport operation '{operation}' failed {attempts} times; process paused")
        self.operation = operation
        self.attempts = attempts
        self.cause = cause


class HandlerFaultError(ApplicationError):
    def __init__(self, handler: str, cause: BaseException) -> None:
        super().__init__(f"Error handler '{handler}' raised: {cause!r}")
        self.handler = handler
        self.cause = cause


class CacheError(ApplicationError):
    pass
