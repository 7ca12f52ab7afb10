# application/services/transport_retry.py
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, TypeVar

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from application.exceptions import TransportError, TransportPausedError
from application.ports.logger import LoggerPort
from domain.exceptions import ValidationError

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_INITIAL_INTERVAL_SEC = 20.0
DEFAULT_MULTIPLIER = 2.0
DEFAULT_MAX_INTERVAL_SEC = 600.0


@dataclass(frozen=True)
class TransportRetryPolicy:
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_interval_sec: float = DEFAULT_INITIAL_INTERVAL_SEC
    multiplier: float = DEFAULT_MULTIPLIER
    max_interval_sec: Optional[float] = DEFAULT_MAX_INTERVAL_SEC

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValidationError("max_attempts must be >= 1")
        if self.initial_interval_sec < 0:
            raise ValidationError("initial_interval_sec must be >= 0")
        if self.multiplier < 1:
            raise ValidationError("multiplier must be >= 1")

    def wait_strategy(self) -> wait_exponential:
        """initial, initial*multiplier, ... capped at max_interval_sec."""
        kwargs: Dict[str, Any] = {"multiplier": self.initial_interval_sec, "exp_base": self.multiplier}
        if self.max_interval_sec is not None:
            kwargs["max"] = self.max_interval_sec
        return wait_exponential(**kwargs)


def run_with_transport_retry(
    operation: str,
    fn: Callable[[], T],
    policy: TransportRetryPolicy,
    logger: LoggerPort,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``fn`` until it succeeds or ``policy.max_attempts`` is reached.

    Only ``TransportError`` is retried. When the attempts are exhausted the
    owning process is paused (``TransportPausedError``) rather than failed.
    """

    def log_retry(retry_state: RetryCallState) -> None:
        logger.warning(
            "transport.retry",
            operation=operation,
            attempt=retry_state.attempt_number,
            max_attempts=policy.max_attempts,
            wait_sec=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        )

    retrying = Retrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=policy.wait_strategy(),
        retry=retry_if_exception_type(TransportError),
        before_sleep=log_retry,
        sleep=sleep,
        reraise=False,
    )
    try:
        for attempt in retrying:
            with attempt:
                return fn()
    except RetryError as exc:
        last = exc.last_attempt
        cause = last.exception()
        logger.error(
            "transport.exhausted",
            operation=operation,
            attempts=last.attempt_number,
            error=str(cause),
        )
        raise TransportPausedError(operation, last.attempt_number, cause) from cause

    raise RuntimeError("transport retry loop ended without an outcome")
