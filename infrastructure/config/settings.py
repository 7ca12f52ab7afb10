# infrastructure/config/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, TypeVar

from dotenv import dotenv_values

from application.executor.restart_controller import DEFAULT_MAX_RETRIES
from application.services.transport_retry import (
    DEFAULT_INITIAL_INTERVAL_SEC,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_INTERVAL_SEC,
    DEFAULT_MULTIPLIER,
    TransportRetryPolicy,
)
from domain.exceptions import ValidationError

T = TypeVar("T")

PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_ENV_PATH = PROJECT_ROOT / ".env"
PREFIX = "RELAUNCH_"


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {raw!r}")


@dataclass(frozen=True)
class Settings:
    max_retries: int = DEFAULT_MAX_RETRIES
    cache_enabled: bool = True
    cache_backend: str = "memory"
    cache_dir: Path = PROJECT_ROOT / "tmp" / "cache"
    plans_dir: Path = PROJECT_ROOT / "plans"
    engine_workers: int = 4
    transport_max_attempts: int = DEFAULT_MAX_ATTEMPTS
    transport_initial_interval_sec: float = DEFAULT_INITIAL_INTERVAL_SEC
    transport_multiplier: float = DEFAULT_MULTIPLIER
    transport_max_interval_sec: Optional[float] = DEFAULT_MAX_INTERVAL_SEC
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValidationError("RELAUNCH_MAX_RETRIES must be >= 0")
        if self.cache_backend not in ("memory", "file"):
            raise ValidationError(f"RELAUNCH_CACHE_BACKEND must be 'memory' or 'file': {self.cache_backend}")
        if self.engine_workers < 1:
            raise ValidationError("RELAUNCH_ENGINE_WORKERS must be >= 1")

    def transport_policy(self) -> TransportRetryPolicy:
        return TransportRetryPolicy(
            max_attempts=self.transport_max_attempts,
            initial_interval_sec=self.transport_initial_interval_sec,
            multiplier=self.transport_multiplier,
            max_interval_sec=self.transport_max_interval_sec,
        )

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        env_path: Optional[Path] = DEFAULT_ENV_PATH,
    ) -> "Settings":
        """
        Read settings from ``.env`` and the process environment.

        The process environment wins over ``.env``.
        """
        values: Dict[str, Optional[str]] = {}
        if env_path is not None and Path(env_path).exists():
            values.update(dotenv_values(env_path))
        values.update(os.environ if environ is None else environ)

        def read(name: str, parse: Callable[[str], T], default: T) -> T:
            raw = values.get(PREFIX + name)
            if raw is None or raw == "":
                return default
            try:
                return parse(raw)
            except ValueError as exc:
                raise ValidationError(f"Invalid {PREFIX}{name}: {exc}") from exc

        defaults = cls()
        return cls(
            max_retries=read("MAX_RETRIES", int, defaults.max_retries),
            cache_enabled=read("CACHE_ENABLED", _parse_bool, defaults.cache_enabled),
            cache_backend=read("CACHE_BACKEND", str.lower, defaults.cache_backend),
            cache_dir=read("CACHE_DIR", Path, defaults.cache_dir),
            plans_dir=read("PLANS_DIR", Path, defaults.plans_dir),
            engine_workers=read("ENGINE_WORKERS", int, defaults.engine_workers),
            transport_max_attempts=read("TRANSPORT_MAX_ATTEMPTS", int, defaults.transport_max_attempts),
            transport_initial_interval_sec=read(
                "TRANSPORT_INITIAL_INTERVAL_SEC", float, defaults.transport_initial_interval_sec
            ),
            transport_multiplier=read("TRANSPORT_MULTIPLIER", float, defaults.transport_multiplier),
            transport_max_interval_sec=read(
                "TRANSPORT_MAX_INTERVAL_SEC", float, defaults.transport_max_interval_sec
            ),
            log_level=read("LOG_LEVEL", str.upper, defaults.log_level),
        )
