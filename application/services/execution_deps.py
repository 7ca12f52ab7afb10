# application/services/execution_deps.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from application.ports.execution_engine import ExecutionEnginePort
from application.ports.logger import LoggerPort
from application.services.result_cache import ResultCache


@dataclass(frozen=True)
class ExecutionDeps:
    engine: ExecutionEnginePort
    logger: LoggerPort
    cache: Optional[ResultCache] = None

    # logger 差し替えのためのコピー生成
    def with_logger(self, logger: LoggerPort) -> "ExecutionDeps":
        return replace(self, logger=logger)
