# infrastructure/bootstrap.py
"""Wire the application services from Settings."""
from __future__ import annotations

from typing import Optional

from application.ports.calculation import CalculationPort
from application.ports.logger import LoggerPort
from application.services.controller_factory import ControllerFactory
from application.services.execution_deps import ExecutionDeps
from application.services.result_cache import ResultCache
from infrastructure.cache.in_memory_cache_store import InMemoryCacheStore
from infrastructure.cache.json_file_cache_store import JsonFileCacheStore
from infrastructure.config.settings import Settings
from infrastructure.engine.demo_pw_calculation import DemoPwCalculation
from infrastructure.engine.in_process_engine import InProcessExecutionEngine


def build_cache(settings: Settings) -> Optional[ResultCache]:
    if not settings.cache_enabled:
        return None
    if settings.cache_backend == "file":
        return ResultCache(JsonFileCacheStore(settings.cache_dir))
    return ResultCache(InMemoryCacheStore())


def build_engine(
    settings: Settings,
    logger: LoggerPort,
    calculation: Optional[CalculationPort] = None,
) -> InProcessExecutionEngine:
    return InProcessExecutionEngine(
        calculation or DemoPwCalculation(),
        logger,
        policy=settings.transport_policy(),
        max_workers=settings.engine_workers,
    )


def build_controller_factory(
    settings: Settings,
    logger: LoggerPort,
    calculation: Optional[CalculationPort] = None,
    cache: Optional[ResultCache] = None,
) -> ControllerFactory:
    deps = ExecutionDeps(
        engine=build_engine(settings, logger, calculation),
        logger=logger,
        cache=cache if cache is not None else build_cache(settings),
    )
    return ControllerFactory(deps=deps, default_max_retries=settings.max_retries)
