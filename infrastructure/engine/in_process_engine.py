# infrastructure/engine/in_process_engine.py
from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from application.ports.calculation import CalculationPort
from application.ports.execution_engine import ExecutionEnginePort
from application.ports.logger import LoggerPort
from application.services.transport_retry import TransportRetryPolicy, run_with_transport_retry
from domain.termination import TerminationSignal

DEFAULT_POLL_INTERVAL_SEC = 30.0


class InProcessExecutionEngine(ExecutionEnginePort):
    def __init__(
        self,
        calculation: CalculationPort,
        logger: LoggerPort,
        policy: Optional[TransportRetryPolicy] = None,
        max_workers: int = 4,
        sleep: Callable[[float], None] = time.sleep,
        poll_interval_sec: float = DEFAULT_POLL_INTERVAL_SEC,
    ) -> None:
        self._calculation = calculation
        self._logger = logger
        self._policy = policy or TransportRetryPolicy()
        self._sleep = sleep
        self._poll_interval_sec = poll_interval_sec
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="engine")

    def submit(self, code: str, inputs: Dict[str, Any], options: Dict[str, Any]) -> "Future[TerminationSignal]":
        return self._executor.submit(self._execute, code, inputs, options)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def _execute(self, code: str, inputs: Dict[str, Any], options: Dict[str, Any]) -> TerminationSignal:
        calc = self._calculation
        workdir = self._with_retry("upload", lambda: calc.upload(code, inputs, options))
        job_id = self._with_retry("submit", lambda: calc.submit(workdir))
        logger = self._logger.bind(workdir=workdir, job_id=job_id)
        logger.debug("engine.submitted", code=code)

        polls = 1
        while not self._with_retry("update", lambda: calc.update(job_id)):
            self._sleep(self._poll_interval_sec)
            polls += 1
        logger.debug("engine.job_done", polls=polls)

        stash: Optional[Dict[str, Any]] = None
        target_base = (options.get("stash") or {}).get("target_base")
        if target_base:
            stash = self._with_retry("stash", lambda: calc.stash(workdir, target_base))

        signal = self._with_retry("retrieve", lambda: calc.retrieve(workdir, job_id))
        logger.debug("engine.retrieved", status=signal.status)
        if stash is None:
            return signal
        return TerminationSignal(
            status=signal.status,
            message=signal.message,
            outputs={**signal.outputs, "remote_stash": stash},
        )

    def _with_retry(self, operation: str, fn: Callable[[], Any]) -> Any:
        return run_with_transport_retry(operation, fn, self._policy, self._logger, sleep=self._sleep)
