# application/services/execution_error_builder.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from application.executor.restart_controller import RestartResult


@dataclass(frozen=True)
class ExecutionErrorDetail:
    code: str
    message: str
    exit_status: Optional[int]
    last_status: Optional[int]
    decisions: List[Dict[str, Any]] = field(default_factory=list)


class ExecutionErrorBuilder:
    def build_from_result(self, result: RestartResult) -> ExecutionErrorDetail:
        last = result.last_signal
        return ExecutionErrorDetail(
            code="paused" if result.paused else "run_failed",
            message=result.message or "Run failed",
            exit_status=result.exit_status,
            last_status=last.status if last is not None else None,
            decisions=[
                {
                    "handler": d.handler,
                    "status": d.status,
                    "handled": d.handled,
                    "restart_type": d.restart_type.value,
                    "do_break": d.do_break,
                    "message": d.message,
                }
                for d in result.decisions
            ],
        )

    def build_from_exception(self, message: str, result: RestartResult | None = None) -> ExecutionErrorDetail:
        last = result.last_signal if result is not None else None
        return ExecutionErrorDetail(
            code="exception",
            message=message,
            exit_status=None,
            last_status=last.status if last is not None else None,
        )
