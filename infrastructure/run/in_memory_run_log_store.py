from __future__ import annotations

from threading import Lock
from typing import Dict, List, Optional

from application.ports.run_log_store import RunLogStorePort
from domain.run_log import RunLogEntry

LEVEL_ORDER = {"debug": 10, "info": 20, "warning": 30, "error": 40}


class InMemoryRunLogStore(RunLogStorePort):
    def __init__(self) -> None:
        self._logs: Dict[str, List[RunLogEntry]] = {}
        self._lock = Lock()

    def append(self, run_id: str, entry: RunLogEntry) -> None:
        with self._lock:
            self._logs.setdefault(run_id, []).append(entry)

    def list(self, run_id: str, min_level: Optional[str] = None) -> List[RunLogEntry]:
        with self._lock:
            entries = list(self._logs.get(run_id, []))
        if min_level is None:
            return entries
        threshold = LEVEL_ORDER.get(min_level.lower(), 0)
        return [e for e in entries if LEVEL_ORDER.get(e.level, 0) >= threshold]
