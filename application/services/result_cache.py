# application/services/result_cache.py
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from application.exceptions import CacheError
from application.ports.cache_store import CacheStorePort
from application.services.fingerprint import Fingerprinter
from domain.cache_entry import CacheEntry
from domain.ids import Fingerprint
from domain.termination import TerminationSignal
from domain.work_item import WorkItem


@dataclass(frozen=True)
class ResultCache:
    store_port: CacheStorePort
    fingerprinter: Fingerprinter = field(default_factory=Fingerprinter)

    def fingerprint(self, item: WorkItem) -> Fingerprint:
        return self.fingerprinter.fingerprint(item)

    def lookup(self, fingerprint: Fingerprint) -> Optional[CacheEntry]:
        return self.store_port.get(fingerprint)

    def clone(self, entry: CacheEntry) -> Dict[str, Any]:
        # The caller owns the copy; mutating it must not touch the stored entry.
        return copy.deepcopy(entry.outputs)

    def store(self, fingerprint: Fingerprint, signal: TerminationSignal) -> bool:
        if not signal.ok:
            raise CacheError(f"Refusing to cache a failed result (status={signal.status})")
        entry = CacheEntry(
            fingerprint=fingerprint,
            outputs=copy.deepcopy(dict(signal.outputs)),
            created_at=datetime.now(timezone.utc),
            message=signal.message,
        )
        return self.store_port.put_if_absent(entry)
