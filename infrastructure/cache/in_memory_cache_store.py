# infrastructure/cache/in_memory_cache_store.py
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, Optional

from domain.cache_entry import CacheEntry
from domain.ids import Fingerprint


@dataclass
class InMemoryCacheStore:
    _lock: Lock = field(default_factory=Lock, init=False)
    _entries: Dict[str, CacheEntry] = field(default_factory=dict, init=False)

    def get(self, fingerprint: Fingerprint) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(fingerprint.value)

    def put_if_absent(self, entry: CacheEntry) -> bool:
        frozen = CacheEntry(
            fingerprint=entry.fingerprint,
            outputs=copy.deepcopy(entry.outputs),
            created_at=entry.created_at,
            message=entry.message,
        )
        with self._lock:
            if entry.fingerprint.value in self._entries:
                return False
            self._entries[entry.fingerprint.value] = frozen
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
