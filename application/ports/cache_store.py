from __future__ import annotations

from typing import Optional, Protocol

from domain.cache_entry import CacheEntry
from domain.ids import Fingerprint


class CacheStorePort(Protocol):
    def get(self, fingerprint: Fingerprint) -> Optional[CacheEntry]:
        ...

    def put_if_absent(self, entry: CacheEntry) -> bool:
        """Store ``entry`` unless one exists for its fingerprint. Returns True if written."""
        ...
