# infrastructure/cache/json_file_cache_store.py
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Optional

from application.exceptions import CacheError
from domain.cache_entry import CacheEntry
from domain.ids import Fingerprint


class JsonFileCacheStore:
    """
    One JSON document per fingerprint under ``base_dir``.

    Entries are written to a temporary file in the same directory and moved
    into place with ``os.replace``, so a reader sees either nothing or a
    complete entry. The first writer for a fingerprint wins.
    """

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    def get(self, fingerprint: Fingerprint) -> Optional[CacheEntry]:
        path = self._path(fingerprint)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise CacheError(f"Unreadable cache entry {path.name}: {exc}") from exc
        return CacheEntry.from_dict(data)

    def put_if_absent(self, entry: CacheEntry) -> bool:
        path = self._path(entry.fingerprint)
        try:
            payload = json.dumps(entry.to_dict(), ensure_ascii=False, sort_keys=True)
        except TypeError as exc:
            raise CacheError(f"Outputs are not JSON serialisable: {exc}") from exc

        with self._lock:
            if path.exists():
                return False
            try:
                self._write_atomic(path, payload)
            except OSError as exc:
                raise CacheError(f"Cannot write cache entry {path.name}: {exc}") from exc
            return True

    def _write_atomic(self, path: Path, payload: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.base_dir, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _path(self, fingerprint: Fingerprint) -> Path:
        return self.base_dir / f"{fingerprint.value}.json"
