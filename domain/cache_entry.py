# domain/cache_entry.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from domain.ids import Fingerprint


@dataclass(frozen=True)
class CacheEntry:
    fingerprint: Fingerprint
    outputs: Dict[str, Any]
    created_at: datetime
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fingerprint": self.fingerprint.value,
            "outputs": self.outputs,
            "created_at": self.created_at.isoformat(),
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(
            fingerprint=Fingerprint(data["fingerprint"]),
            outputs=dict(data.get("outputs") or {}),
            created_at=datetime.fromisoformat(data["created_at"]),
            message=data.get("message", ""),
        )
