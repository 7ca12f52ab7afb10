# application/services/fingerprint.py
from __future__ import annotations

import dataclasses
import hashlib
import json
from dataclasses import dataclass
from typing import Any, FrozenSet

from domain.exceptions import ValidationError
from domain.ids import Fingerprint
from domain.work_item import WorkItem

# Keys under which only bookkeeping lives (labels, descriptions, link names).
IGNORED_INPUT_KEYS: FrozenSet[str] = frozenset({"metadata"})


@dataclass(frozen=True)
class Fingerprinter:
    """
    Hash of a work item's fully resolved inputs.

    Only ``code`` and ``inputs`` take part; ``label`` and execution
    ``options`` never change what is computed.
    """
    ignored_keys: FrozenSet[str] = IGNORED_INPUT_KEYS

    def fingerprint(self, item: WorkItem) -> Fingerprint:
        return self.fingerprint_inputs(item.code, item.inputs)

    def fingerprint_inputs(self, code: str, inputs: dict) -> Fingerprint:
        payload = {
            "code": code,
            "inputs": self._normalise(
                {key: value for key, value in inputs.items() if key not in self.ignored_keys},
                "inputs",
            ),
        }
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        return Fingerprint(hashlib.sha256(canonical.encode("utf-8")).hexdigest())

    def _normalise(self, value: Any, path: str) -> Any:
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        if isinstance(value, dict):
            # 1 and "1" must not hash alike
            for k in value:
                if not isinstance(k, str):
                    raise ValidationError(f"Input '{path}' has a non-string key {k!r}")
            return {k: self._normalise(v, f"{path}.{k}") for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._normalise(v, f"{path}[{i}]") for i, v in enumerate(value)]
        if isinstance(value, (set, frozenset)):
            items = [self._normalise(v, f"{path}{{}}") for v in value]
            return sorted(items, key=lambda v: json.dumps(v, sort_keys=True))
        if isinstance(value, bytes):
            return {"__bytes__": value.hex()}
        if hasattr(value, "to_dict"):
            return self._normalise(value.to_dict(), path)
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return self._normalise(dataclasses.asdict(value), path)
        raise ValidationError(f"Input '{path}' of type {type(value).__name__} cannot be fingerprinted")
