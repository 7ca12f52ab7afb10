# infrastructure/plan/base_loader.py
"""
Build WorkPlan domain objects from parsed YAML/JSON documents.
"""
from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Union

from domain.exceptions import ValidationError
from domain.work_item import WorkItem
from domain.work_plan import HandlerSpec, PlanDefaults, PlanInputs, PlanMeta, WorkPlan


class PlanLoadError(Exception):
    pass


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class PlanLoaderBase(ABC):
    def load_from_file(self, path: Union[str, Path]) -> WorkPlan:
        p = Path(path)
        if not p.exists():
            raise PlanLoadError(f"Plan file not found: {path}")

        data = self._load_file(p)
        if data is None:
            raise PlanLoadError(f"Plan file is empty: {path}")
        if not isinstance(data, dict):
            raise PlanLoadError(f"Plan file is invalid: {path}")

        return self.load_from_dict(data, default_id=p.stem)

    @abstractmethod
    def _load_file(self, path: Path) -> Any:
        ...

    def load_from_dict(self, data: Dict[str, Any], default_id: str = "") -> WorkPlan:
        meta = self._load_meta(data.get("meta") or {}, default_id)
        inputs = PlanInputs(required=list((data.get("inputs") or {}).get("required", [])))
        defaults = self._load_defaults(data.get("defaults") or {})
        handlers = self._load_handlers(data.get("handlers") or [])
        try:
            items = self._load_items(data.get("items") or [], defaults)
        except ValidationError as exc:
            raise PlanLoadError(f"Invalid item in plan {meta.id}: {exc}") from exc

        return WorkPlan(
            meta=meta,
            items=items,
            inputs=inputs,
            defaults=defaults,
            handlers=handlers,
        )

    def _load_meta(self, data: Dict[str, Any], default_id: str) -> PlanMeta:
        plan_id = str(data.get("id") or default_id)
        return PlanMeta(
            id=plan_id,
            name=data.get("name", plan_id),
            version=int(data.get("version", 1)),
            description=data.get("description", ""),
        )

    def _load_defaults(self, data: Dict[str, Any]) -> PlanDefaults:
        return PlanDefaults(
            code=data.get("code", ""),
            max_retries=data.get("max_retries"),
            caching=bool(data.get("caching", True)),
            options=dict(data.get("options") or {}),
            inputs=dict(data.get("inputs") or {}),
        )

    def _load_handlers(self, handlers_data: List[Dict[str, Any]]) -> List[HandlerSpec]:
        specs: List[HandlerSpec] = []
        for raw in handlers_data:
            if "name" not in raw:
                raise PlanLoadError(f"Handler without a name: {raw}")
            params = {
                k: v for k, v in raw.items()
                if k not in ("type", "name", "priority", "exit_statuses")
            }
            specs.append(
                HandlerSpec(
                    type=raw.get("type", "builtin"),
                    name=raw["name"],
                    priority=raw.get("priority"),
                    exit_statuses=[int(s) for s in raw.get("exit_statuses", [])],
                    params=params,
                )
            )
        return specs

    def _load_items(self, items_data: List[Dict[str, Any]], defaults: PlanDefaults) -> List[WorkItem]:
        items: List[WorkItem] = []
        for index, raw in enumerate(items_data):
            max_retries = raw.get("max_retries", defaults.max_retries)
            items.append(
                WorkItem(
                    label=str(raw.get("label") or f"item-{index}"),
                    code=raw.get("code", defaults.code),
                    inputs=deep_merge(defaults.inputs, raw.get("inputs") or {}),
                    options=deep_merge(defaults.options, raw.get("options") or {}),
                    max_retries=int(max_retries) if max_retries is not None else None,
                    caching=bool(raw.get("caching", defaults.caching)),
                )
            )
        return items
