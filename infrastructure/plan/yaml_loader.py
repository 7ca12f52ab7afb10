# infrastructure/plan/yaml_loader.py
"""
YAMLプランファイルからWorkPlanドメインオブジェクトを生成
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from infrastructure.plan.base_loader import PlanLoaderBase, PlanLoadError


class YamlPlanLoader(PlanLoaderBase):
    """YAMLファイルからWorkPlanをロード"""

    def _load_file(self, path: Path) -> Any:
        try:
            with path.open("r", encoding="utf-8") as f:
                return yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise PlanLoadError(f"Invalid YAML in {path}: {exc}") from exc
