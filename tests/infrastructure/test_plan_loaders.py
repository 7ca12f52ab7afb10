from __future__ import annotations

import json
from pathlib import Path

import pytest

from infrastructure.plan import JsonPlanLoader, PlanLoaderRegistry, PlanLoadError, YamlPlanLoader
from infrastructure.plan.base_loader import deep_merge
from infrastructure.config.settings import PROJECT_ROOT

PLAN_YAML = """
meta:
  id: eos_test
  name: EOS test
  version: 2
inputs:
  required: [scale_factor]
defaults:
  code: pw.x
  max_retries: 3
  options:
    resources: {num_machines: 1}
  inputs:
    parameters:
      ELECTRONS: {mixing_beta: 0.4, conv_thr: 1.0e-8}
handlers:
  - name: handle_electronic_convergence_not_reached
    factor: 0.5
  - type: scale_parameter
    name: shrink_degauss
    priority: 300
    exit_statuses: [410]
    parameter: parameters.SYSTEM.degauss
    factor: 0.5
items:
  - label: small
    inputs:
      scale_factor: 0.98
      parameters:
        ELECTRONS: {mixing_beta: 0.2}
  - label: large
    max_retries: 0
    caching: false
    inputs:
      scale_factor: 1.02
"""


def test_yaml_loader_parses_plan(tmp_path: Path) -> None:
    # Arrange
    plan_path = tmp_path / "eos.yaml"
    plan_path.write_text(PLAN_YAML, encoding="utf-8")

    # Act
    plan = YamlPlanLoader().load_from_file(plan_path)

    # Assert
    assert plan.meta.id == "eos_test"
    assert plan.meta.version == 2
    assert plan.inputs.required == ["scale_factor"]
    assert [item.label for item in plan.items] == ["small", "large"]

    small = plan.item("small")
    assert small.code == "pw.x"
    assert small.max_retries == 3
    assert small.inputs["parameters"]["ELECTRONS"] == {"mixing_beta": 0.2, "conv_thr": 1.0e-8}
    assert small.options == {"resources": {"num_machines": 1}}

    large = plan.item("large")
    assert large.max_retries == 0
    assert large.caching is False
    assert large.inputs["parameters"]["ELECTRONS"]["mixing_beta"] == 0.4


def test_yaml_loader_collects_handler_params(tmp_path: Path) -> None:
    plan_path = tmp_path / "eos.yaml"
    plan_path.write_text(PLAN_YAML, encoding="utf-8")

    plan = YamlPlanLoader().load_from_file(plan_path)

    builtin, scale = plan.handlers
    assert builtin.type == "builtin"
    assert builtin.params == {"factor": 0.5}
    assert scale.type == "scale_parameter"
    assert scale.priority == 300
    assert scale.exit_statuses == [410]
    assert scale.params == {"parameter": "parameters.SYSTEM.degauss", "factor": 0.5}


def test_items_do_not_share_default_inputs(tmp_path: Path) -> None:
    plan_path = tmp_path / "eos.yaml"
    plan_path.write_text(PLAN_YAML, encoding="utf-8")

    plan = YamlPlanLoader().load_from_file(plan_path)
    plan.item("large").inputs["parameters"]["ELECTRONS"]["mixing_beta"] = 9

    assert plan.defaults.inputs["parameters"]["ELECTRONS"]["mixing_beta"] == 0.4


def test_json_loader_uses_file_stem_as_default_id(tmp_path: Path) -> None:
    plan_path = tmp_path / "single.json"
    plan_path.write_text(
        json.dumps({"defaults": {"code": "pw.x"}, "items": [{"label": "only", "inputs": {"x": 1}}]}),
        encoding="utf-8",
    )

    plan = JsonPlanLoader().load_from_file(plan_path)

    assert plan.meta.id == "single"
    assert plan.meta.name == "single"
    assert plan.items[0].inputs == {"x": 1}


def test_item_without_code_is_a_load_error(tmp_path: Path) -> None:
    plan_path = tmp_path / "broken.json"
    plan_path.write_text(json.dumps({"items": [{"label": "x"}]}), encoding="utf-8")

    with pytest.raises(PlanLoadError, match="broken"):
        JsonPlanLoader().load_from_file(plan_path)


def test_invalid_documents(tmp_path: Path) -> None:
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    listed = tmp_path / "listed.yaml"
    listed.write_text("- a\n- b\n", encoding="utf-8")
    garbled = tmp_path / "garbled.json"
    garbled.write_text("{", encoding="utf-8")

    with pytest.raises(PlanLoadError, match="empty"):
        YamlPlanLoader().load_from_file(empty)
    with pytest.raises(PlanLoadError, match="invalid"):
        YamlPlanLoader().load_from_file(listed)
    with pytest.raises(PlanLoadError, match="Invalid JSON"):
        JsonPlanLoader().load_from_file(garbled)
    with pytest.raises(PlanLoadError, match="not found"):
        JsonPlanLoader().load_from_file(tmp_path / "missing.json")


def test_registry_picks_loader_by_extension() -> None:
    registry = PlanLoaderRegistry()

    assert isinstance(registry.get_loader(Path("a.yml")), YamlPlanLoader)
    assert isinstance(registry.get_loader(Path("a.JSON")), JsonPlanLoader)
    with pytest.raises(PlanLoadError, match="Unsupported"):
        registry.get_loader(Path("a.toml"))


def test_deep_merge_overrides_nested_keys() -> None:
    base = {"a": {"b": 1, "c": 2}, "d": [1]}

    merged = deep_merge(base, {"a": {"c": 3}, "d": [2]})

    assert merged == {"a": {"b": 1, "c": 3}, "d": [2]}
    assert base == {"a": {"b": 1, "c": 2}, "d": [1]}


@pytest.mark.parametrize("plan_id", ["eos_silicon", "simple_test"])
def test_bundled_plans_load(plan_id: str) -> None:
    plan_path = PROJECT_ROOT / "plans" / f"{plan_id}.yaml"

    plan = YamlPlanLoader().load_from_file(plan_path)

    assert plan.meta.id == plan_id
    assert plan.items
