"""
Tests for snapshot and settings file loading.
"""

import json

import pytest
from pydantic import ValidationError
from funnelsim.graph_types import Branch, NodeKind
from funnelsim.runner.simulation_settings import SimulationSettings
from funnelsim.snapshot_io import dump_snapshot, load_settings, load_snapshot
from tests.fixtures.graphs import confluence_funnel


YAML_FUNNEL = """
nodes:
  - id: F
    kind: FE
    price: 47
    conversionRate: 3
  - id: A
    kind: OTO
    price: 197
    conversionRate: 25
  - id: B
    kind: Downsell
    price: 47
    conversionRate: 40
edges:
  - {id: e1, source: F, target: A, branch: "yes"}
  - {id: e2, source: A, target: B, branch: "no"}
sources:
  - {id: fb, label: Facebook, visits: 5000, cost: 2500}
"""


class TestLoadSnapshot:

    def test_yaml(self, tmp_path):
        path = tmp_path / "funnel.yaml"
        path.write_text(YAML_FUNNEL)
        snapshot = load_snapshot(path)
        assert [n.kind for n in snapshot.nodes] == [NodeKind.FRONTEND, NodeKind.ONE_TIME_OFFER, NodeKind.DOWNSELL]
        assert snapshot.edges[1].branch == Branch.NO_THANKS
        assert snapshot.sources[0].visits == 5000

    def test_yaml_boolean_branch_names(self, tmp_path):
        """Unquoted yes/no are YAML booleans and are rejected, not guessed."""
        path = tmp_path / "funnel.yml"
        path.write_text(YAML_FUNNEL.replace('branch: "yes"}', 'branch: yes}'))
        with pytest.raises(ValidationError):
            load_snapshot(path)

    def test_json_dump_and_load(self, tmp_path):
        path = tmp_path / "funnel.json"
        dump_snapshot(confluence_funnel(), path)
        raw = json.loads(path.read_text())
        assert raw['nodes'][0]['conversionRate'] == 20.0
        assert load_snapshot(path) == confluence_funnel()

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "funnel.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(ValueError):
            load_snapshot(path)


class TestLoadSettings:

    def test_yaml_settings(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("sensitivity_step: 2\nunknown_key: 5\n")
        settings = load_settings(path)
        assert settings.sensitivity_step == 2.0
        assert settings.healthy_conversion_threshold == SimulationSettings().healthy_conversion_threshold

    def test_empty_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("")
        assert load_settings(path) == SimulationSettings()
