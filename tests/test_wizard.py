"""
Tests for the funnel wizard.
"""

import pytest
from funnelsim.errors import InvalidPriceError, InvalidRateError
from funnelsim.graph_types import Branch, NodeKind
from funnelsim.runner.analyzer import simulate
from funnelsim.runner.graph_builder import build_from_snapshot
from funnelsim.wizard import FunnelWizard
from tests.fixtures.graphs import source


def build_wizard_funnel():
    """
    Frontend ($50, 20%) -> OTO 1 ($100, 30%) -> OTO 2 ($200, 25%)
    OTO 1 declined -> Downsell 1 ($20, 50%) -> OTO 2 (both branches)
    """
    wizard = FunnelWizard(frontend_price=50.0, frontend_conversion_rate=20.0)
    oto1 = wizard.add_oto(price=100.0, conversion_rate=30.0)
    wizard.add_oto(price=200.0, conversion_rate=25.0)
    wizard.add_downsell(oto1, price=20.0, conversion_rate=50.0)
    return wizard


class TestProducts:
    """Product list editing."""

    def test_starts_with_frontend(self):
        wizard = FunnelWizard()
        assert len(wizard.products) == 1
        assert wizard.products[0].kind == NodeKind.FRONTEND

    def test_oto_names_and_parents(self):
        wizard = FunnelWizard()
        first = wizard.add_oto()
        second = wizard.add_oto()
        assert wizard.get_product(first).name == "OTO 1"
        assert wizard.get_product(first).parent_key == FunnelWizard.FRONTEND_KEY
        assert wizard.get_product(second).parent_key == first
        assert wizard.get_product(second).branch == Branch.BUY

    def test_downsell_inserted_after_parent(self):
        wizard = build_wizard_funnel()
        kinds = [p.kind for p in wizard.products]
        assert kinds == [NodeKind.FRONTEND, NodeKind.ONE_TIME_OFFER, NodeKind.DOWNSELL, NodeKind.ONE_TIME_OFFER]
        assert wizard.products[2].level == 1

    def test_downsell_requires_oto_parent(self):
        wizard = FunnelWizard()
        with pytest.raises(ValueError):
            wizard.add_downsell(FunnelWizard.FRONTEND_KEY)

    def test_one_downsell_per_oto(self):
        wizard = FunnelWizard()
        oto1 = wizard.add_oto()
        wizard.add_downsell(oto1)
        with pytest.raises(ValueError):
            wizard.add_downsell(oto1)

    def test_frontend_cannot_be_removed(self):
        wizard = FunnelWizard()
        with pytest.raises(ValueError):
            wizard.remove_product(FunnelWizard.FRONTEND_KEY)

    def test_remove_oto(self):
        wizard = FunnelWizard()
        key = wizard.add_oto()
        wizard.remove_product(key)
        assert len(wizard.products) == 1

    def test_update_product(self):
        wizard = FunnelWizard()
        wizard.update_product(FunnelWizard.FRONTEND_KEY, price=47.0, conversion_rate=3.0)
        assert wizard.products[0].price == 47.0
        with pytest.raises(ValueError):
            wizard.update_product(FunnelWizard.FRONTEND_KEY, kind=NodeKind.DOWNSELL)


class TestBuild:
    """Snapshot generation."""

    def test_node_ids(self):
        snapshot = build_wizard_funnel().build()
        assert [n.id for n in snapshot.nodes] == ["frontend", "oto-1", "downsell-2", "oto-3"]

    def test_edges(self):
        snapshot = build_wizard_funnel().build()
        edges = {(e.id, e.branch) for e in snapshot.edges}
        assert edges == {
            ("frontend-oto-1-yes", Branch.BUY),
            ("oto-1-oto-3-yes", Branch.BUY),
            ("oto-1-downsell-2-no", Branch.NO_THANKS),
            ("downsell-2-oto-3-yes", Branch.BUY),
            ("downsell-2-oto-3-no", Branch.NO_THANKS),
        }

    def test_built_snapshot_is_valid(self):
        graph = build_from_snapshot(build_wizard_funnel().build([source(1000)]))
        assert graph.dangling_nodes == ()

    def test_simulation_of_wizard_funnel(self):
        report = simulate(build_wizard_funnel().build([source(1000)]))
        oto2 = report.get_node("oto-3")
        # 60 OTO 1 buyers + 70 + 70 from the downsell
        assert oto2.traffic_in == 200
        assert oto2.buyers == 50

    def test_requires_positive_price(self):
        wizard = FunnelWizard(frontend_price=0.0, frontend_conversion_rate=10.0)
        with pytest.raises(InvalidPriceError):
            wizard.build()

    def test_requires_positive_rate(self):
        wizard = FunnelWizard(frontend_price=10.0, frontend_conversion_rate=0.0)
        with pytest.raises(InvalidRateError):
            wizard.build()
