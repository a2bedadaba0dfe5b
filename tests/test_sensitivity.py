"""
Tests for sensitivity analysis.

Expected deltas are worked by hand from the oto_with_downsell() fixture:
F 1000 in / 200 buyers, A 200 in / 60 buyers / 140 declined, B 140 in / 70 buyers.
"""

import pytest
from funnelsim.errors import UnknownNodeError
from funnelsim.runner.graph_builder import build_from_snapshot, build_funnel_graph
from funnelsim.runner.sensitivity import calculate_all_sensitivities, calculate_sensitivity
from funnelsim.runner.simulation_settings import SimulationSettings
from tests.fixtures.graphs import buy, frontend, oto, oto_with_downsell, source


class TestSignedDelta:
    """Raising a step's rate can help or hurt total revenue."""

    def test_positive_when_oto_dominates(self):
        # A 30% -> 31%: 62 buyers (+2 x $100 = +200), 138 declined -> B 69 buyers (-1 x $20 = -20)
        snapshot = oto_with_downsell(a_price=100.0, b_price=20.0)
        graph = build_from_snapshot(snapshot)
        delta = calculate_sensitivity(graph, snapshot.sources, "A")
        assert delta == pytest.approx(180.0)
        assert delta > 0

    def test_negative_when_downsell_dominates(self):
        # A gains 2 x $1 = +2, B loses 1 x $100 = -100
        snapshot = oto_with_downsell(a_price=1.0, b_price=100.0)
        graph = build_from_snapshot(snapshot)
        delta = calculate_sensitivity(graph, snapshot.sources, "A")
        assert delta == pytest.approx(-98.0)
        assert delta < 0

    def test_frontend(self):
        # F 21%: 210 buyers (+$500); A 210 in -> 63 buyers (+$300), 147 declined -> B 73 (+$60)
        snapshot = oto_with_downsell()
        graph = build_from_snapshot(snapshot)
        assert calculate_sensitivity(graph, snapshot.sources, "F") == pytest.approx(860.0)

    def test_leaf_downsell(self):
        # B 51% of 140 = 71.4 -> 71 buyers (+1 x $20)
        snapshot = oto_with_downsell()
        graph = build_from_snapshot(snapshot)
        assert calculate_sensitivity(graph, snapshot.sources, "B") == pytest.approx(20.0)


class TestClamping:
    """The perturbed rate never exceeds the maximum."""

    def test_rate_at_max_gives_zero(self):
        graph = build_funnel_graph([frontend(rate=100.0)], [], [source(1000)])
        assert calculate_sensitivity(graph, None, "F") == 0.0

    def test_partial_step_to_max(self):
        # 99.5% -> 100%: 995 -> 1000 buyers, +5 x $50
        graph = build_funnel_graph([frontend(rate=99.5)], [], [source(1000)])
        assert calculate_sensitivity(graph, None, "F") == pytest.approx(250.0)

    def test_custom_step(self):
        settings = SimulationSettings(sensitivity_step=5.0)
        graph = build_funnel_graph([frontend()], [], [source(1000)])
        # 20% -> 25%: +50 buyers x $50
        assert calculate_sensitivity(graph, None, "F", settings) == pytest.approx(2500.0)

    def test_max_rate_above_hundred_still_clamps_at_hundred(self):
        settings = SimulationSettings(max_conversion_rate=150)
        graph = build_funnel_graph([frontend(rate=100.0)], [], [source(1000)])
        assert calculate_sensitivity(graph, None, "F", settings) == 0.0
        assert calculate_all_sensitivities(graph, settings=settings) == {"F": 0.0}

    def test_negative_step_never_goes_below_zero(self):
        settings = SimulationSettings(sensitivity_step=-5.0)
        graph = build_funnel_graph([frontend(rate=0.0)], [], [source(1000)])
        assert calculate_sensitivity(graph, None, "F", settings) == 0.0
        assert calculate_all_sensitivities(graph, settings=settings) == {"F": 0.0}


class TestInputs:
    """Traffic sources, unknown and unreachable nodes."""

    def test_sources_argument_sets_traffic(self):
        graph = build_funnel_graph([frontend()], [], [source(1000)])
        # 100 visitors: 20% -> 21% is 20 -> 21 buyers
        assert calculate_sensitivity(graph, [source(100)], "F") == pytest.approx(50.0)

    def test_unknown_node(self):
        graph = build_from_snapshot(oto_with_downsell())
        with pytest.raises(UnknownNodeError):
            calculate_sensitivity(graph, None, "missing")

    def test_unreachable_node_is_zero(self):
        graph = build_funnel_graph(
            [frontend(), oto("Z", 10.0, 10.0)], [], [source(1000)]
        )
        assert calculate_sensitivity(graph, None, "Z") == 0.0

    def test_does_not_mutate_graph(self):
        snapshot = oto_with_downsell()
        graph = build_from_snapshot(snapshot)
        calculate_sensitivity(graph, snapshot.sources, "A")
        assert graph.node("A").conversion_rate == 30.0


class TestAllSensitivities:
    """Batch sensitivity over reachable steps."""

    def test_matches_single_calls(self):
        snapshot = oto_with_downsell()
        graph = build_from_snapshot(snapshot)
        deltas = calculate_all_sensitivities(graph)
        assert set(deltas) == {"F", "A", "B"}
        for node_id, delta in deltas.items():
            assert delta == pytest.approx(calculate_sensitivity(graph, snapshot.sources, node_id))

    def test_skips_dangling(self):
        graph = build_funnel_graph(
            [frontend(), oto("A", 10.0, 10.0), oto("Z", 10.0, 10.0)],
            [buy("F", "A")],
            [source(1000)],
        )
        assert "Z" not in calculate_all_sensitivities(graph)
