"""
Sensitivity Analysis

Finite-difference estimate of how funnel revenue responds to a one-point
increase in a single step's conversion rate.

The delta is signed. Raising a step's conversion rate takes visitors away
from its No Thanks branch, so a downstream downsell can lose more revenue
than the step itself gains.
"""

import logging
from typing import Iterable, Optional

from ..graph_types import TrafficSource
from .graph_builder import FunnelGraph
from .metrics import aggregate
from .propagation import propagate
from .simulation_settings import SimulationSettings

logger = logging.getLogger(__name__)


def _total_revenue(graph: FunnelGraph, traffic: int, settings: SimulationSettings) -> float:
    return aggregate(graph, propagate(graph, traffic), settings).total_revenue


def _bumped_rate(rate: float, settings: SimulationSettings) -> float:
    ceiling = min(settings.max_conversion_rate, 100.0)
    return max(0.0, min(rate + settings.sensitivity_step, ceiling))


def _inbound_traffic(graph: FunnelGraph, sources: Optional[Iterable[TrafficSource]]) -> int:
    if sources is None:
        return graph.total_visits
    return sum(s.visits for s in sources)


def calculate_sensitivity(
    graph: FunnelGraph,
    sources: Optional[Iterable[TrafficSource]],
    target_node_id: str,
    settings: Optional[SimulationSettings] = None,
) -> float:
    """
    Revenue delta from raising target_node_id's conversion rate.

    Re-propagates the whole graph twice (baseline and perturbed) because a
    single rate change moves traffic at every downstream step.

    Args:
        graph: Validated FunnelGraph
        sources: Traffic sources to propagate (None: the graph's own)
        target_node_id: Step whose rate is raised by settings.sensitivity_step,
            clamped to 0-100 and to settings.max_conversion_rate
        settings: Optional SimulationSettings

    Returns:
        totalRevenue(perturbed) - totalRevenue(baseline); may be negative

    Raises:
        UnknownNodeError: target_node_id is not in the graph
    """
    settings = settings or SimulationSettings()
    node = graph.node(target_node_id)
    traffic = _inbound_traffic(graph, sources)

    bumped_rate = _bumped_rate(node.conversion_rate, settings)
    if bumped_rate == node.conversion_rate or target_node_id not in graph.reachable:
        return 0.0

    baseline = _total_revenue(graph, traffic, settings)
    perturbed = _total_revenue(graph.with_conversion_rate(target_node_id, bumped_rate), traffic, settings)
    delta = perturbed - baseline

    logger.debug("Sensitivity of '%s' (%.2f%% -> %.2f%%): %.2f",
                 target_node_id, node.conversion_rate, bumped_rate, delta)
    return delta


def calculate_all_sensitivities(
    graph: FunnelGraph,
    sources: Optional[Iterable[TrafficSource]] = None,
    settings: Optional[SimulationSettings] = None,
) -> dict[str, float]:
    """
    Sensitivity for every step reachable from the Frontend.

    The baseline is propagated once and shared across all steps.
    """
    settings = settings or SimulationSettings()
    traffic = _inbound_traffic(graph, sources)
    baseline = _total_revenue(graph, traffic, settings)

    deltas = {}
    for node_id, node in graph.nodes.items():
        if node_id not in graph.reachable:
            continue
        bumped_rate = _bumped_rate(node.conversion_rate, settings)
        if bumped_rate == node.conversion_rate:
            deltas[node_id] = 0.0
            continue
        perturbed = _total_revenue(graph.with_conversion_rate(node_id, bumped_rate), traffic, settings)
        deltas[node_id] = perturbed - baseline
    return deltas
