"""
Metrics Aggregation

Derives revenue, EPC and funnel totals from a PropagationResult.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .graph_builder import FunnelGraph
from .propagation import PropagationResult
from .simulation_settings import SimulationSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeMetrics:
    """Per-step traffic and money."""
    node_id: str
    traffic_in: int
    buyers: int
    declined: int
    revenue: float
    epc: float
    health: str


@dataclass(frozen=True)
class MetricsResult:
    """Per-step metrics (topological order) plus funnel-wide totals."""
    nodes: dict[str, NodeMetrics] = field(default_factory=dict)
    total_revenue: float = 0.0
    total_cost: float = 0.0
    total_profit: float = 0.0
    total_traffic: int = 0
    blended_epc: float = 0.0
    cost_per_visitor: float = 0.0

    def get(self, node_id: str) -> Optional[NodeMetrics]:
        return self.nodes.get(node_id)


def get_health_colour(conversion_rate: float, settings: Optional[SimulationSettings] = None) -> str:
    """Colour band for a step's conversion rate: 'green', 'yellow' or 'red'."""
    settings = settings or SimulationSettings()
    if conversion_rate >= settings.healthy_conversion_threshold:
        return 'green'
    if conversion_rate >= settings.warning_conversion_threshold:
        return 'yellow'
    return 'red'


def safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def aggregate(
    graph: FunnelGraph,
    propagation: PropagationResult,
    settings: Optional[SimulationSettings] = None,
) -> MetricsResult:
    """
    Compute revenue/EPC per step and funnel totals.

    Every step's own buyer revenue counts towards total_revenue, not just
    the leaves: each step is an independent offer. Cost is the sum of all
    traffic source costs regardless of how much traffic was propagated.
    """
    settings = settings or SimulationSettings()

    nodes: dict[str, NodeMetrics] = {}
    for node_id, traffic in propagation.nodes.items():
        node = graph.nodes[node_id]
        revenue = traffic.buyers * node.price
        nodes[node_id] = NodeMetrics(
            node_id=node_id,
            traffic_in=traffic.traffic_in,
            buyers=traffic.buyers,
            declined=traffic.declined,
            revenue=revenue,
            epc=safe_ratio(revenue, traffic.traffic_in),
            health=get_health_colour(node.conversion_rate, settings),
        )

    total_revenue = sum(m.revenue for m in nodes.values())
    total_cost = graph.total_cost
    total_traffic = propagation.total_inbound

    logger.debug("Aggregated %d node(s): revenue=%.2f cost=%.2f traffic=%d",
                 len(nodes), total_revenue, total_cost, total_traffic)

    return MetricsResult(
        nodes=nodes,
        total_revenue=total_revenue,
        total_cost=total_cost,
        total_profit=total_revenue - total_cost,
        total_traffic=total_traffic,
        blended_epc=safe_ratio(total_revenue, total_traffic),
        cost_per_visitor=safe_ratio(total_cost, total_traffic),
    )
