"""
Traffic Propagation

Pushes inbound visitors through the funnel graph and records, per step,
how many visitors arrived, bought and declined.

Nodes are evaluated in topological order over the subgraph reachable from
the Frontend (Kahn's algorithm). A step with several incoming edges, e.g.
an OTO fed both by an earlier Buy and by a downsell's No Thanks, is
evaluated once with the sum of all its inbound contributions.
"""

import heapq
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR
from typing import Optional

from ..errors import CycleDetectedError, EmptyGraphError
from ..graph_types import Branch
from .graph_builder import FunnelGraph

logger = logging.getLogger(__name__)

_HUNDRED = Decimal(100)


@dataclass(frozen=True)
class NodeTraffic:
    """Traffic through a single step. buyers + declined == traffic_in."""
    node_id: str
    traffic_in: int
    buyers: int
    declined: int


@dataclass(frozen=True)
class PropagationResult:
    """
    Result of one propagation run.

    nodes is ordered topologically (ties broken by declared node order).
    edge_traffic maps edge id -> visitors sent along it. exits maps node id
    -> visitors leaving the funnel at that step because the branch they took
    has no outgoing edge.
    """
    total_inbound: int
    nodes: dict[str, NodeTraffic] = field(default_factory=dict)
    edge_traffic: dict[str, int] = field(default_factory=dict)
    exits: dict[str, int] = field(default_factory=dict)

    @property
    def order(self) -> list[str]:
        return list(self.nodes)

    def get(self, node_id: str) -> Optional[NodeTraffic]:
        return self.nodes.get(node_id)


def count_buyers(traffic_in: int, conversion_rate: float) -> int:
    """
    floor(traffic_in * conversion_rate / 100).

    The rate is taken at its decimal (as entered) value so that e.g. 1000
    visitors at 14.1% gives exactly 141 buyers regardless of binary float
    representation.
    """
    if traffic_in <= 0 or conversion_rate <= 0:
        return 0
    exact = Decimal(traffic_in) * Decimal(repr(float(conversion_rate))) / _HUNDRED
    return int(exact.to_integral_value(rounding=ROUND_FLOOR))


def topological_order(graph: FunnelGraph) -> list[str]:
    """
    Topological order of the nodes reachable from the Frontend.

    Kahn's algorithm with explicit in-degree counters. In-degree counts
    edges, not predecessors, so a downsell sending both branches to the same
    OTO contributes two. Ready nodes are released in declared node order.

    Raises:
        CycleDetectedError: if the reachable subgraph cannot be fully ordered
    """
    reachable = graph.reachable
    position = {node_id: i for i, node_id in enumerate(graph.nodes)}

    in_degree = {node_id: 0 for node_id in reachable}
    successors: dict[str, list[str]] = {node_id: [] for node_id in reachable}
    for edge in graph.edges:
        if edge.source in reachable:
            in_degree[edge.target] += 1
            successors[edge.source].append(edge.target)

    ready = [(position[n], n) for n, deg in in_degree.items() if deg == 0]
    heapq.heapify(ready)

    order = []
    while ready:
        _, node_id = heapq.heappop(ready)
        order.append(node_id)
        for target in successors[node_id]:
            in_degree[target] -= 1
            if in_degree[target] == 0:
                heapq.heappush(ready, (position[target], target))

    if len(order) != len(reachable):
        stuck = sorted((n for n, deg in in_degree.items() if deg > 0), key=position.get)
        logger.error("Invariant violation: topological sort stalled on %s", stuck)
        raise CycleDetectedError(
            f"Funnel contains a cycle through: {', '.join(stuck)}",
            node_id=stuck[0] if stuck else None,
        )
    return order


def propagate(graph: FunnelGraph, total_inbound_traffic: Optional[int] = None) -> PropagationResult:
    """
    Propagate traffic through the funnel.

    Args:
        graph: Validated FunnelGraph
        total_inbound_traffic: Visitors entering at the Frontend. Defaults to
            the sum of the graph's traffic source visits.

    Returns:
        PropagationResult (fresh on every call)

    Raises:
        EmptyGraphError: graph has no Frontend node
        CycleDetectedError: reachable subgraph is not a DAG
    """
    if not graph.frontend_id or graph.frontend_id not in graph.nodes:
        logger.error("Invariant violation: propagate() called on graph without frontend node")
        raise EmptyGraphError("Funnel has no frontend node")

    if total_inbound_traffic is None:
        total_inbound_traffic = graph.total_visits
    if total_inbound_traffic < 0:
        raise ValueError(f"total_inbound_traffic must be >= 0, got {total_inbound_traffic}")
    if isinstance(total_inbound_traffic, float) and not total_inbound_traffic.is_integer():
        raise ValueError(f"total_inbound_traffic must be a whole number, got {total_inbound_traffic}")
    total_inbound_traffic = int(total_inbound_traffic)

    order = topological_order(graph)

    inbound = {node_id: 0 for node_id in order}
    inbound[graph.frontend_id] += total_inbound_traffic

    nodes: dict[str, NodeTraffic] = {}
    edge_traffic: dict[str, int] = {}
    exits: dict[str, int] = {}

    for node_id in order:
        node = graph.nodes[node_id]
        traffic_in = inbound[node_id]
        buyers = count_buyers(traffic_in, node.conversion_rate)
        declined = traffic_in - buyers
        nodes[node_id] = NodeTraffic(node_id, traffic_in, buyers, declined)

        exited = 0
        for branch, count in ((Branch.BUY, buyers), (Branch.NO_THANKS, declined)):
            edge = graph.outgoing_edge(node_id, branch)
            if edge is None:
                exited += count
                continue
            edge_traffic[edge.id] = count
            inbound[edge.target] += count
        exits[node_id] = exited

    logger.debug("Propagated %d visitors through %d node(s) (%d dangling)",
                 total_inbound_traffic, len(nodes), len(graph.dangling_nodes))

    return PropagationResult(
        total_inbound=total_inbound_traffic,
        nodes=nodes,
        edge_traffic=edge_traffic,
        exits=exits,
    )
