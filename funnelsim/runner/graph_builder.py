"""
Graph Builder

Validates a funnel snapshot and converts it to an immutable FunnelGraph
backed by a NetworkX MultiDiGraph.

A MultiDiGraph is required: a downsell may route both its Buy and its
No Thanks branch to the same next offer, which is two distinct edges
between the same node pair.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

import networkx as nx

from ..errors import (
    BranchCardinalityError,
    CycleDetectedError,
    DanglingEdgeError,
    DuplicateIdError,
    InvalidBuyTargetError,
    InvalidFrontendBranchError,
    InvalidPriceError,
    InvalidRateError,
    NoEntryPointError,
    UnknownNodeError,
)
from ..graph_types import Branch, FunnelEdge, FunnelNode, GraphSnapshot, NodeKind, TrafficSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FunnelGraph:
    """
    Validated funnel graph.

    nodes keeps the snapshot's declared (display) order. G holds topology
    only: node keys plus per-edge 'branch' and 'edge_id' attributes, keyed
    by edge id. It is frozen; mutation attempts raise nx.NetworkXError.
    branch_edges indexes edges by (source, branch) for constant-time routing.
    """
    nodes: dict[str, FunnelNode]
    edges: tuple[FunnelEdge, ...]
    sources: tuple[TrafficSource, ...]
    frontend_id: str
    G: nx.MultiDiGraph = field(repr=False, compare=False)
    reachable: frozenset[str] = frozenset()
    dangling_nodes: tuple[str, ...] = ()
    branch_edges: dict[tuple[str, Branch], FunnelEdge] = field(default_factory=dict, repr=False, compare=False)

    def node(self, node_id: str) -> FunnelNode:
        """Get node by id, raising UnknownNodeError if absent."""
        try:
            return self.nodes[node_id]
        except KeyError:
            raise UnknownNodeError(f"Unknown node '{node_id}'", node_id=node_id) from None

    def outgoing_edge(self, node_id: str, branch: Branch) -> Optional[FunnelEdge]:
        """Get the (at most one) edge leaving node_id on the given branch."""
        return self.branch_edges.get((node_id, branch))

    def buy_edge(self, node_id: str) -> Optional[FunnelEdge]:
        return self.outgoing_edge(node_id, Branch.BUY)

    def no_thanks_edge(self, node_id: str) -> Optional[FunnelEdge]:
        return self.outgoing_edge(node_id, Branch.NO_THANKS)

    @property
    def total_visits(self) -> int:
        return sum(s.visits for s in self.sources)

    @property
    def total_cost(self) -> float:
        return sum(s.cost for s in self.sources)

    def with_conversion_rate(self, node_id: str, rate: float) -> 'FunnelGraph':
        """
        Return a copy of this graph with one node's conversion rate replaced.

        Topology is unchanged, so the frozen NetworkX graph and reachability
        are shared with this graph.
        """
        node = self.node(node_id)
        _check_rate(node_id, rate)
        nodes = dict(self.nodes)
        nodes[node_id] = node.model_copy(update={'conversion_rate': rate})
        return FunnelGraph(
            nodes=nodes,
            edges=self.edges,
            sources=self.sources,
            frontend_id=self.frontend_id,
            G=self.G,
            reachable=self.reachable,
            dangling_nodes=self.dangling_nodes,
            branch_edges=self.branch_edges,
        )


def build_funnel_graph(
    nodes: Iterable[FunnelNode],
    edges: Iterable[FunnelEdge],
    sources: Iterable[TrafficSource] = (),
) -> FunnelGraph:
    """
    Validate nodes/edges/sources and build a FunnelGraph.

    Validation order:
        1. unique node and edge ids
        2. exactly one Frontend node
        3. node prices and conversion rates
        4. every edge references existing nodes
        5. at most one edge per branch per source node (Frontend: Buy only)
        6. no Buy edge targets a Downsell
        7. edges form a DAG

    Nodes unreachable from the Frontend are allowed (a user may leave a step
    disconnected mid-edit). They are reported in dangling_nodes and skipped
    by propagation.

    Raises:
        FunnelValidationError subclass describing the first problem found
    """
    nodes = list(nodes)
    edges = list(edges)
    sources = tuple(sources)

    node_map: dict[str, FunnelNode] = {}
    for node in nodes:
        if node.id in node_map:
            raise DuplicateIdError(f"Duplicate node id '{node.id}'", node_id=node.id)
        node_map[node.id] = node

    edge_ids = set()
    for edge in edges:
        if edge.id in edge_ids:
            raise DuplicateIdError(f"Duplicate edge id '{edge.id}'", edge_id=edge.id)
        edge_ids.add(edge.id)

    frontend_id = _find_frontend(nodes)

    for node in nodes:
        _check_price(node)
        _check_rate(node.id, node.conversion_rate)

    for edge in edges:
        for ref in (edge.source, edge.target):
            if ref not in node_map:
                raise DanglingEdgeError(
                    f"Edge '{edge.id}' references unknown node '{ref}'",
                    node_id=ref,
                    edge_id=edge.id,
                )

    branch_edges = _check_branches(node_map, edges)

    G = nx.MultiDiGraph()
    for node_id in node_map:
        G.add_node(node_id)
    for edge in edges:
        G.add_edge(edge.source, edge.target, key=edge.id, edge_id=edge.id, branch=edge.branch)

    if not nx.is_directed_acyclic_graph(G):
        _raise_cycle(G)

    reachable = nx.descendants(G, frontend_id)
    reachable.add(frontend_id)
    dangling = tuple(n for n in node_map if n not in reachable)
    if dangling:
        logger.warning("Funnel has %d node(s) unreachable from '%s': %s",
                       len(dangling), frontend_id, ', '.join(dangling))

    return FunnelGraph(
        nodes=node_map,
        edges=tuple(edges),
        sources=sources,
        frontend_id=frontend_id,
        G=nx.freeze(G),
        reachable=frozenset(reachable),
        dangling_nodes=dangling,
        branch_edges=branch_edges,
    )


def build_from_snapshot(snapshot: GraphSnapshot) -> FunnelGraph:
    """Build a FunnelGraph from a parsed GraphSnapshot."""
    return build_funnel_graph(snapshot.nodes, snapshot.edges, snapshot.sources)


def _find_frontend(nodes: list[FunnelNode]) -> str:
    frontends = [n.id for n in nodes if n.kind == NodeKind.FRONTEND]
    if len(frontends) != 1:
        raise NoEntryPointError(
            f"Funnel must have exactly one frontend node, found {len(frontends)}",
            node_id=frontends[1] if len(frontends) > 1 else None,
        )
    return frontends[0]


def _check_price(node: FunnelNode) -> None:
    if not math.isfinite(node.price) or node.price < 0:
        raise InvalidPriceError(
            f"Node '{node.id}' has invalid price {node.price} (must be >= 0)",
            node_id=node.id,
        )


def _check_rate(node_id: str, rate: float) -> None:
    if not math.isfinite(rate) or rate < 0 or rate > 100:
        raise InvalidRateError(
            f"Node '{node_id}' has invalid conversion rate {rate} (must be 0-100)",
            node_id=node_id,
        )


def _check_branches(
    node_map: dict[str, FunnelNode],
    edges: list[FunnelEdge],
) -> dict[tuple[str, Branch], FunnelEdge]:
    seen: dict[tuple[str, Branch], FunnelEdge] = {}
    for edge in edges:
        source = node_map[edge.source]
        if source.kind == NodeKind.FRONTEND and edge.branch == Branch.NO_THANKS:
            raise InvalidFrontendBranchError(
                f"Frontend node '{source.id}' cannot have a No Thanks edge",
                node_id=source.id,
                edge_id=edge.id,
            )

        key = (edge.source, edge.branch)
        if key in seen:
            raise BranchCardinalityError(
                f"Node '{edge.source}' has more than one {edge.branch.value} edge "
                f"('{seen[key].id}', '{edge.id}')",
                node_id=edge.source,
                edge_id=edge.id,
            )
        seen[key] = edge

    for edge in edges:
        if edge.branch == Branch.BUY and node_map[edge.target].kind == NodeKind.DOWNSELL:
            raise InvalidBuyTargetError(
                f"Buy edge '{edge.id}' cannot target downsell '{edge.target}'",
                node_id=edge.target,
                edge_id=edge.id,
            )
    return seen

def _raise_cycle(G: nx.MultiDiGraph) -> None:
    try:
        cycle = nx.find_cycle(G)
    except nx.NetworkXNoCycle:
        raise CycleDetectedError("Funnel contains a cycle") from None
    # MultiDiGraph returns (u, v, key) tuples
    path = " -> ".join([edge[0] for edge in cycle] + [cycle[-1][1]])
    raise CycleDetectedError(
        f"Funnel contains a cycle: {path}",
        node_id=cycle[0][0],
        edge_id=cycle[0][2],
    )
