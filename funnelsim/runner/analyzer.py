"""
Main Analyzer

Orchestrates a simulation run:
1. Validate snapshot and build FunnelGraph
2. Propagate traffic
3. Aggregate metrics
4. Breakeven
5. (optional) Per-step sensitivity
6. Return report rows in topological order
"""

import logging
from typing import Optional

from pydantic import ValidationError

from ..errors import FunnelInvariantError, FunnelValidationError
from ..graph_types import GraphSnapshot
from .breakeven import build_breakeven_report
from .graph_builder import build_from_snapshot
from .metrics import aggregate
from .propagation import propagate
from .sensitivity import calculate_all_sensitivities
from .simulation_settings import SimulationSettings, compute_settings_signature, settings_from_dict
from .types import (
    BreakevenSummary,
    FunnelReport,
    FunnelTotals,
    NodeRow,
    SimulationRequest,
    SimulationResponse,
)

logger = logging.getLogger(__name__)


def simulate(
    snapshot: GraphSnapshot,
    settings: Optional[SimulationSettings] = None,
    include_sensitivity: bool = False,
) -> FunnelReport:
    """
    Run the full engine on one snapshot.

    Raises:
        FunnelValidationError: snapshot is structurally invalid
    """
    settings = settings or SimulationSettings()

    graph = build_from_snapshot(snapshot)
    propagation = propagate(graph)
    metrics = aggregate(graph, propagation, settings)
    breakeven = build_breakeven_report(metrics)
    sensitivities = calculate_all_sensitivities(graph, settings=settings) if include_sensitivity else {}

    rows = []
    for node_id, m in metrics.nodes.items():
        node = graph.nodes[node_id]
        rows.append(NodeRow(
            node_id=node_id,
            label=node.display_name,
            kind=node.kind.value,
            price=node.price,
            conversion_rate=node.conversion_rate,
            traffic_in=m.traffic_in,
            buyers=m.buyers,
            declined=m.declined,
            revenue=m.revenue,
            epc=m.epc,
            health=m.health,
            sensitivity_delta=sensitivities.get(node_id),
        ))

    return FunnelReport(
        nodes=rows,
        edge_traffic=dict(propagation.edge_traffic),
        totals=FunnelTotals(
            total_revenue=metrics.total_revenue,
            total_cost=metrics.total_cost,
            total_profit=metrics.total_profit,
            total_traffic=metrics.total_traffic,
            blended_epc=metrics.blended_epc,
            cost_per_visitor=metrics.cost_per_visitor,
        ),
        breakeven=BreakevenSummary(
            breakeven_visitors=breakeven.breakeven_visitors,
            is_profitable=breakeven.is_profitable,
            above_breakeven=breakeven.above_breakeven,
            visitors_short=breakeven.visitors_short,
        ),
        dangling_nodes=list(graph.dangling_nodes),
        settings_signature=compute_settings_signature(settings),
    )


def analyze(request: SimulationRequest) -> SimulationResponse:
    """
    Main entry point for the embedding application.

    Validation problems come back as success=False with an error dict the
    editor can attach to the offending node/edge. Engine invariant
    violations are logged and reported as compute errors.
    """
    try:
        result = simulate(
            request.snapshot,
            settings=settings_from_dict(request.settings),
            include_sensitivity=request.include_sensitivity,
        )
        return SimulationResponse(success=True, result=result)

    except FunnelValidationError as e:
        return SimulationResponse(success=False, error=e.to_dict())

    except FunnelInvariantError as e:
        logger.exception("Funnel engine invariant violated")
        return SimulationResponse(
            success=False,
            error={
                'error_type': type(e).__name__,
                'category': e.error_type,
                'message': str(e),
            },
        )


def parse_request(data: dict) -> SimulationRequest:
    """
    Parse a raw request body into a SimulationRequest.

    Raises:
        ValueError: body does not match the request schema
    """
    try:
        return SimulationRequest.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid simulation request: {e}") from e
