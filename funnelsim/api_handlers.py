"""
Shared handlers for the embedding application shell.

Plain dict in, dict out, so the same logic serves any transport the shell
chooses. The engine itself has no server.
"""
import math
from typing import Dict, Any


def handle_simulate(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle simulate request.

    Args:
        data: Request body containing:
            - graph: Snapshot with nodes, edges, sources (required)
            - settings: Optional SimulationSettings overrides
            - include_sensitivity: Optional (default False)

    Returns:
        SimulationResponse as a dict (success, result, error)
    """
    graph_data = data.get('graph')
    if not graph_data:
        raise ValueError("Missing 'graph' field")

    from funnelsim.runner.analyzer import analyze, parse_request

    request = parse_request({
        'snapshot': graph_data,
        'settings': data.get('settings') or {},
        'include_sensitivity': bool(data.get('include_sensitivity', False)),
    })
    response = analyze(request)
    return response.model_dump(mode='json')


def handle_sensitivity(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle single-step sensitivity request (hover tooltip).

    Args:
        data: Request body containing:
            - graph: Snapshot (required)
            - node_id: Step to perturb (required)
            - settings: Optional SimulationSettings overrides

    Returns:
        {"node_id", "sensitivity_delta", "success"} or an error dict
    """
    graph_data = data.get('graph')
    node_id = data.get('node_id')

    if not graph_data:
        raise ValueError("Missing 'graph' field")
    if not node_id:
        raise ValueError("Missing 'node_id' field")

    from funnelsim.errors import FunnelValidationError
    from funnelsim.runner.graph_builder import build_from_snapshot
    from funnelsim.runner.sensitivity import calculate_sensitivity
    from funnelsim.runner.simulation_settings import settings_from_dict
    from funnelsim.runner.types import SensitivityRequest

    request = SensitivityRequest.model_validate({
        'snapshot': graph_data,
        'node_id': node_id,
        'settings': data.get('settings') or {},
    })
    try:
        graph = build_from_snapshot(request.snapshot)
        delta = calculate_sensitivity(
            graph, request.snapshot.sources, request.node_id, settings_from_dict(request.settings)
        )
    except FunnelValidationError as e:
        return {"success": False, "error": e.to_dict()}

    return {
        "node_id": node_id,
        "sensitivity_delta": delta,
        "success": True,
    }


def handle_breakeven(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle breakeven request from already-computed totals.

    Args:
        data: Request body containing:
            - total_cost: Acquisition cost (required)
            - blended_epc: Funnel EPC (required)
            - total_traffic: Optional current traffic, for above/below status

    Returns:
        {"breakeven_visitors", "above_breakeven", "visitors_short", "success"}
    """
    if 'total_cost' not in data:
        raise ValueError("Missing 'total_cost' field")
    if 'blended_epc' not in data:
        raise ValueError("Missing 'blended_epc' field")

    total_cost = _finite_field(data, 'total_cost')
    blended_epc = _finite_field(data, 'blended_epc')

    from funnelsim.runner.breakeven import breakeven_status, calculate_breakeven

    visitors = calculate_breakeven(total_cost, blended_epc)
    above, short = breakeven_status(visitors, int(data.get('total_traffic') or 0))

    return {
        "breakeven_visitors": visitors,
        "above_breakeven": above,
        "visitors_short": short,
        "success": True,
    }


def _finite_field(data: Dict[str, Any], name: str) -> float:
    try:
        value = float(data[name])
    except (TypeError, ValueError):
        raise ValueError(f"Invalid '{name}' field: expected a number") from None
    if not math.isfinite(value):
        raise ValueError(f"Invalid '{name}' field: must be finite")
    return value
