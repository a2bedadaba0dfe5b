"""
Funnel Simulation Runner Package

Provides traffic propagation and funnel metrics computation.
"""

from .types import (
    SimulationRequest,
    SensitivityRequest,
    SimulationResponse,
    FunnelReport,
    FunnelTotals,
    NodeRow,
    BreakevenSummary,
)

from .graph_builder import FunnelGraph, build_funnel_graph, build_from_snapshot
from .propagation import NodeTraffic, PropagationResult, propagate, topological_order
from .metrics import MetricsResult, NodeMetrics, aggregate
from .sensitivity import calculate_sensitivity, calculate_all_sensitivities
from .breakeven import BreakevenReport, calculate_breakeven, breakeven_status, build_breakeven_report
from .simulation_settings import SimulationSettings, settings_from_dict
from .analyzer import analyze, simulate

__all__ = [
    # Types
    'SimulationRequest',
    'SensitivityRequest',
    'SimulationResponse',
    'FunnelReport',
    'FunnelTotals',
    'NodeRow',
    'BreakevenSummary',
    # Engine
    'FunnelGraph',
    'build_funnel_graph',
    'build_from_snapshot',
    'NodeTraffic',
    'PropagationResult',
    'propagate',
    'topological_order',
    'MetricsResult',
    'NodeMetrics',
    'aggregate',
    'calculate_sensitivity',
    'calculate_all_sensitivities',
    'BreakevenReport',
    'calculate_breakeven',
    'breakeven_status',
    'build_breakeven_report',
    'SimulationSettings',
    'settings_from_dict',
    # Functions
    'analyze',
    'simulate',
]
