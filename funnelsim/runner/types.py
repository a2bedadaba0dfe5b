"""
Simulation Runner Types

Pydantic models for simulation request/response.
"""

from typing import Optional, Any
from pydantic import BaseModel, Field

from ..graph_types import GraphSnapshot


# ============================================================================
# Request Types
# ============================================================================

class SimulationRequest(BaseModel):
    """Request to simulate a funnel snapshot."""
    snapshot: GraphSnapshot = Field(description="Full funnel snapshot (nodes, edges, sources)")
    settings: dict[str, Any] = Field(
        default_factory=dict,
        description="SimulationSettings overrides (see settings_from_dict)"
    )
    include_sensitivity: bool = Field(
        default=False,
        description="Compute per-step sensitivity deltas (one extra propagation per step)"
    )


class SensitivityRequest(BaseModel):
    """Request for the sensitivity of a single step (e.g. on hover)."""
    snapshot: GraphSnapshot
    node_id: str = Field(min_length=1)
    settings: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Response Types
# ============================================================================

class NodeRow(BaseModel):
    """Per-step output row, in topological order."""
    node_id: str
    label: str
    kind: str
    price: float
    conversion_rate: float
    traffic_in: int
    buyers: int
    declined: int
    revenue: float
    epc: float
    health: str = Field(description="Conversion health colour: green, yellow, red")
    sensitivity_delta: Optional[float] = Field(
        default=None,
        description="Signed revenue delta for +1 point conversion (only when requested)"
    )


class FunnelTotals(BaseModel):
    """Funnel-wide totals."""
    total_revenue: float = 0.0
    total_cost: float = 0.0
    total_profit: float = 0.0
    total_traffic: int = 0
    blended_epc: float = 0.0
    cost_per_visitor: float = 0.0


class BreakevenSummary(BaseModel):
    """Breakeven panel data."""
    breakeven_visitors: Optional[int] = None
    is_profitable: bool = False
    above_breakeven: Optional[bool] = None
    visitors_short: int = 0


class FunnelReport(BaseModel):
    """Full simulation output for one snapshot."""
    nodes: list[NodeRow] = Field(default_factory=list)
    edge_traffic: dict[str, int] = Field(
        default_factory=dict,
        description="Edge id -> visitors sent along the edge"
    )
    totals: FunnelTotals = Field(default_factory=FunnelTotals)
    breakeven: BreakevenSummary = Field(default_factory=BreakevenSummary)
    dangling_nodes: list[str] = Field(
        default_factory=list,
        description="Steps unreachable from the frontend (excluded from results)"
    )
    settings_signature: str = Field(default="", description="Hash of the settings used")

    def get_node(self, node_id: str) -> Optional[NodeRow]:
        for row in self.nodes:
            if row.node_id == node_id:
                return row
        return None


class SimulationResponse(BaseModel):
    """Response from simulation."""
    success: bool = Field(default=True, description="Whether simulation succeeded")
    result: Optional[FunnelReport] = Field(default=None)
    error: Optional[dict[str, Any]] = Field(
        default=None,
        description="Error details if success=False"
    )
