"""
Funnel snapshot data types using Pydantic

These models describe the graph snapshot submitted by the editor on every
recomputation: offer nodes, Buy/No Thanks edges and traffic sources.

Price and conversion-rate ranges are deliberately NOT constrained here;
build_funnel_graph() checks them so they surface as InvalidPriceError /
InvalidRateError instead of generic parse errors.
"""

from enum import Enum
from typing import List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Enumerations
# ============================================================================

class NodeKind(str, Enum):
    """Offer type of a funnel step."""
    FRONTEND = "frontend"
    ONE_TIME_OFFER = "oto"
    DOWNSELL = "downsell"


class Branch(str, Enum):
    """Outgoing branch of a step: visitor accepted or declined the offer."""
    BUY = "buy"
    NO_THANKS = "no_thanks"


_KIND_ALIASES = {
    'frontend': NodeKind.FRONTEND,
    'fe': NodeKind.FRONTEND,
    'oto': NodeKind.ONE_TIME_OFFER,
    'onetimeoffer': NodeKind.ONE_TIME_OFFER,
    'one_time_offer': NodeKind.ONE_TIME_OFFER,
    'downsell': NodeKind.DOWNSELL,
}

_BRANCH_ALIASES = {
    'buy': Branch.BUY,
    'yes': Branch.BUY,
    'no_thanks': Branch.NO_THANKS,
    'nothanks': Branch.NO_THANKS,
    'no thanks': Branch.NO_THANKS,
    'no': Branch.NO_THANKS,
}


# ============================================================================
# Snapshot Structure
# ============================================================================

class FunnelNode(BaseModel):
    """
    A monetized step of the funnel.

    conversion_rate is a percentage (0-100), not a probability.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1, max_length=128)
    kind: NodeKind
    price: float = Field(0.0, description="Offer price (currency units)")
    conversion_rate: float = Field(
        0.0,
        validation_alias=AliasChoices('conversion_rate', 'conversionRate', 'conversion'),
        serialization_alias='conversionRate',
        description="Percentage of inbound traffic that buys",
    )
    label: Optional[str] = Field(None, max_length=256)

    @field_validator('kind', mode='before')
    @classmethod
    def normalise_kind(cls, v):
        """Accept the editor's legacy spellings (FE, OTO, Downsell, ...)."""
        if isinstance(v, str):
            return _KIND_ALIASES.get(v.strip().lower(), v)
        return v

    @property
    def display_name(self) -> str:
        return self.label or self.id


class FunnelEdge(BaseModel):
    """Directed Buy / No Thanks connection between two steps."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, max_length=128)
    source: str = Field(..., min_length=1, description="Source node id")
    target: str = Field(..., min_length=1, description="Target node id")
    branch: Branch

    @field_validator('branch', mode='before')
    @classmethod
    def normalise_branch(cls, v):
        """Accept canvas handle names (yes/no) and labels (Buy/No Thanks)."""
        if isinstance(v, str):
            return _BRANCH_ALIASES.get(v.strip().lower(), v)
        return v


class TrafficSource(BaseModel):
    """Paid or organic traffic feeding the Frontend node."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    label: str = Field("", max_length=256)
    visits: int = Field(0, ge=0)
    cost: float = Field(0.0, ge=0, allow_inf_nan=False)


class GraphSnapshot(BaseModel):
    """Complete funnel snapshot as submitted by the editor."""
    model_config = ConfigDict(frozen=True)

    nodes: List[FunnelNode] = Field(default_factory=list)
    edges: List[FunnelEdge] = Field(default_factory=list)
    sources: List[TrafficSource] = Field(default_factory=list)

    def get_node_by_id(self, node_id: str) -> Optional[FunnelNode]:
        """Get node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_outgoing_edges(self, node_id: str) -> List[FunnelEdge]:
        """Get all edges leaving a node."""
        return [e for e in self.edges if e.source == node_id]

    def get_incoming_edges(self, node_id: str) -> List[FunnelEdge]:
        """Get all edges entering a node."""
        return [e for e in self.edges if e.target == node_id]
