"""
Funnel validation errors.

Raised by build_funnel_graph() while turning a snapshot into a FunnelGraph.
Each error carries the offending node/edge id (when there is one) so the
calling layer can show the message next to the right element on the canvas.
"""

from typing import Optional


class FunnelValidationError(ValueError):
    """Base class for structural/value errors in a funnel snapshot."""

    error_type = 'validation_error'

    def __init__(self, message: str, node_id: Optional[str] = None, edge_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.node_id = node_id
        self.edge_id = edge_id

    def to_dict(self) -> dict:
        return {
            'error_type': type(self).__name__,
            'category': self.error_type,
            'message': self.message,
            'node_id': self.node_id,
            'edge_id': self.edge_id,
        }


class NoEntryPointError(FunnelValidationError):
    """Zero or more than one Frontend node."""


class DuplicateIdError(FunnelValidationError):
    """Two nodes (or two edges) share an id."""


class DanglingEdgeError(FunnelValidationError):
    """Edge references a node id that does not exist."""


class BranchCardinalityError(FunnelValidationError):
    """More than one edge of the same branch leaves one node."""


class InvalidFrontendBranchError(FunnelValidationError):
    """Frontend node originates a NoThanks edge."""


class InvalidBuyTargetError(FunnelValidationError):
    """Buy edge targets a Downsell node."""


class CycleDetectedError(FunnelValidationError):
    """Edges do not form a DAG."""


class InvalidRateError(FunnelValidationError):
    """Conversion rate outside [0, 100]."""


class InvalidPriceError(FunnelValidationError):
    """Negative (or non-finite) price."""


class UnknownNodeError(FunnelValidationError):
    """Node id not present in the graph."""


class FunnelInvariantError(RuntimeError):
    """Engine invariant violated. Unreachable for graphs built by build_funnel_graph()."""

    error_type = 'compute_error'


class EmptyGraphError(FunnelInvariantError):
    """Propagation was handed a graph without a Frontend node."""
