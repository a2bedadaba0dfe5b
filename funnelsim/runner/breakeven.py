"""
Breakeven

Visitors needed for revenue at the blended EPC to cover acquisition cost.

This is a single-ratio approximation: it assumes conversion rates and the
revenue mix do not change with traffic volume, which holds for the linear
propagation model. When sources have different costs per visitor the result
is approximate, since blended EPC mixes all sources.
"""

import math
from dataclasses import dataclass
from typing import Optional

from .metrics import MetricsResult


@dataclass(frozen=True)
class BreakevenReport:
    """Breakeven summary for the breakeven panel."""
    breakeven_visitors: Optional[int]
    total_traffic: int
    total_cost: float
    total_revenue: float
    total_profit: float
    blended_epc: float
    cost_per_visitor: float
    is_profitable: bool
    above_breakeven: Optional[bool]
    visitors_short: int


def calculate_breakeven(total_cost: float, blended_epc: float) -> Optional[int]:
    """
    ceil(total_cost / blended_epc), or None when blended_epc <= 0.

    None means no revenue-generating path exists, so no finite traffic
    volume breaks even.
    """
    if blended_epc <= 0:
        return None
    return math.ceil(total_cost / blended_epc)


def breakeven_status(breakeven_visitors: Optional[int], actual_traffic: int) -> tuple[Optional[bool], int]:
    """
    (above_breakeven, visitors_short) for the current traffic.

    above_breakeven is None when there is no breakeven point or no traffic.
    """
    if breakeven_visitors is None or actual_traffic <= 0:
        return None, 0
    if actual_traffic >= breakeven_visitors:
        return True, 0
    return False, breakeven_visitors - actual_traffic


def build_breakeven_report(metrics: MetricsResult) -> BreakevenReport:
    """Breakeven figures plus above/below status for the current traffic."""
    visitors = calculate_breakeven(metrics.total_cost, metrics.blended_epc)
    above, short = breakeven_status(visitors, metrics.total_traffic)

    return BreakevenReport(
        breakeven_visitors=visitors,
        total_traffic=metrics.total_traffic,
        total_cost=metrics.total_cost,
        total_revenue=metrics.total_revenue,
        total_profit=metrics.total_profit,
        blended_epc=metrics.blended_epc,
        cost_per_visitor=metrics.cost_per_visitor,
        is_profitable=metrics.total_profit >= 0,
        above_breakeven=above,
        visitors_short=short,
    )
