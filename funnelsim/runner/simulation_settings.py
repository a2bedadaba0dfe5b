"""
Simulation settings: tuning constants for metrics presentation and sensitivity.

The embedding application may send these explicitly with a request; Python
defines the defaults here for tests and for callers that send nothing.
"""

import hashlib
import json
import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SimulationSettings:
    """
    Constants used by the metrics aggregator and sensitivity analyzer.

    Field names match the wire format accepted by settings_from_dict().
    """

    # ── Node health (conversion-rate colour bands) ────────────

    healthy_conversion_threshold: float = 15
    """Conversion rate (%) at or above which a step is 'green'."""

    warning_conversion_threshold: float = 5
    """Conversion rate (%) at or above which a step is 'yellow' (below: 'red')."""

    # ── Sensitivity ───────────────────────────────────────────

    sensitivity_step: float = 1.0
    """Percentage points added to the target node's conversion rate."""

    max_conversion_rate: float = 100
    """Clamp for the perturbed conversion rate (never above 100)."""


# Inclusive bounds; values outside fall back to the default.
_VALID_RANGES = {
    'sensitivity_step': (0.0, 100.0),
    'max_conversion_rate': (0.0, 100.0),
}


def settings_from_dict(d: Optional[Dict[str, Any]]) -> SimulationSettings:
    """
    Construct SimulationSettings from a dict (e.g. from a request body).

    Missing fields use Python defaults. Extra fields are ignored, as are
    non-finite or out-of-range values (see _VALID_RANGES).
    """
    if not d:
        return SimulationSettings()

    kwargs = {}
    for field_name in SimulationSettings.__dataclass_fields__:
        if field_name in d:
            val = d[field_name]
            if not isinstance(val, (int, float)) or isinstance(val, bool) or not math.isfinite(val):
                continue
            low, high = _VALID_RANGES.get(field_name, (-math.inf, math.inf))
            if low <= val <= high:
                kwargs[field_name] = float(val)
    return SimulationSettings(**kwargs)


def compute_settings_signature(settings: SimulationSettings) -> str:
    """
    Deterministic hash of the settings for report provenance.

    Hex SHA-256 truncated to 16 characters.
    """
    # Canonical JSON: sorted keys, no whitespace, full float precision.
    d = {k: float(v) for k, v in asdict(settings).items()}
    canonical = json.dumps(d, sort_keys=True, separators=(',', ':'))
    digest = hashlib.sha256(canonical.encode('utf-8')).hexdigest()
    return digest[:16]
