"""
Snapshot / settings file loading.

Funnel snapshots and simulation settings can be stored as JSON or YAML
(chosen by file extension). Both go through the same validation as
request bodies.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from .graph_types import GraphSnapshot
from .runner.simulation_settings import SimulationSettings, settings_from_dict

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _read_mapping(path: PathLike) -> Dict[str, Any]:
    path = Path(path)
    with open(path, 'r', encoding='utf-8') as f:
        if path.suffix.lower() in ('.yaml', '.yml'):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level, got {type(data).__name__}")
    return data


def load_snapshot(path: PathLike) -> GraphSnapshot:
    """
    Load a funnel snapshot from a .json/.yaml/.yml file.

    Raises:
        pydantic.ValidationError: file content does not match the snapshot schema
    """
    data = _read_mapping(path)
    snapshot = GraphSnapshot.model_validate(data)
    logger.debug("Loaded snapshot %s: %d node(s), %d edge(s), %d source(s)",
                 path, len(snapshot.nodes), len(snapshot.edges), len(snapshot.sources))
    return snapshot


def load_settings(path: PathLike) -> SimulationSettings:
    """Load SimulationSettings from a .json/.yaml/.yml file (missing keys default)."""
    return settings_from_dict(_read_mapping(path))


def dump_snapshot(snapshot: GraphSnapshot, path: PathLike) -> None:
    """Write a snapshot as JSON or YAML (by extension), using wire field names."""
    path = Path(path)
    data = snapshot.model_dump(mode='json', by_alias=True)
    with open(path, 'w', encoding='utf-8') as f:
        if path.suffix.lower() in ('.yaml', '.yml'):
            yaml.safe_dump(data, f, sort_keys=False)
        else:
            json.dump(data, f, indent=2)
