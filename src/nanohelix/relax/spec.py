"""
Relaxation config files (YAML → RelaxConfig).

Example::

    kind: nanohelix.relax.v1
    relax:
      granularity: grid
      max_steps: 500
      seed: 7
      weights:
        steric: 1.0
        crossover: 2.0
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from ..errors import RelaxSpecError
from .model import RelaxConfig

RELAX_KIND = "nanohelix.relax.v1"

_INT_FIELDS = ("max_steps", "window", "seed", "divergence_patience")
_FLOAT_FIELDS = (
    "dt",
    "damping",
    "max_step_size",
    "max_rotation_step",
    "crossover_rest_length",
    "tolerance",
    "max_strain",
    "noise_amplitude",
)


def load_relax_config(path: Path) -> RelaxConfig:
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise RelaxSpecError(f"Relaxation config '{cfg_path}' not found.")
    try:
        data = yaml.safe_load(cfg_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise RelaxSpecError(f"Relaxation config '{cfg_path}' is not valid YAML: {exc}") from exc
    return parse_relax_config(data)


def parse_relax_config(data: Any) -> RelaxConfig:
    if not isinstance(data, dict):
        raise RelaxSpecError("Relaxation config must be a YAML mapping.")
    kind = str(data.get("kind", "")).strip()
    if kind != RELAX_KIND:
        raise RelaxSpecError(f"Unknown relaxation config kind {kind!r}. Supported kind: '{RELAX_KIND}'.")
    section = data.get("relax", {})
    if section is None:
        section = {}
    if not isinstance(section, dict):
        raise RelaxSpecError("'relax' section must be a mapping.")
    return _parse_relax_section(section)


def _parse_relax_section(section: Mapping[str, Any]) -> RelaxConfig:
    known = set(_INT_FIELDS) | set(_FLOAT_FIELDS) | {"granularity", "weights", "wall_budget_s", "workers"}
    unknown = sorted(set(section) - known)
    if unknown:
        raise RelaxSpecError(f"Unknown relaxation settings: {', '.join(unknown)}.")
    values: Dict[str, Any] = {}
    try:
        for name in _INT_FIELDS:
            if name in section:
                values[name] = int(section[name])
        for name in _FLOAT_FIELDS:
            if name in section:
                values[name] = float(section[name])
        if "granularity" in section:
            values["granularity"] = str(section["granularity"]).strip().lower()
        if section.get("wall_budget_s") is not None:
            values["wall_budget_s"] = float(section["wall_budget_s"])
        if section.get("workers") is not None:
            values["workers"] = int(section["workers"])
        weights = section.get("weights") or {}
        if not isinstance(weights, dict):
            raise RelaxSpecError("'relax.weights' must be a mapping with 'steric' and/or 'crossover'.")
        extra = sorted(set(weights) - {"steric", "crossover"})
        if extra:
            raise RelaxSpecError(f"Unknown strain weights: {', '.join(extra)}.")
        if "steric" in weights:
            values["steric_weight"] = float(weights["steric"])
        if "crossover" in weights:
            values["crossover_weight"] = float(weights["crossover"])
        return RelaxConfig(**values)
    except RelaxSpecError:
        raise
    except (TypeError, ValueError) as exc:
        raise RelaxSpecError(f"Invalid relaxation settings: {exc}") from exc
