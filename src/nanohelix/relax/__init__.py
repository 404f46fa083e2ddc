"""Rigid-body relaxation of DNA designs."""

from .model import CancelToken, RelaxConfig, RelaxResult
from .relaxer import RigidBodyRelaxer, relax
from .spec import load_relax_config, parse_relax_config

__all__ = [
    "CancelToken",
    "RelaxConfig",
    "RelaxResult",
    "RigidBodyRelaxer",
    "load_relax_config",
    "parse_relax_config",
    "relax",
]
