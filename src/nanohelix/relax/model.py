"""Configuration, results and cancellation for rigid-body relaxation."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, field, replace
from typing import Any, List, Optional, TYPE_CHECKING

from ..config import default_relax_workers

if TYPE_CHECKING:  # pragma: no cover
    from ..design import Design, DesignPoses

GRANULARITIES = ("helix", "grid")


@dataclass(frozen=True)
class RelaxConfig:
    """Knobs of the relaxation loop.

    Lengths are in nm, rotations in radians and strain in weighted nm^2.
    ``workers=None`` reads ``NANOHELIX_RELAX_WORKERS``. A run diverges when
    ``divergence_patience`` trial steps in a row exceed ``max_strain``.
    """

    granularity: str = "helix"
    max_steps: int = 2000
    dt: float = 0.1
    damping: float = 1.0
    max_step_size: float = 0.25
    max_rotation_step: float = 0.05
    steric_weight: float = 1.0
    crossover_weight: float = 1.0
    crossover_rest_length: float = 0.7
    window: int = 20
    tolerance: float = 1e-6
    max_strain: float = 1e6
    divergence_patience: int = 5
    noise_amplitude: float = 0.0
    seed: int = 0
    wall_budget_s: Optional[float] = None
    workers: Optional[int] = None

    def __post_init__(self) -> None:
        if self.granularity not in GRANULARITIES:
            raise ValueError(f"granularity must be one of {GRANULARITIES} (got {self.granularity!r}).")
        if self.max_steps < 0:
            raise ValueError("max_steps must be >= 0.")
        if self.window < 1:
            raise ValueError("window must be >= 1.")
        if self.divergence_patience < 1:
            raise ValueError("divergence_patience must be >= 1.")
        for name in ("dt", "damping", "max_step_size", "max_rotation_step", "max_strain"):
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0):
                raise ValueError(f"{name} must be a positive finite number (got {value!r}).")
        for name in ("steric_weight", "crossover_weight", "crossover_rest_length", "tolerance", "noise_amplitude"):
            value = getattr(self, name)
            if not (math.isfinite(value) and value >= 0):
                raise ValueError(f"{name} must be a non-negative finite number (got {value!r}).")
        if self.wall_budget_s is not None and self.wall_budget_s <= 0:
            raise ValueError("wall_budget_s must be positive when set.")
        if self.workers is not None and self.workers < 1:
            raise ValueError("workers must be >= 1 when set.")

    def resolved_workers(self) -> int:
        return self.workers if self.workers is not None else default_relax_workers()

    def with_updates(self, **changes: Any) -> "RelaxConfig":
        return replace(self, **changes)


@dataclass
class RelaxResult:
    """Outcome of a relaxation; ``design`` is a relaxed copy of the input."""

    design: "Design"
    poses: "DesignPoses"
    converged: bool
    final_strain: float
    initial_strain: float
    steps: int
    cancelled: bool = False
    reason: str = ""
    history: List[float] = field(default_factory=list)


class CancelToken:
    """Cooperative cancellation flag shared with a running relaxation."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)
