"""DNA geometric parameters and the named presets shipped with nanohelix."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Mapping, Tuple

INTER_CENTER_GAP = 2.65
"""Distance (nm) between the axes of two neighbouring helices on a lattice."""


@dataclass(frozen=True)
class DnaParameters:
    """Geometric description of a double helix.

    Lengths are in nanometres, angles in radians.
    """

    z_step: float
    helix_radius: float
    bases_per_turn: float
    groove_angle: float
    inter_helix_gap: float
    inclination: float = 0.0

    def validate(self) -> "DnaParameters":
        for name in ("z_step", "helix_radius", "bases_per_turn", "inter_helix_gap"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be a positive finite number (got {value!r}).")
        if not math.isfinite(self.inclination):
            raise ValueError(f"inclination must be finite (got {self.inclination!r}).")
        if not math.isfinite(self.groove_angle) or abs(self.groove_angle) > 2 * math.pi:
            raise ValueError(f"groove_angle must lie in [-2pi, 2pi] (got {self.groove_angle!r}).")
        return self

    @property
    def lattice_radius(self) -> float:
        return self.helix_radius + self.inter_helix_gap / 2.0

    @property
    def inter_center_distance(self) -> float:
        return 2.0 * self.lattice_radius

    @property
    def twist_per_base(self) -> float:
        return 2.0 * math.pi / self.bases_per_turn

    def dist_ac(self) -> float:
        """Expected distance between two consecutive nucleotides of one strand."""

        chord = math.sqrt(2.0) * math.sqrt(1.0 - math.cos(self.twist_per_base)) * self.helix_radius
        return math.hypot(chord, self.z_step)

    def with_updates(self, **changes: Any) -> "DnaParameters":
        return replace(self, **changes).validate()

    def to_payload(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "DnaParameters":
        """Build parameters from a mapping; ``inclination`` may be absent in old files."""

        default = GEARY_2014_DNA
        try:
            params = cls(
                z_step=float(payload.get("z_step", default.z_step)),
                helix_radius=float(payload.get("helix_radius", default.helix_radius)),
                bases_per_turn=float(payload.get("bases_per_turn", default.bases_per_turn)),
                groove_angle=float(payload.get("groove_angle", default.groove_angle)),
                inter_helix_gap=float(payload.get("inter_helix_gap", default.inter_helix_gap)),
                inclination=float(payload.get("inclination", 0.0)),
            )
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid DNA parameters payload: {exc}") from exc
        return params.validate()

    def closest_named(self) -> Tuple[str, "DnaParameters"]:
        """Return the preset closest to these parameters (L1 over all fields)."""

        def distance(other: DnaParameters) -> float:
            mine = asdict(self)
            return sum(abs(mine[key] - value) for key, value in asdict(other).items())

        name = min(PRESETS, key=lambda key: distance(PRESETS[key]))
        return name, PRESETS[name]

    def describe(self) -> str:
        name, preset = self.closest_named()
        lines = [
            f"z_step: {self.z_step:.3f} nm",
            f"helix radius: {self.helix_radius:.3f} nm",
            f"bases per turn: {self.bases_per_turn:.2f}",
            f"groove angle: {math.degrees(self.groove_angle):.1f} deg",
            f"inter helix gap: {self.inter_helix_gap:.3f} nm",
            f"inclination: {self.inclination:.3f} nm",
        ]
        if preset == self:
            lines.append(f"preset: {name}")
        else:
            lines.append(f"closest preset: {name}")
        return "\n".join(lines)


GEARY_2014_DNA = DnaParameters(
    z_step=0.332,
    helix_radius=0.93,
    bases_per_turn=10.44,
    groove_angle=math.radians(170.4),
    inter_helix_gap=INTER_CENTER_GAP - 2 * 0.93,
    inclination=0.375,
)

GEARY_2014_RNA = DnaParameters(
    z_step=0.281,
    helix_radius=0.87,
    bases_per_turn=11.0,
    groove_angle=math.radians(139.9),
    inter_helix_gap=INTER_CENTER_GAP - 2 * 0.87,
    inclination=-0.745,
)

OLD_ENSNANO = DnaParameters(
    z_step=0.332,
    helix_radius=1.0,
    bases_per_turn=10.44,
    groove_angle=2.0 * math.pi * 12.0 / 34.0,
    inter_helix_gap=0.65,
    inclination=0.0,
)

PRESETS: Dict[str, DnaParameters] = {
    "GEARY_2014_DNA": GEARY_2014_DNA,
    "GEARY_2014_RNA": GEARY_2014_RNA,
    "OLD_ENSNANO": OLD_ENSNANO,
}

DEFAULT_PARAMETERS = GEARY_2014_DNA


def preset(name: str) -> DnaParameters:
    try:
        return PRESETS[name.strip().upper()]
    except KeyError:
        known = ", ".join(sorted(PRESETS))
        raise ValueError(f"Unknown DNA parameter preset '{name}'. Known presets: {known}.") from None
