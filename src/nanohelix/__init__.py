"""nanohelix: geometry and rigid-body relaxation of DNA nanostructure designs."""

from importlib import metadata

from .design import Design, DesignPoses
from .errors import (
    DegenerateCurve,
    DesignFormatError,
    GridInUse,
    GridPositionOccupied,
    GridTypeError,
    HelixInUse,
    IndexOutOfDeclaredRange,
    NanohelixError,
    PathInUse,
    RelaxationDiverged,
    RelaxSpecError,
    TopologyMismatch,
    UnknownGrid,
    UnknownHelix,
    UnknownPath,
    UnknownStrand,
)
from .grid import Grid, GridType
from .helix import Frame, Frame2D, Helix, HelixGridPosition
from .parameters import DEFAULT_PARAMETERS, GEARY_2014_DNA, GEARY_2014_RNA, OLD_ENSNANO, DnaParameters
from .relax import CancelToken, RelaxConfig, RelaxResult, RigidBodyRelaxer, relax
from .rotor import Isometry2, Rotor
from .strands import HelixDomain, Insertion, Junction, Nucl, Strand

try:  # pragma: no cover - metadata only at runtime
    __version__ = metadata.version("nanohelix")
except metadata.PackageNotFoundError:  # pragma: no cover - source tree / editable installs
    __version__ = "0.0.0"

__all__ = [
    "CancelToken",
    "DEFAULT_PARAMETERS",
    "DegenerateCurve",
    "Design",
    "DesignFormatError",
    "DesignPoses",
    "DnaParameters",
    "Frame",
    "Frame2D",
    "GEARY_2014_DNA",
    "GEARY_2014_RNA",
    "Grid",
    "GridInUse",
    "GridPositionOccupied",
    "GridType",
    "GridTypeError",
    "Helix",
    "HelixDomain",
    "HelixGridPosition",
    "HelixInUse",
    "IndexOutOfDeclaredRange",
    "Insertion",
    "Isometry2",
    "Junction",
    "NanohelixError",
    "Nucl",
    "OLD_ENSNANO",
    "PathInUse",
    "RelaxConfig",
    "RelaxResult",
    "RelaxSpecError",
    "RelaxationDiverged",
    "RigidBodyRelaxer",
    "Rotor",
    "Strand",
    "TopologyMismatch",
    "UnknownGrid",
    "UnknownHelix",
    "UnknownPath",
    "UnknownStrand",
    "relax",
]
