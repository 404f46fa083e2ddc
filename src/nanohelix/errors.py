"""Error hierarchy for nanohelix designs, geometry and relaxation."""

from __future__ import annotations

from typing import Any, Optional


class NanohelixError(Exception):
    """Base error for every condition raised by nanohelix."""


class UnknownGrid(NanohelixError, LookupError):
    """Raised when a grid id is not present in the design."""


class UnknownHelix(NanohelixError, LookupError):
    """Raised when a helix id is not present in the design."""


class UnknownPath(NanohelixError, LookupError):
    """Raised when a Bezier path or plane id is not present in the design."""


class UnknownStrand(NanohelixError, LookupError):
    """Raised when a strand id is not present in the design."""


class IndexOutOfDeclaredRange(NanohelixError, LookupError):
    """Raised when a nucleotide index falls outside a helix's declared bounds."""


class DegenerateCurve(NanohelixError, ValueError):
    """Raised when a curve has zero speed or coincident control points."""


class TopologyMismatch(NanohelixError, ValueError):
    """Raised when strand domains and junctions disagree, or a removal breaks references."""


class HelixInUse(TopologyMismatch):
    """Raised when deleting a helix that strand domains still reference."""


class GridInUse(TopologyMismatch):
    """Raised when deleting a grid that still has member helices."""


class PathInUse(TopologyMismatch):
    """Raised when deleting a Bezier path or plane that helices or grids still use."""


class GridPositionOccupied(NanohelixError, ValueError):
    """Raised when a helix is placed on a lattice vertex that already holds one."""


class GridTypeError(NanohelixError, TypeError):
    """Raised when a lattice operation is not defined for the grid type."""


class RelaxationDiverged(NanohelixError, RuntimeError):
    """Raised when the strain energy leaves the finite range or exceeds the cutoff."""

    def __init__(self, message: str, last_result: Optional[Any] = None) -> None:
        super().__init__(message)
        self.last_result = last_result


class RelaxSpecError(NanohelixError, ValueError):
    """Raised when a relaxation config file is malformed."""


class DesignFormatError(NanohelixError, ValueError):
    """Raised when a design payload cannot be read."""
