import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from nanohelix import Design, Grid, GridType, HelixDomain, Junction, Strand  # noqa: E402


@pytest.fixture
def square_design():
    """Square grid at the origin with helices on (0, 0) and (0, 1)."""

    design = Design()
    grid_id = design.add_grid(Grid(grid_type=GridType.SQUARE))
    design.add_helix_on_grid(grid_id, 0, 0)
    design.add_helix_on_grid(grid_id, 0, 1)
    return design


@pytest.fixture
def scaffold_design(square_design):
    """``square_design`` with one strand crossing from helix 0 to helix 1."""

    strand = Strand(
        domains=[HelixDomain(0, 0, 8, True), HelixDomain(1, 0, 8, False)],
        junctions=[Junction.CROSSOVER, Junction.PRIME3],
    )
    square_design.add_strand(strand)
    return square_design
