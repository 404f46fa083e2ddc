"""Versioned JSON payloads for designs.

Ids are JSON object keys, vectors are lists and rotors ``[w, x, y, z]``.
Fields added over time (``inclination``, ``locked_for_simulations``,
``range``...) take their defaults when absent so older files still load.
Rotors written as ``{"s": .., "bv": {"xy", "xz", "yz"}}`` are accepted too.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .curves import BezierPath, BezierPlane, BezierVertex
from .design import Design
from .errors import DesignFormatError, NanohelixError
from .grid import Grid, GridType
from .helix import Helix, HelixGridPosition
from .parameters import DnaParameters
from .rotor import Isometry2, Rotor
from .strands import HelixDomain, Insertion, Junction, Strand

LOGGER = logging.getLogger(__name__)

PAYLOAD_VERSION = "1"
ENSNANO_VERSION = "0.5.0"


# ----------------------------------------------------------------- encoding
def _vec(values: Iterable[float]) -> List[float]:
    return [float(value) for value in values]


def _grid_payload(grid: Grid) -> Dict[str, Any]:
    return {
        "position": _vec(grid.position),
        "orientation": grid.orientation.to_list(),
        "grid_type": grid.grid_type.value,
        "invisible": grid.invisible,
        "bezier_vertex": list(grid.bezier_vertex) if grid.bezier_vertex is not None else None,
    }


def _helix_payload(helix: Helix) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "position": _vec(helix.position),
        "orientation": helix.orientation.to_list(),
        "roll": helix.roll,
        "visible": helix.visible,
        "locked_for_simulations": helix.locked_for_simulations,
        "symmetry": _vec(helix.symmetry),
    }
    if helix.grid_position is not None:
        position = helix.grid_position
        grid_payload: Dict[str, Any] = {
            "grid": position.grid,
            "x": position.x,
            "y": position.y,
            "axis_pos": position.axis_pos,
            "roll": position.roll,
        }
        if position.offset is not None:
            grid_payload["offset"] = _vec(position.offset)
        payload["grid_position"] = grid_payload
    if helix.isometry2d is not None:
        payload["isometry2d"] = {"translation": _vec(helix.isometry2d.translation), "angle": helix.isometry2d.angle}
    if helix.path_id is not None:
        payload["path_id"] = helix.path_id
    if helix.range is not None:
        payload["range"] = list(helix.range)
    return payload


def _strand_payload(strand: Strand) -> Dict[str, Any]:
    domains = []
    for domain in strand.domains:
        if isinstance(domain, Insertion):
            domains.append({"Insertion": {"nb_nucl": domain.nb_nucl}})
        else:
            domains.append(
                {
                    "HelixDomain": {
                        "helix": domain.helix,
                        "start": domain.start,
                        "end": domain.end,
                        "forward": domain.forward,
                    }
                }
            )
    return {
        "domains": domains,
        "junctions": [junction.value for junction in strand.junctions or []],
        "color": strand.color,
        "cyclic": strand.cyclic,
        "name": strand.name,
    }


def _path_payload(path: BezierPath) -> Dict[str, Any]:
    return {
        "vertices": [
            {
                "plane_id": vertex.plane_id,
                "position2d": _vec(vertex.position2d),
                "position3d": _vec(vertex.position3d) if vertex.position3d is not None else None,
            }
            for vertex in path.vertices
        ],
        "cyclic": path.cyclic,
    }


def design_to_payload(design: Design) -> Dict[str, Any]:
    return {
        "version": PAYLOAD_VERSION,
        "ensnano_version": design.ensnano_version or ENSNANO_VERSION,
        "dna_parameters": design.parameters.to_payload(),
        "grids": {str(key): _grid_payload(grid) for key, grid in sorted(design.grids.items())},
        "helices": {str(key): _helix_payload(helix) for key, helix in sorted(design.helices.items())},
        "strands": {str(key): _strand_payload(strand) for key, strand in sorted(design.strands.items())},
        "bezier_planes": {
            str(key): {"position": _vec(plane.position), "orientation": plane.orientation.to_list()}
            for key, plane in sorted(design.bezier_planes.items())
        },
        "bezier_paths": {str(key): _path_payload(path) for key, path in sorted(design.bezier_paths.items())},
    }


# ----------------------------------------------------------------- decoding
def parse_rotor(value: Any) -> Rotor:
    if value is None:
        return Rotor.identity()
    if isinstance(value, Mapping):
        bivector = value.get("bv") or {}
        # a rotor ``s + xy e12 + xz e13 + yz e23`` is the quaternion (s, -yz, xz, -xy)
        rotor = Rotor(
            float(value.get("s", 1.0)),
            -float(bivector.get("yz", 0.0)),
            float(bivector.get("xz", 0.0)),
            -float(bivector.get("xy", 0.0)),
        )
    else:
        values = list(value)
        if len(values) != 4:
            raise DesignFormatError(f"A rotor needs 4 components (got {len(values)}).")
        rotor = Rotor.from_array(values)
    return rotor.normalized()


def _entries(section: Any, name: str) -> List[Tuple[int, Mapping[str, Any]]]:
    """Id/value pairs of a section stored as an object or, in old files, a list."""

    if section is None:
        return []
    if isinstance(section, Mapping):
        items = section.items()
    elif isinstance(section, list):
        items = enumerate(section)
    else:
        raise DesignFormatError(f"'{name}' must be an object or a list.")
    entries = []
    for key, value in items:
        try:
            ident = int(key)
        except (TypeError, ValueError):
            raise DesignFormatError(f"'{name}' has a non-integer id {key!r}.") from None
        if not isinstance(value, Mapping):
            raise DesignFormatError(f"'{name}.{key}' must be an object.")
        entries.append((ident, value))
    return sorted(entries, key=lambda entry: entry[0])


def _parse_grid(data: Mapping[str, Any]) -> Grid:
    vertex = data.get("bezier_vertex")
    return Grid(
        position=data.get("position", (0.0, 0.0, 0.0)),
        orientation=parse_rotor(data.get("orientation")),
        grid_type=GridType.parse(data.get("grid_type", "Square")),
        invisible=bool(data.get("invisible", False)),
        bezier_vertex=(int(vertex[0]), int(vertex[1])) if vertex is not None else None,
    )


def _parse_grid_position(data: Optional[Mapping[str, Any]]) -> Optional[HelixGridPosition]:
    if data is None:
        return None
    offset = data.get("offset")
    return HelixGridPosition(
        grid=int(data["grid"]),
        x=int(data.get("x", 0)),
        y=int(data.get("y", 0)),
        axis_pos=int(data.get("axis_pos", 0)),
        roll=float(data.get("roll", 0.0)),
        offset=(float(offset[0]), float(offset[1])) if offset is not None else None,
    )


def _parse_isometry(data: Optional[Mapping[str, Any]]) -> Optional[Isometry2]:
    if data is None:
        return None
    translation = data.get("translation", (0.0, 0.0))
    angle = data.get("angle", data.get("rotation", 0.0))
    return Isometry2((float(translation[0]), float(translation[1])), float(angle))


def _parse_helix(data: Mapping[str, Any]) -> Helix:
    span = data.get("range")
    symmetry = data.get("symmetry", (1.0, 1.0))
    path_id = data.get("path_id")
    return Helix(
        position=data.get("position", (0.0, 0.0, 0.0)),
        orientation=parse_rotor(data.get("orientation")),
        grid_position=_parse_grid_position(data.get("grid_position")),
        isometry2d=_parse_isometry(data.get("isometry2d")),
        symmetry=(float(symmetry[0]), float(symmetry[1])),
        roll=float(data.get("roll", 0.0)),
        visible=bool(data.get("visible", True)),
        locked_for_simulations=bool(data.get("locked_for_simulations", False)),
        path_id=int(path_id) if path_id is not None else None,
        range=(int(span[0]), int(span[1])) if span is not None else None,
    )


def _parse_domain(data: Any):
    if isinstance(data, Mapping) and "Insertion" in data:
        inner = data["Insertion"]
        return Insertion(int(inner["nb_nucl"] if isinstance(inner, Mapping) else inner))
    inner = data.get("HelixDomain", data) if isinstance(data, Mapping) else None
    if not isinstance(inner, Mapping):
        raise DesignFormatError(f"Unrecognised domain {data!r}.")
    return HelixDomain(int(inner["helix"]), int(inner["start"]), int(inner["end"]), bool(inner["forward"]))


def _parse_strand(data: Mapping[str, Any]) -> Strand:
    junctions = data.get("junctions")
    return Strand(
        domains=[_parse_domain(domain) for domain in data.get("domains", [])],
        junctions=[Junction.parse(junction) for junction in junctions] if junctions is not None else None,
        color=int(data.get("color", 0)),
        cyclic=bool(data.get("cyclic", False)),
        name=data.get("name"),
    )


def _parse_path(data: Mapping[str, Any]) -> BezierPath:
    vertices = []
    for vertex in data.get("vertices", []):
        position3d = vertex.get("position3d")
        vertices.append(
            BezierVertex(
                plane_id=int(vertex.get("plane_id", 0)),
                position2d=tuple(vertex.get("position2d", (0.0, 0.0))),
                position3d=position3d,
            )
        )
    return BezierPath(vertices=vertices, cyclic=bool(data.get("cyclic", False)))


def design_from_payload(payload: Mapping[str, Any]) -> Design:
    """Rebuild a design; strands are stored as found and checked by ``validate``."""

    if not isinstance(payload, Mapping):
        raise DesignFormatError("A design payload must be a JSON object.")
    version = str(payload.get("version", "0"))
    if version not in {"0", PAYLOAD_VERSION}:
        LOGGER.warning("Reading design payload version %s with reader version %s", version, PAYLOAD_VERSION)
    try:
        parameters_payload = payload.get("dna_parameters")
        parameters = DnaParameters.from_payload(parameters_payload) if parameters_payload else None
        design = Design(parameters)
        design.ensnano_version = payload.get("ensnano_version")
        for ident, data in _entries(payload.get("bezier_planes"), "bezier_planes"):
            design.add_bezier_plane(
                BezierPlane(position=data.get("position", (0.0, 0.0, 0.0)), orientation=parse_rotor(data.get("orientation"))),
                ident,
            )
        for ident, data in _entries(payload.get("bezier_paths"), "bezier_paths"):
            design.add_bezier_path(_parse_path(data), ident)
        for ident, data in _entries(payload.get("grids"), "grids"):
            design.add_grid(_parse_grid(data), ident)
        for ident, data in _entries(payload.get("helices"), "helices"):
            design.add_helix(_parse_helix(data), ident)
        for ident, data in _entries(payload.get("strands"), "strands"):
            design.add_strand(_parse_strand(data), ident, validate=False)
    except NanohelixError:
        raise
    except (KeyError, TypeError, IndexError, ValueError) as exc:
        raise DesignFormatError(f"Malformed design payload: {exc!r}") from exc
    LOGGER.debug(
        "design_from_payload version=%s grids=%d helices=%d strands=%d",
        version,
        len(design.grids),
        len(design.helices),
        len(design.strands),
    )
    return design


def load_design(path: Union[str, Path]) -> Design:
    design_path = Path(path)
    try:
        payload = json.loads(design_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise DesignFormatError(f"Design file '{design_path}' not found.") from None
    except json.JSONDecodeError as exc:
        raise DesignFormatError(f"Design file '{design_path}' is not valid JSON: {exc}") from exc
    return design_from_payload(payload)


def save_design(design: Design, path: Union[str, Path]) -> Path:
    design_path = Path(path)
    design_path.parent.mkdir(parents=True, exist_ok=True)
    design_path.write_text(json.dumps(design_to_payload(design), indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return design_path
