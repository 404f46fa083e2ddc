"""Command line interface: ``nanohelix params|frame|validate|relax``."""

from __future__ import annotations

import argparse
import json
import math
import sys
from pathlib import Path
from typing import Any, Dict, Sequence

from . import __version__
from .config import configure_logging
from .errors import NanohelixError
from .io import load_design, save_design
from .parameters import PRESETS, DnaParameters, preset
from .relax import CancelToken, RelaxConfig, load_relax_config, relax


def _emit(payload: Dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, sort_keys=True) + "\n")


def _parameters_payload(name: str, params: DnaParameters) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"name": name}
    payload.update(params.to_payload())
    payload["groove_angle_deg"] = math.degrees(params.groove_angle)
    payload["inter_center_distance"] = params.inter_center_distance
    payload["dist_ac"] = params.dist_ac()
    return payload


def command_params(args: argparse.Namespace) -> None:
    if args.preset:
        params = preset(args.preset)
        _emit(_parameters_payload(args.preset.upper(), params))
        return
    _emit({"presets": [_parameters_payload(name, params) for name, params in PRESETS.items()]})


def command_frame(args: argparse.Namespace) -> None:
    design = load_design(args.design)
    forward = not args.backward
    if args.flat:
        frame2d = design.compute_frame_2d(args.helix, args.index, forward)
        _emit(
            {
                "helix": args.helix,
                "index": args.index,
                "forward": forward,
                "position": [float(value) for value in frame2d.position],
            }
        )
        return
    frame = design.compute_frame(args.helix, args.index, forward)
    _emit(
        {
            "helix": args.helix,
            "index": args.index,
            "forward": forward,
            "position": [float(value) for value in frame.position],
            "axis_position": [float(value) for value in frame.axis_position],
            "orientation": frame.orientation.to_list(),
            "tangent": [float(value) for value in frame.tangent],
            "normal": [float(value) for value in frame.normal],
        }
    )


def command_validate(args: argparse.Namespace) -> None:
    design = load_design(args.design)
    problems = []
    for strand_id in sorted(design.strands):
        try:
            design.validate_strand(strand_id)
        except NanohelixError as exc:
            problems.append({"strand": strand_id, "error": type(exc).__name__, "message": str(exc)})
    _emit(
        {
            "design": str(args.design),
            "helices": len(design.helices),
            "strands": len(design.strands),
            "valid": not problems,
            "problems": problems,
        }
    )
    if problems:
        raise SystemExit(1)


def command_relax(args: argparse.Namespace) -> None:
    design = load_design(args.design)
    config = load_relax_config(args.config) if args.config else RelaxConfig()
    overrides: Dict[str, Any] = {}
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.max_steps is not None:
        overrides["max_steps"] = args.max_steps
    if args.workers is not None:
        overrides["workers"] = args.workers
    if overrides:
        config = config.with_updates(**overrides)
    token = CancelToken()
    try:
        result = relax(design, config, cancel=token)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        token.cancel()
        raise
    save_design(result.design, args.out)
    _emit(
        {
            "out": str(args.out),
            "converged": result.converged,
            "reason": result.reason,
            "steps": result.steps,
            "initial_strain": result.initial_strain,
            "final_strain": result.final_strain,
        }
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="nanohelix: nucleotide frames and rigid-body relaxation of DNA nanostructure designs.",
    )
    parser.add_argument("--version", action="version", version=f"nanohelix {__version__}")
    parser.add_argument("--log-level", help="Logging level (default: NANOHELIX_LOG_LEVEL or WARNING).")
    parser.add_argument("--log-file", help="Write logs to this file instead of stderr.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    params = subparsers.add_parser("params", help="Show DNA parameter presets.")
    params.add_argument("--preset", help="Show only this preset (e.g. GEARY_2014_DNA).")
    params.set_defaults(func=command_params)

    frame = subparsers.add_parser("frame", help="Print the frame of one nucleotide.")
    frame.add_argument("design", type=Path, help="Design JSON file.")
    frame.add_argument("--helix", type=int, required=True, help="Helix id.")
    frame.add_argument("--index", type=int, required=True, help="Nucleotide index on the helix.")
    frame.add_argument("--backward", action="store_true", help="Use the backward strand.")
    frame.add_argument("--2d", dest="flat", action="store_true", help="Print the flat-view frame instead.")
    frame.set_defaults(func=command_frame)

    validate = subparsers.add_parser("validate", help="Check every strand of a design.")
    validate.add_argument("design", type=Path, help="Design JSON file.")
    validate.set_defaults(func=command_validate)

    relax_cmd = subparsers.add_parser("relax", help="Relax a design and write the result.")
    relax_cmd.add_argument("design", type=Path, help="Design JSON file.")
    relax_cmd.add_argument("--config", type=Path, help="YAML relaxation config (kind: nanohelix.relax.v1).")
    relax_cmd.add_argument("--out", type=Path, required=True, help="Where to write the relaxed design.")
    relax_cmd.add_argument("--seed", type=int, help="Override the noise seed.")
    relax_cmd.add_argument("--max-steps", type=int, help="Override the step budget.")
    relax_cmd.add_argument("--workers", type=int, help="Threads used for force evaluation.")
    relax_cmd.set_defaults(func=command_relax)
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        configure_logging(args.log_level, args.log_file)
        args.func(args)
    except (NanohelixError, ValueError) as exc:
        parser.error(str(exc))


if __name__ == "__main__":  # pragma: no cover - manual invocation path
    main()
