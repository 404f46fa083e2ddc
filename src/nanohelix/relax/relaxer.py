"""Iterative rigid-body relaxation of a design."""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from time import perf_counter
from typing import Callable, List, Optional, Sequence

import networkx as nx
import numpy as np

from ..design import Design, DesignPoses
from ..errors import RelaxationDiverged
from ..rotor import Rotor
from .bodies import BodyPose, build_bodies, member_pose
from .model import CancelToken, RelaxConfig, RelaxResult
from .strain import StrainModel, Wrench

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, float], None]

_MIN_STEP_SCALE = 1e-9


def _clip(vector: np.ndarray, limit: float) -> np.ndarray:
    norm = float(np.linalg.norm(vector))
    if norm > limit:
        return vector * (limit / norm)
    return vector


class RigidBodyRelaxer:
    """Damped gradient descent on the strain energy with step rejection.

    A trial step that raises the energy is dropped and the step size
    halved, so the accepted energy never increases. The input design is
    never modified.
    """

    def __init__(self, design: Design, config: Optional[RelaxConfig] = None) -> None:
        self.design = design
        self.config = config or RelaxConfig()
        self.bodies, self._initial_poses = build_bodies(design, self.config.granularity)
        self.model = StrainModel(design, self.bodies, self.config)
        graph = design.helix_graph()
        LOGGER.info(
            "Relaxing %d bodies (%d helices, %d coupled components, %d cross-overs, %d steric pairs)",
            len(self.bodies),
            graph.number_of_nodes(),
            nx.number_connected_components(graph) if graph.number_of_nodes() else 0,
            len(self.model.springs),
            len(self.model.pairs),
        )

    # ------------------------------------------------------------ stepping
    def _wrenches(self, poses: Sequence[BodyPose], executor: Optional[ThreadPoolExecutor]) -> List[Wrench]:
        indices = range(len(self.bodies))
        if executor is None:
            return [self.model.wrench(poses, index) for index in indices]
        return list(executor.map(lambda index: self.model.wrench(poses, index), indices))

    def _integrate(
        self,
        poses: Sequence[BodyPose],
        wrenches: Sequence[Wrench],
        scale: float,
        noise: Optional[np.ndarray],
    ) -> List[BodyPose]:
        cfg = self.config
        alpha = cfg.dt * scale / cfg.damping
        moved: List[BodyPose] = []
        for index, (body, pose, (force, torque)) in enumerate(zip(self.bodies, poses, wrenches)):
            if body.locked:
                moved.append(pose)
                continue
            step = alpha * force / body.mass
            spin = alpha * torque / body.inertia
            if noise is not None:
                step = step + cfg.noise_amplitude * scale * noise[index, :3]
                spin = spin + cfg.noise_amplitude * scale * noise[index, 3:] / body.radius
            step = _clip(step, cfg.max_step_size)
            spin = _clip(spin, cfg.max_rotation_step)
            position, orientation = pose
            center = position + orientation.rotate(body.center)
            turn = Rotor.from_rotation_vector(spin)
            new_orientation = (turn * orientation).normalized()
            new_position = center + turn.rotate(position - center) + step
            moved.append((new_position, new_orientation))
        return moved

    # ------------------------------------------------------------- results
    def _poses(self, poses: Sequence[BodyPose]) -> DesignPoses:
        result = DesignPoses()
        for body, pose in zip(self.bodies, poses):
            if body.kind == "grid":
                result.grids[body.ident] = (pose[0].copy(), pose[1])
            for helix_id in body.members:
                position, orientation = member_pose(body, pose, helix_id)
                result.helices[helix_id] = (position, orientation.normalized())
        return result

    def _result(
        self,
        poses: Sequence[BodyPose],
        converged: bool,
        energy: float,
        initial: float,
        steps: int,
        history: List[float],
        cancelled: bool = False,
        reason: str = "",
    ) -> RelaxResult:
        design_poses = self._poses(poses)
        relaxed = self.design.copy()
        relaxed.apply_poses(design_poses)
        return RelaxResult(
            design=relaxed,
            poses=design_poses,
            converged=converged,
            final_strain=energy,
            initial_strain=initial,
            steps=steps,
            cancelled=cancelled,
            reason=reason,
            history=list(history),
        )

    # ----------------------------------------------------------------- run
    def run(self, cancel: Optional[CancelToken] = None, progress: Optional[ProgressCallback] = None) -> RelaxResult:
        cfg = self.config
        poses = list(self._initial_poses)
        energy = self.model.energy(poses)[0]
        initial = energy
        history = [energy]
        if not math.isfinite(energy) or energy > cfg.max_strain:
            raise RelaxationDiverged(
                f"Initial strain {energy:.6g} exceeds the cutoff {cfg.max_strain:.6g}.",
                self._result(poses, False, energy, initial, 0, history, reason="diverged"),
            )
        if energy <= cfg.tolerance:
            LOGGER.info("Design already relaxed (strain %.6g)", energy)
            return self._result(poses, True, energy, initial, 0, history, reason="converged")

        rng = np.random.default_rng(cfg.seed)
        workers = cfg.resolved_workers()
        executor = ThreadPoolExecutor(max_workers=workers) if workers > 1 and len(self.bodies) > 1 else None
        started = perf_counter()
        accepted = [energy]
        scale = 1.0
        steps = 0
        over_cutoff = 0
        converged = False
        cancelled = False
        reason = "max_steps"
        try:
            while steps < cfg.max_steps:
                if cancel is not None and cancel.cancelled:
                    cancelled = True
                    reason = "cancelled"
                    break
                if cfg.wall_budget_s is not None and perf_counter() - started > cfg.wall_budget_s:
                    reason = "wall_budget"
                    break
                wrenches = self._wrenches(poses, executor)
                noise = rng.standard_normal((len(self.bodies), 6)) if cfg.noise_amplitude > 0 else None
                trial = self._integrate(poses, wrenches, scale, noise)
                trial_energy = self.model.energy(trial)[0]
                steps += 1
                if not math.isfinite(trial_energy) or trial_energy > cfg.max_strain:
                    over_cutoff += 1
                    if over_cutoff >= cfg.divergence_patience:
                        LOGGER.warning("Relaxation diverged at step %d (strain %.6g)", steps, trial_energy)
                        raise RelaxationDiverged(
                            f"Strain {trial_energy:.6g} exceeded the cutoff {cfg.max_strain:.6g} "
                            f"on {over_cutoff} trial steps in a row (step {steps}).",
                            self._result(poses, False, energy, initial, steps - 1, history, reason="diverged"),
                        )
                else:
                    over_cutoff = 0
                if trial_energy <= energy:
                    poses = trial
                    energy = trial_energy
                    accepted.append(energy)
                    scale = min(1.0, scale * 1.25)
                else:
                    scale *= 0.5
                history.append(energy)
                LOGGER.debug("step=%d strain=%.9g scale=%.3g", steps, energy, scale)
                if progress is not None:
                    progress(steps, energy)
                if energy <= cfg.tolerance:
                    converged, reason = True, "converged"
                    break
                if len(accepted) > cfg.window:
                    reference = accepted[-cfg.window - 1]
                    if reference - energy <= cfg.tolerance * max(reference, 1e-300):
                        converged, reason = True, "converged"
                        break
                if scale < _MIN_STEP_SCALE:
                    reason = "stalled"
                    break
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        LOGGER.info(
            "Relaxation finished: reason=%s steps=%d strain %.6g -> %.6g",
            reason,
            steps,
            initial,
            energy,
        )
        return self._result(poses, converged, energy, initial, steps, history, cancelled, reason)


def relax(
    design: Design,
    config: Optional[RelaxConfig] = None,
    cancel: Optional[CancelToken] = None,
    progress: Optional[ProgressCallback] = None,
) -> RelaxResult:
    """Relax ``design`` and return the result; the design itself is left untouched."""

    return RigidBodyRelaxer(design, config).run(cancel=cancel, progress=progress)
