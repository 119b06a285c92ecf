# tmd_core/response.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np

from .errors import InvalidInputError, SingularMatrixError, SingularModelError
from .matrices import inverse
from .modal import ModalAnalyzer
from .structures import StructuralModel, TmdShearBuilding
from .units import DT

logger = logging.getLogger(__name__)

GAMMA = 0.5
BETA = 0.25

AUTO_DAMPING_DIVISOR = 150.0
AUTO_DAMPING_CAP = 0.04


@dataclass(frozen=True)
class ForceInput:
    floor_index: int        # 0-based main story DOF
    data: np.ndarray        # kN, sampled at DT


@dataclass(frozen=True)
class ResponseResult:
    name: str
    model_name: str
    main_count: int
    tmd_count: int
    tmd_floors: tuple
    time: np.ndarray
    wave_acc: np.ndarray        # excitation echoed back [gal]
    main_acc: np.ndarray        # absolute acceleration [gal], (main_count, steps)
    main_dis: np.ndarray        # relative displacement [cm], (main_count, steps)
    tmd_acc: np.ndarray         # (tmd_count, steps)
    tmd_dis: np.ndarray

    @property
    def steps(self) -> int:
        return int(self.time.shape[0])

    def max_values(self) -> dict:
        def max_abs(data: np.ndarray) -> float:
            return float(np.max(np.abs(data))) if data.size else 0.0

        return {
            "max_main_acc": max_abs(self.main_acc),
            "max_main_dis": max_abs(self.main_dis),
            "max_tmd_acc": max_abs(self.tmd_acc),
            "max_tmd_dis": max_abs(self.tmd_dis),
        }

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "model_name": self.model_name,
            "main_count": self.main_count,
            "tmd_count": self.tmd_count,
            "tmd_floors": list(self.tmd_floors),
            "time": self.time.tolist(),
            "wave_acc": self.wave_acc.tolist(),
            "main_acc": self.main_acc.tolist(),
            "main_dis": self.main_dis.tolist(),
            "tmd_acc": self.tmd_acc.tolist(),
            "tmd_dis": self.tmd_dis.tolist(),
            **self.max_values(),
        }


def resolve_damping(model: StructuralModel, requested_h: float) -> float:
    """
    requested_h >= 0 is used as is.  A negative value asks for the automatic
    ratio h = min(f1 / 150, 0.04), f1 being the fundamental frequency [Hz].
    """
    if requested_h >= 0.0:
        return float(requested_h)
    modal = ModalAnalyzer.from_model(model.normalized()).run()
    period = modal.natural_period[0]
    f1 = 1.0 / period if period > 0.0 and np.isfinite(period) else 0.0
    return min(f1 / AUTO_DAMPING_DIVISOR, AUTO_DAMPING_CAP)


@dataclass(frozen=True)
class _Histories:
    acc: np.ndarray     # absolute, (dofs, steps)
    dis: np.ndarray     # relative, (dofs, steps)


class NewmarkIntegrator:
    """
    Newmark-beta, constant average acceleration (gamma = 1/2, beta = 1/4),
    written in incremental acceleration form:

        (M + dt/2 C + beta dt^2 K) a_new =
            dP + M a - C (dt/2) a - K (dt v + (0.5 - beta) dt^2 a)
    """

    def __init__(self, structure: TmdShearBuilding):
        self.structure = structure
        M, K, C = structure.M, structure.K, structure.C

        k_eff = M + (DT / 2.0) * C + BETA * DT * DT * K
        try:
            self.k_eff_inv = inverse(k_eff)
        except SingularMatrixError as err:
            raise SingularModelError(f"Effective stiffness is singular: {err}") from err

    def _integrate(self, ground: np.ndarray, loads: np.ndarray) -> _Histories:
        """
        ground: ground acceleration per step (steps,)
        loads: incremental load vector per step (steps, dofs)
        """
        M, K, C = self.structure.M, self.structure.K, self.structure.C
        n = self.structure.dofs
        steps = ground.shape[0]

        a = np.zeros(n)
        v = np.zeros(n)
        d = np.zeros(n)
        acc = np.zeros((n, steps))
        dis = np.zeros((n, steps))

        for k in range(steps):
            rhs = (loads[k] + M @ a
                   - C @ (a * (DT / 2.0))
                   - K @ (v * DT + a * ((0.5 - BETA) * DT * DT)))
            a_new = self.k_eff_inv @ rhs
            v_new = v + DT * (GAMMA * a_new + (1.0 - GAMMA) * a)
            d_new = d + DT * v + DT * DT * (BETA * a_new + (0.5 - BETA) * a)

            acc[:, k] = a_new + ground[k]
            dis[:, k] = d_new
            a, v, d = a_new, v_new, d_new

        return _Histories(acc=acc, dis=dis)

    def run_base_excitation(self, wave) -> tuple[np.ndarray, _Histories]:
        try:
            ground = np.array(wave, dtype=float).ravel()
        except (TypeError, ValueError) as err:
            raise InvalidInputError(f"Ground acceleration record is not numeric: {err}") from err
        if ground.shape[0] == 0:
            raise InvalidInputError("Ground acceleration record is empty")
        if not np.all(np.isfinite(ground)):
            raise InvalidInputError("Ground acceleration record contains non-finite values")

        increments = np.diff(ground, prepend=0.0)
        influence = self.structure.M @ np.ones(self.structure.dofs)
        loads = -np.outer(increments, influence)
        return ground, self._integrate(ground, loads)

    def run_force_excitation(self, forces: Sequence[ForceInput]) -> tuple[np.ndarray, _Histories]:
        if not forces:
            raise InvalidInputError("No force series given")
        try:
            series = [np.array(f.data, dtype=float).ravel() for f in forces]
        except (TypeError, ValueError) as err:
            raise InvalidInputError(f"Force series is not numeric: {err}") from err
        # series of different lengths are cut to the shortest one
        steps = min(s.shape[0] for s in series)
        if steps == 0:
            raise InvalidInputError("Force series is empty")

        main_count = self.structure.main_count
        loads = np.zeros((steps, self.structure.dofs))
        for force, data in zip(forces, series):
            if force.floor_index < 0 or force.floor_index >= main_count:
                logger.debug("force on floor index %d ignored", force.floor_index)
                continue
            loads[:, force.floor_index] += np.diff(data[:steps], prepend=0.0)

        if not np.all(np.isfinite(loads)):
            raise InvalidInputError("Force series contain non-finite values")

        ground = np.zeros(steps)
        return ground, self._integrate(ground, loads)


def run_response(name: str,
                 model: StructuralModel,
                 damping_h: float,
                 wave=None,
                 forces: Iterable[ForceInput] | None = None) -> ResponseResult:
    """
    Time history response of a model to either a ground acceleration record
    [gal] (base excitation) or a set of story forces [kN] (force excitation).
    """
    forces = list(forces) if forces is not None else []
    if (wave is None) == (not forces):
        raise InvalidInputError("Give either a ground acceleration wave or force series")

    model = model.normalized()
    calc_h = resolve_damping(model, damping_h)
    structure = TmdShearBuilding.from_model(model, calc_h)
    integrator = NewmarkIntegrator(structure)

    if wave is not None:
        excitation, hist = integrator.run_base_excitation(wave)
    else:
        excitation, hist = integrator.run_force_excitation(forces)

    main = structure.main_count
    logger.info("response %r of model %r: h = %.4f, %d steps, %d DOFs",
                name, model.name, calc_h, excitation.shape[0], structure.dofs)

    return ResponseResult(
        name=name,
        model_name=model.name,
        main_count=main,
        tmd_count=structure.tmd_count,
        tmd_floors=structure.tmd_floors,
        time=np.arange(excitation.shape[0]) * DT,
        wave_acc=excitation,
        main_acc=hist.acc[:main],
        main_dis=hist.dis[:main],
        tmd_acc=hist.acc[main:],
        tmd_dis=hist.dis[main:],
    )
