# tmd_core/structures.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Union

import numpy as np

from .errors import InvalidModelError
from .matrices import zeros_matrix
from .modal import ModalAnalyzer
from .units import GAL_PER_G, GRAVITY, MAX_STORIES, MIN_STORIES

logger = logging.getLogger(__name__)

GROUND = -1


@dataclass(frozen=True)
class TmdSetting:
    floor: int
    weight_kn: float
    freq_hz: float


def _fit_to_stories(values, story_count: int) -> tuple:
    """Truncate to story_count entries, missing stories are zero filled."""
    result = [float(v) for v in list(values)[:story_count]]
    result.extend([0.0] * (story_count - len(result)))
    return tuple(result)


@dataclass(frozen=True)
class StructuralModel:
    """
    Lumped-mass shear building as entered by the user.

    weights_kn[i], stiffness_kn_per_cm[i] and extra_damping_kn_per_kine[i]
    belong to story i+1 (index 0 = first story above ground).
    """
    name: str
    story_count: int
    weights_kn: tuple
    stiffness_kn_per_cm: tuple
    extra_damping_kn_per_kine: tuple = ()
    tmd_list: tuple = ()

    def normalized(self) -> "StructuralModel":
        story_count = min(MAX_STORIES, max(MIN_STORIES, int(self.story_count)))

        tmds = []
        for tmd in self.tmd_list:
            # floor <= 0 means the slot is unused
            if tmd.floor <= 0:
                continue
            floor = min(story_count, max(1, int(math.floor(tmd.floor))))
            tmds.append(TmdSetting(floor=floor,
                                   weight_kn=float(tmd.weight_kn),
                                   freq_hz=float(tmd.freq_hz)))

        return StructuralModel(
            name=self.name,
            story_count=story_count,
            weights_kn=_fit_to_stories(self.weights_kn, story_count),
            stiffness_kn_per_cm=_fit_to_stories(self.stiffness_kn_per_cm, story_count),
            extra_damping_kn_per_kine=_fit_to_stories(self.extra_damping_kn_per_kine, story_count),
            tmd_list=tuple(tmds),
        )


@dataclass(frozen=True)
class MainStoryDof:
    index: int
    mass: float
    story: int          # 1-based story number


@dataclass(frozen=True)
class TmdDof:
    index: int
    mass: float
    tmd_index: int
    target_floor: int   # 1-based story the damper hangs from


DegreeOfFreedom = Union[MainStoryDof, TmdDof]


@dataclass(frozen=True)
class Element:
    """Spring + dashpot between two DOFs, or between one DOF and GROUND."""
    dof_i: int
    dof_j: int
    stiffness: float
    damping: float
    design_ratio: float
    layer: int = -1     # story number for main elements, -1 for TMD springs

    @property
    def is_main(self) -> bool:
        return self.layer > 0


def optimal_tmd_damping(mu: float) -> float:
    """Den Hartog optimum damping ratio of a TMD with mass ratio mu."""
    return math.sqrt(3.0 * mu / (8.0 * (1.0 + mu)))


def tmd_spring_stiffness(weight_kn: float, freq_hz: float) -> float:
    """Spring [kN/cm] that tunes a damper of the given weight to freq_hz."""
    return 4.0 * math.pi ** 2 * freq_hz ** 2 * (weight_kn / GRAVITY) / 100.0


def _scatter(matrix: np.ndarray, element: Element, value: float) -> None:
    i, j = element.dof_i, element.dof_j
    if i >= 0 and j >= 0:
        matrix[i, i] += value
        matrix[j, j] += value
        matrix[i, j] -= value
        matrix[j, i] -= value
    elif i >= 0:
        matrix[i, i] += value
    elif j >= 0:
        matrix[j, j] += value


@dataclass
class TmdShearBuilding:
    """
    Shear building with tuned mass dampers, assembled from a StructuralModel:
        M x'' + C x' + K x = f(t)
    DOFs 0..main_count-1 are stories (bottom up), the rest are TMDs.
    """
    M: np.ndarray
    K: np.ndarray
    C: np.ndarray
    main_count: int = 0
    tmd_count: int = 0
    tmd_floors: tuple = ()
    nodes: tuple = field(repr=False, default=())
    elements: tuple = field(repr=False, default=())
    first_omega: float = 0.0

    def __post_init__(self):
        n = self.M.shape[0]
        for label, matrix in (("M", self.M), ("K", self.K), ("C", self.C)):
            if matrix.shape != (n, n):
                raise InvalidModelError(f"{label} must be {n}x{n}, got shape {matrix.shape}")

    @property
    def dofs(self) -> int:
        return self.M.shape[0]

    @classmethod
    def from_model(cls, model: StructuralModel, damping_h: float) -> "TmdShearBuilding":
        model = model.normalized()
        main_count = model.story_count
        tmds = model.tmd_list

        # ---- NODES ----
        nodes: list[DegreeOfFreedom] = [
            MainStoryDof(index=i, mass=model.weights_kn[i] / GRAVITY, story=i + 1)
            for i in range(main_count)
        ]
        for t, tmd in enumerate(tmds):
            nodes.append(TmdDof(index=main_count + t,
                                mass=tmd.weight_kn / GRAVITY,
                                tmd_index=t,
                                target_floor=tmd.floor))

        # ---- ELEMENTS ----
        elements = [
            Element(dof_i=i - 1 if i > 0 else GROUND,
                    dof_j=i,
                    stiffness=model.stiffness_kn_per_cm[i] / GRAVITY,
                    damping=model.extra_damping_kn_per_kine[i] / GRAVITY,
                    design_ratio=damping_h,
                    layer=i + 1)
            for i in range(main_count)
        ]

        total_main_weight = sum(model.weights_kn)
        for t, tmd in enumerate(tmds):
            mu = tmd.weight_kn / total_main_weight if total_main_weight > 0 else 0.0
            elements.append(Element(dof_i=main_count + t,
                                    dof_j=tmd.floor - 1,
                                    stiffness=tmd_spring_stiffness(tmd.weight_kn, tmd.freq_hz) / GRAVITY,
                                    damping=0.0,
                                    design_ratio=optimal_tmd_damping(mu)))

        # ---- DAMPING (stiffness proportional, calibrated on the bare frame) ----
        first_omega = _first_omega(model, elements)
        if first_omega > 0.0:
            elements = [
                replace(e, damping=e.damping + 2.0 * e.design_ratio * e.stiffness / first_omega)
                for e in elements
            ]

        # ---- ASSEMBLY ----
        dof = len(nodes)
        M = zeros_matrix(dof)
        K = zeros_matrix(dof)
        C = zeros_matrix(dof)
        for node in nodes:
            M[node.index, node.index] = node.mass / GAL_PER_G
        for element in elements:
            _scatter(K, element, element.stiffness)
            _scatter(C, element, element.damping)

        logger.debug("model %r: %d stories, %d TMDs, w1 = %.4f rad/s",
                     model.name, main_count, len(tmds), first_omega)

        return cls(M=M, K=K, C=C,
                   main_count=main_count,
                   tmd_count=len(tmds),
                   tmd_floors=tuple(tmd.floor for tmd in tmds),
                   nodes=tuple(nodes),
                   elements=tuple(elements),
                   first_omega=first_omega)

    def as_dict(self) -> dict:
        return {
            "dofs": self.dofs,
            "main_count": self.main_count,
            "tmd_count": self.tmd_count,
            "tmd_floors": list(self.tmd_floors),
            "M": self.M.tolist(),
            "K": self.K.tolist(),
            "C": self.C.tolist(),
        }


def _first_omega(model: StructuralModel, elements) -> float:
    """First circular frequency of the main frame without dampers, 0 if undefined."""
    modal_mass = [w / (GRAVITY * GAL_PER_G) for w in model.weights_kn]
    modal_stiffness = [e.stiffness for e in sorted((e for e in elements if e.is_main),
                                                   key=lambda e: e.layer)]
    period = ModalAnalyzer(modal_mass, modal_stiffness).run().natural_period[0]
    if period > 0.0 and np.isfinite(period):
        return 2.0 * math.pi / period
    return 0.0
