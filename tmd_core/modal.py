# tmd_core/modal.py
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from scipy import linalg

from .errors import InvalidInputError
from .matrices import chain_stiffness_matrix
from .units import GRAVITY

logger = logging.getLogger(__name__)

ZERO_VECTOR_TOLERANCE = 1e-10
ZERO_MASS_TOLERANCE = 1e-20


@dataclass(frozen=True)
class ModalResult:
    natural_period: np.ndarray         # T_n [s], descending
    natural_frequency: np.ndarray      # f_n [Hz]
    participation_factor: np.ndarray
    effective_mass_ratio: np.ndarray
    eigen_vector: np.ndarray           # rows = modes, max component = 1
    mode_shape: np.ndarray             # rows = modes, participation scaled

    @property
    def mode_count(self) -> int:
        return int(self.natural_period.shape[0])

    def as_dict(self) -> dict:
        return {
            "natural_period": self.natural_period.tolist(),
            "natural_frequency": self.natural_frequency.tolist(),
            "participation_factor": self.participation_factor.tolist(),
            "effective_mass_ratio": self.effective_mass_ratio.tolist(),
            "eigen_vector": self.eigen_vector.tolist(),
            "mode_shape": self.mode_shape.tolist(),
        }


class ModalAnalyzer:
    """
    Free vibration of a shear-story chain:  K u = lambda M u

    mi: lumped mass per level, ki: story stiffness between a level and the one
    below it.  Each analyzer owns its inputs, nothing is cached between runs.
    """

    def __init__(self, mi, ki):
        self.mi = np.array(mi, dtype=float).ravel()
        self.ki = np.array(ki, dtype=float).ravel()

    @classmethod
    def from_model(cls, model) -> "ModalAnalyzer":
        """Building level modal input: mass in t (weight / g), stiffness in kN/m."""
        mi = np.asarray(model.weights_kn, dtype=float) / GRAVITY
        ki = np.asarray(model.stiffness_kn_per_cm, dtype=float) * 100.0
        return cls(mi, ki)

    def _validate(self) -> None:
        n = self.mi.shape[0]
        if n == 0 or n != self.ki.shape[0]:
            raise InvalidInputError(
                f"Invalid modal input: {n} masses for {self.ki.shape[0]} stiffness values"
            )
        if not (np.all(np.isfinite(self.mi)) and np.all(np.isfinite(self.ki))):
            raise InvalidInputError("Invalid modal input: non-finite mass or stiffness")
        if np.any(self.mi <= 0.0):
            raise InvalidInputError("Invalid modal input: masses must be positive")

    def run(self) -> ModalResult:
        self._validate()
        mi, n = self.mi, self.mi.shape[0]

        K = chain_stiffness_matrix(self.ki)
        # A = M^-1 K, not symmetric even though M and K are
        A = K / mi[:, None]
        eigvals, eigvecs = linalg.eig(A)
        eigvals = np.real(eigvals)
        eigvecs = np.real(eigvecs)

        positive = eigvals > 0.0
        periods = np.full(n, np.inf)
        periods[positive] = 2.0 * np.pi / np.sqrt(eigvals[positive])

        # fundamental (longest period) first
        order = np.argsort(-periods, kind="stable")
        periods = periods[order]
        finite = np.isfinite(periods) & (periods > 0.0)
        frequencies = np.zeros(n)
        frequencies[finite] = 1.0 / periods[finite]

        eigen_vector = eigvecs[:, order].T.copy()
        for mode in range(n):
            u = eigen_vector[mode]
            max_v = u[int(np.argmax(np.abs(u)))]
            if abs(max_v) < ZERO_VECTOR_TOLERANCE:
                max_v = 1.0
            eigen_vector[mode] = u / max_v

        mode_shape = np.zeros((n, n))
        participation = np.zeros(n)
        effective_mass = np.zeros(n)
        total_mass = float(np.sum(mi))

        for mode in range(n):
            u = eigen_vector[mode]
            gen_participation = float(np.sum(mi * u))      # L
            gen_mass = float(np.sum(mi * u * u))           # M*
            coeff = 0.0 if abs(gen_mass) < ZERO_MASS_TOLERANCE else gen_participation / gen_mass
            mode_shape[mode] = coeff * u
            if abs(u[0]) < ZERO_MASS_TOLERANCE:
                participation[mode] = 0.0
            else:
                participation[mode] = mode_shape[mode, 0] / u[0]
            effective_mass[mode] = gen_mass * participation[mode] ** 2 / total_mass

        logger.debug("modal analysis: %d modes, T1 = %.4f s", n, periods[0])

        return ModalResult(
            natural_period=periods,
            natural_frequency=frequencies,
            participation_factor=participation,
            effective_mass_ratio=effective_mass,
            eigen_vector=eigen_vector,
            mode_shape=mode_shape,
        )


def eigen_work(mi, ki) -> ModalResult:
    return ModalAnalyzer(mi, ki).run()
