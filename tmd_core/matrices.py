# tmd_core/matrices.py
import logging

import numpy as np

from .errors import InvalidInputError, SingularMatrixError

logger = logging.getLogger(__name__)

PIVOT_TOLERANCE = 1e-20


def zeros(length: int) -> np.ndarray:
    return np.zeros(int(length), dtype=float)


def zeros_matrix(n: int) -> np.ndarray:
    return np.zeros((int(n), int(n)), dtype=float)


def add_vectors(a, b) -> np.ndarray:
    return np.asarray(a, dtype=float) + np.asarray(b, dtype=float)


def sub_vectors(a, b) -> np.ndarray:
    return np.asarray(a, dtype=float) - np.asarray(b, dtype=float)


def scale_vector(a, scalar: float) -> np.ndarray:
    return np.asarray(a, dtype=float) * scalar


def dot(a, b) -> float:
    return float(np.dot(np.asarray(a, dtype=float), np.asarray(b, dtype=float)))


def matrix_vector(matrix, vector) -> np.ndarray:
    return np.asarray(matrix, dtype=float) @ np.asarray(vector, dtype=float)


def add_matrices(a, b) -> np.ndarray:
    return np.asarray(a, dtype=float) + np.asarray(b, dtype=float)


def scale_matrix(a, scalar: float) -> np.ndarray:
    return np.asarray(a, dtype=float) * scalar


def inverse(matrix) -> np.ndarray:
    """
    Gauss-Jordan inversion with partial pivoting on an augmented [A | I].

    Works on an owned copy, the argument is never modified.
    Raises SingularMatrixError when the largest pivot still available in a
    column is below PIVOT_TOLERANCE.
    """
    a = np.array(matrix, dtype=float)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise InvalidInputError(f"Cannot invert a matrix of shape {a.shape}")
    if not np.all(np.isfinite(a)):
        raise InvalidInputError("Matrix contains non-finite values")

    n = a.shape[0]
    aug = np.hstack([a, np.eye(n)])

    for col in range(n):
        # the first row holding the largest magnitude wins ties
        pivot = col + int(np.argmax(np.abs(aug[col:, col])))
        max_abs = abs(aug[pivot, col])
        if max_abs < PIVOT_TOLERANCE:
            raise SingularMatrixError(
                f"Matrix inversion failed: singular matrix (column {col}, pivot {max_abs:.3e})"
            )

        if pivot != col:
            aug[[col, pivot]] = aug[[pivot, col]]

        aug[col] /= aug[col, col]

        factors = aug[:, col].copy()
        factors[col] = 0.0
        aug -= np.outer(factors, aug[col])

    return aug[:, n:]


def lumped_mass_matrix(mi) -> np.ndarray:
    """Diagonal mass matrix, one lumped mass per degree of freedom."""
    return np.diag(np.asarray(mi, dtype=float))


def chain_stiffness_matrix(ki) -> np.ndarray:
    """
    Global stiffness of a shear-story chain (tridiagonal).

    ki[i] is the story stiffness between level i and the level below it,
    the top level has no connection above:
        level i:      Kii = ki + k(i+1),  Ki,i+1 = Ki+1,i = -k(i+1)
        top level:    KNN = kN
    """
    ki = np.asarray(ki, dtype=float)
    dofs = ki.shape[0]
    K = zeros_matrix(dofs)

    for i in range(dofs):
        if i != dofs - 1:
            K[i, i] = ki[i] + ki[i + 1]
            K[i + 1, i] = -ki[i + 1]
            K[i, i + 1] = -ki[i + 1]
        else:
            K[i, i] = ki[i]

    logger.debug("chain stiffness assembled for %d levels", dofs)
    return K
