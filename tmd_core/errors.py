# tmd_core/errors.py
import numpy as np


class TmdAnalysisError(Exception):
    """Base class for every failure raised by the analysis engine."""


class InvalidModelError(TmdAnalysisError, ValueError):
    """Building model arrays are malformed after normalisation."""


class InvalidInputError(TmdAnalysisError, ValueError):
    """Empty, mismatched or non-finite numeric input."""


class SingularMatrixError(TmdAnalysisError, np.linalg.LinAlgError):
    """Gauss-Jordan elimination met a pivot that is numerically zero."""


class SingularModelError(SingularMatrixError):
    """The effective stiffness of a structure could not be inverted."""
