from __future__ import annotations

import enum
import logging
from typing import Optional

import numpy as np
from scipy import linalg

from NEGF_QTpy.eigensystem.range import EigenRange, RangeType
from NEGF_QTpy.errors import EigenSolverError, StructuralError

logger = logging.getLogger(__name__)


class EigenAction(enum.Enum):
    EIGENVALUES_ONLY = "eigenvalues"
    EIGENVALUES_AND_VECTORS = "eigenvectors"


class HermitianSolver:
    """
    Eigen-decomposition of a Hermitian matrix restricted to an `EigenRange`.

    The result of the last `compute` call is cached and reused as long as the
    requested range does not change. A cached eigenvector computation also
    serves eigenvalue-only requests.
    """

    def __init__(self, matrix: np.ndarray):
        matrix = np.asarray(matrix)
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1] or matrix.shape[0] == 0:
            raise StructuralError(f"Expected a non-empty square matrix, got {matrix.shape}")
        self.matrix = matrix
        self._range: Optional[EigenRange] = None
        self._with_vectors = False
        self._eigenvalues: Optional[np.ndarray] = None
        self._eigenvectors: Optional[np.ndarray] = None

    @property
    def size(self) -> int:
        return self.matrix.shape[0]

    def compute(
        self,
        action: EigenAction = EigenAction.EIGENVALUES_ONLY,
        eigen_range: EigenRange = EigenRange.full(),
    ) -> np.ndarray:
        """
        Run the eigensolver if the cached result does not cover the request.

        Returns
        -------
        `eigenvalues` : np.ndarray
            Selected eigenvalues in ascending order.
        """
        action = EigenAction(action)
        want_vectors = action is EigenAction.EIGENVALUES_AND_VECTORS
        fitted = eigen_range.fit_indices_to_size(self.size)

        cached = self._eigenvalues is not None and self._range == fitted
        if cached and (self._with_vectors or not want_vectors):
            return self._eigenvalues

        kwargs = {}
        if fitted.kind is RangeType.INDEX:
            kwargs["subset_by_index"] = [fitted.begin, fitted.end]
        elif fitted.kind is RangeType.VALUE:
            kwargs["subset_by_value"] = [fitted.lowest, fitted.highest]

        try:
            if want_vectors:
                values, vectors = linalg.eigh(self.matrix, **kwargs)
            else:
                values = linalg.eigh(self.matrix, eigvals_only=True, **kwargs)
                vectors = None
        except (linalg.LinAlgError, ValueError) as e:
            raise EigenSolverError(f"Hermitian eigen-decomposition failed: {e}") from e

        logger.debug(f"Computed {values.size} eigenvalues of a {self.size}x{self.size} matrix")
        self._range = fitted
        self._with_vectors = want_vectors
        self._eigenvalues = values
        self._eigenvectors = vectors
        return values

    @property
    def eigenvalues(self) -> Optional[np.ndarray]:
        return self._eigenvalues

    @property
    def eigenvectors(self) -> Optional[np.ndarray]:
        """Eigenvectors as columns, or None if only eigenvalues were computed."""
        return self._eigenvectors if self._with_vectors else None
