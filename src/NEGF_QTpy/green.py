from __future__ import annotations

import enum
import logging
from typing import Optional, Sequence

import numpy as np

from NEGF_QTpy.block_partition import BlockPartition, BlockView
from NEGF_QTpy.errors import SingularMatrixError, StructuralError
from NEGF_QTpy.feedback import SolverContext, default_context

logger = logging.getLogger(__name__)

SINGULAR_THRESHOLD = 1e-14


class GreenMatrixSubType(enum.Enum):
    FULL_MATRIX = "full_matrix"
    FIRST_BLOCK = "first_block"
    LAST_BLOCK = "last_block"
    FIRST_BLOCK_COLUMN = "first_block_column"
    LAST_BLOCK_COLUMN = "last_block_column"

    @classmethod
    def parse(cls, value) -> "GreenMatrixSubType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as e:
            raise StructuralError(f"Unknown Green's function mode: {value!r}") from e


def invert(
    matrix: np.ndarray,
    block_index: Optional[int] = None,
    threshold: float = SINGULAR_THRESHOLD,
) -> np.ndarray:
    """
    Dense inverse with singularity detection.

    Parameters
    ----------
    `matrix` : np.ndarray
        Square matrix to invert.
    `block_index` : int, optional
        Block index reported in the error when inversion fails.
    `threshold` : float
        Smallest accepted reciprocal condition number (1-norm estimate).
        Set to 0 to only reject exactly singular or non-finite results.

    Returns
    -------
    `inverse` : np.ndarray
        The inverse of `matrix`.

    Raises
    ------
    SingularMatrixError
        If the matrix is singular, ill-conditioned beyond `threshold`,
        or the inverse is not finite.
    """
    where = "full matrix" if block_index is None else f"block {block_index}"
    try:
        inverse = np.linalg.inv(matrix)
    except np.linalg.LinAlgError as e:
        raise SingularMatrixError(
            f"Inversion failed for {where}: singular matrix.", block_index
        ) from e

    if not np.all(np.isfinite(inverse)):
        raise SingularMatrixError(
            f"Inversion failed for {where}: non-finite inverse.", block_index
        )

    if threshold > 0.0:
        norm_a = np.linalg.norm(matrix, 1)
        norm_inv = np.linalg.norm(inverse, 1)
        if norm_a == 0.0 or 1.0 / (norm_a * norm_inv) < threshold:
            raise SingularMatrixError(
                f"Inversion failed for {where}: matrix is numerically singular.",
                block_index,
            )
    return inverse


class GreensSolver:
    """
    Recursive Green's function solver for block-tridiagonal matrices.

    Parameters
    ----------
    `matrix` : np.ndarray
        Square matrix to invert, e.g. ``(E + i*eta) I - H``.
    `block_sizes` : sequence of int, optional
        Diagonal block sizes. Missing or invalid sizes fall back to a
        single block, in which case every mode is a full inversion. Rows
        left uncovered by the sizes form one trailing block.
    `context` : SolverContext, optional
        Logging context.
    `singular_threshold` : float
        Passed to :func:`invert` for every block inversion.

    Notes
    -----
    Only the blocks on the three central block diagonals are read in the
    corner and column modes. Entries outside the band are ignored.

    The forward (left-connected) sweep reads

        g_0 = A_00⁻¹,   g_b = [A_bb - A_b,b-1 · g_b-1 · A_b-1,b]⁻¹

    and the last diagonal block of the inverse is ``G_NN = g_N``. The
    backward sweep is its mirror image and yields ``G_00``.
    """

    def __init__(
        self,
        matrix: np.ndarray,
        block_sizes: Optional[Sequence[int]] = None,
        context: Optional[SolverContext] = None,
        singular_threshold: float = SINGULAR_THRESHOLD,
    ):
        matrix = np.asarray(matrix)
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
            raise StructuralError(f"Expected a square matrix, got shape {matrix.shape}")
        self.matrix = matrix
        self.context = context or default_context()
        self.singular_threshold = singular_threshold
        self.partition = BlockPartition.from_sizes(block_sizes, matrix.shape[0]).completed()

        self._solution: Optional[np.ndarray] = None
        self._reduced_sigma: Optional[np.ndarray] = None
        self._key = None
        self.last_mode: Optional[GreenMatrixSubType] = None

    def set_blocks(self, block_sizes: Optional[Sequence[int]]) -> None:
        """Re-partition the matrix. The cached solution is kept until the
        partition actually changes."""
        self.partition = BlockPartition.from_sizes(
            block_sizes, self.matrix.shape[0]
        ).completed()

    def invalidate(self) -> None:
        self._key = None
        self._solution = None

    @property
    def solution(self) -> Optional[np.ndarray]:
        return self._solution

    @property
    def reduced_sigma(self) -> Optional[np.ndarray]:
        """
        Self-energy folded onto the corner block by the last sweep.

        After a LAST_BLOCK sweep it is the contribution of blocks
        ``0 .. N-2`` onto block ``N-1``; after a FIRST_BLOCK sweep the
        contribution of blocks ``1 .. N-1`` onto block ``0``.
        """
        return self._reduced_sigma

    def compute(
        self,
        mode=GreenMatrixSubType.FULL_MATRIX,
        block_sizes: Optional[Sequence[int]] = None,
    ) -> np.ndarray:
        """
        Compute the requested part of the inverse.

        Parameters
        ----------
        `mode` : GreenMatrixSubType or str
            Part of the inverse to compute.
        `block_sizes` : sequence of int, optional
            Re-partition the matrix before solving.

        Returns
        -------
        `green` : np.ndarray
            FULL_MATRIX: ``(n, n)`` inverse.
            FIRST_BLOCK / LAST_BLOCK: the corner diagonal block.
            FIRST_BLOCK_COLUMN / LAST_BLOCK_COLUMN: ``(n, size)`` block column.

        Raises
        ------
        SingularMatrixError
            If one of the intermediate blocks cannot be inverted.
        """
        mode = GreenMatrixSubType.parse(mode)
        if block_sizes is not None:
            self.set_blocks(block_sizes)

        key = (mode, self.partition)
        if self._key == key and self._solution is not None:
            return self._solution

        # a failed sweep leaves no stale result behind
        self._key = None
        self._solution = None
        self._reduced_sigma = None

        view = BlockView(self.matrix, self.partition)

        if mode is GreenMatrixSubType.FULL_MATRIX or not self.partition.is_blocked:
            if mode is not GreenMatrixSubType.FULL_MATRIX:
                self.context.debug(
                    "Single block partition, %s computed as a full inverse.",
                    mode.value,
                    fallback=logger,
                )
            result = self._full(view, mode)
        elif mode is GreenMatrixSubType.LAST_BLOCK:
            g, self._reduced_sigma = self._forward_sweep(view, keep=False)
            result = g[-1]
        elif mode is GreenMatrixSubType.FIRST_BLOCK:
            g, self._reduced_sigma = self._backward_sweep(view, keep=False)
            result = g[0]
        elif mode is GreenMatrixSubType.LAST_BLOCK_COLUMN:
            g, self._reduced_sigma = self._forward_sweep(view, keep=True)
            result = self._last_column(view, g)
        else:
            g, self._reduced_sigma = self._backward_sweep(view, keep=True)
            result = self._first_column(view, g)

        self._solution = result
        self._key = key
        self.last_mode = mode
        self.context.debug(
            "Green's function %s computed on %d blocks.",
            mode.value,
            self.partition.count,
            fallback=logger,
        )
        return result

    def _inv(self, block: np.ndarray, index: Optional[int]) -> np.ndarray:
        return invert(block, index, self.singular_threshold)

    def _full(self, view: BlockView, mode: GreenMatrixSubType) -> np.ndarray:
        region = view.matrix
        full = self._inv(region, None if self.partition.is_blocked else 0)
        n = region.shape[0]
        if mode is GreenMatrixSubType.FULL_MATRIX:
            corner = self.partition.size(-1)
            self._reduced_sigma = np.zeros((corner, corner), dtype=full.dtype)
            return full
        # single block: corner block and block column are the whole inverse
        self._reduced_sigma = np.zeros((n, n), dtype=full.dtype)
        return full

    def _forward_sweep(self, view: BlockView, keep: bool):
        """Left-connected sweep, block 0 to block N-1."""
        nblocks = self.partition.count
        sigma = view.zero_block(0, 0)
        g = [None] * nblocks
        for b in range(nblocks - 1):
            g_b = self._inv(view[b, b] - sigma, b)
            sigma = view[b + 1, b] @ g_b @ view[b, b + 1]
            if keep:
                g[b] = g_b
        g[-1] = self._inv(view[-1, -1] - sigma, nblocks - 1)
        return g, sigma

    def _backward_sweep(self, view: BlockView, keep: bool):
        """Right-connected sweep, block N-1 to block 0."""
        nblocks = self.partition.count
        sigma = view.zero_block(-1, -1)
        g = [None] * nblocks
        for b in range(nblocks - 1, 0, -1):
            g_b = self._inv(view[b, b] - sigma, b)
            sigma = view[b - 1, b] @ g_b @ view[b, b - 1]
            if keep:
                g[b] = g_b
        g[0] = self._inv(view[0, 0] - sigma, 0)
        return g, sigma

    def _last_column(self, view: BlockView, g: list) -> np.ndarray:
        p = self.partition
        nblocks = p.count
        column = np.zeros((p.covered, p.size(-1)), dtype=np.result_type(*g))
        column[p.slice(-1)] = g[-1]
        for b in range(nblocks - 2, -1, -1):
            column[p.slice(b)] = -g[b] @ view[b, b + 1] @ column[p.slice(b + 1)]
        return column

    def _first_column(self, view: BlockView, g: list) -> np.ndarray:
        p = self.partition
        nblocks = p.count
        column = np.zeros((p.covered, p.size(0)), dtype=np.result_type(*g))
        column[p.slice(0)] = g[0]
        for b in range(1, nblocks):
            column[p.slice(b)] = -g[b] @ view[b, b - 1] @ column[p.slice(b - 1)]
        return column


def compute_green_function(
    matrix: np.ndarray,
    block_sizes: Optional[Sequence[int]] = None,
    mode=GreenMatrixSubType.FULL_MATRIX,
) -> tuple[np.ndarray, Optional[np.ndarray]]:
    """
    One-shot wrapper around :class:`GreensSolver`.

    Returns
    -------
    `green` : np.ndarray
        Requested part of the inverse.
    `reduced_sigma` : np.ndarray or None
        Self-energy folded onto the corner block.
    """
    solver = GreensSolver(matrix, block_sizes)
    green = solver.compute(mode)
    return green, solver.reduced_sigma
