from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

import numpy as np
from mpi4py import MPI

from NEGF_QTpy.eigensystem import EigenAction, EigenRange, HermitianSolver
from NEGF_QTpy.errors import NonConvergenceWarning, StructuralError
from NEGF_QTpy.feedback import ProgressFeedback, SolverContext, default_context
from NEGF_QTpy.green import SINGULAR_THRESHOLD, GreenMatrixSubType, GreensSolver
from NEGF_QTpy.transport.two_lead import TwoLeadTransportSolver
from NEGF_QTpy.utils.divide_et_impera import local_indices

logger = logging.getLogger(__name__)


class MatrixSource:
    """Indexed, read-only collection of matrices."""

    def count(self) -> int:
        raise NotImplementedError

    def at(self, index: int) -> np.ndarray:
        raise NotImplementedError

    def _check(self, index: int) -> int:
        n = self.count()
        if index < -n or index >= n:
            raise IndexError(f"Matrix index {index} out of range for {n} matrices")
        return index + n if index < 0 else index


class ArrayMatrixSource(MatrixSource):
    """
    Matrices stored along the first axis of a 3D array.

    A single 2D matrix is repeated `count` times.
    """

    def __init__(self, array: np.ndarray, count: Optional[int] = None):
        array = np.asarray(array)
        if array.ndim == 2:
            self._single = True
            self._count = 1 if count is None else int(count)
        elif array.ndim == 3:
            self._single = False
            self._count = array.shape[0] if count is None else int(count)
            if self._count > array.shape[0]:
                raise StructuralError(
                    f"count {self._count} exceeds the {array.shape[0]} stored matrices"
                )
        else:
            raise StructuralError(f"Expected a 2D or 3D array, got ndim={array.ndim}")
        self.array = array

    def count(self) -> int:
        return self._count

    def at(self, index: int) -> np.ndarray:
        index = self._check(index)
        return self.array if self._single else self.array[index]


class SequenceMatrixSource(MatrixSource):
    def __init__(self, matrices: Sequence[np.ndarray], count: Optional[int] = None):
        self.matrices = matrices
        self._count = len(matrices) if count is None else int(count)
        if self._count > len(matrices):
            raise StructuralError(
                f"count {self._count} exceeds the {len(matrices)} stored matrices"
            )

    def count(self) -> int:
        return self._count

    def at(self, index: int) -> Any:
        return self.matrices[self._check(index)]


class FunctionMatrixSource(MatrixSource):
    """Matrices produced on demand by ``func(index)`` for ``index < count``."""

    def __init__(self, func: Callable[[int], Any], count: int):
        if count < 0:
            raise StructuralError(f"count has to be non-negative, got {count}")
        self.func = func
        self._count = int(count)

    def count(self) -> int:
        return self._count

    def at(self, index: int) -> Any:
        return self.func(self._check(index))


def as_matrix_source(matrices, count: Optional[int] = None) -> MatrixSource:
    """Wrap an array, a sequence, or a callable ``index -> matrix`` in a `MatrixSource`."""
    if isinstance(matrices, MatrixSource):
        return matrices
    if isinstance(matrices, np.ndarray):
        return ArrayMatrixSource(matrices, count)
    if callable(matrices):
        if count is None:
            raise StructuralError("A count is required for a function matrix source")
        return FunctionMatrixSource(matrices, count)
    if isinstance(matrices, (list, tuple)):
        return SequenceMatrixSource(matrices, count)
    raise StructuralError(f"Unsupported matrix source: {type(matrices).__name__}")


@dataclass
class SolveOutcome:
    """Result slot of one item of a batched solve."""

    index: int
    value: Any = None
    error: Optional[BaseException] = None
    warnings: list[Warning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def category(self) -> Optional[str]:
        return None if self.error is None else type(self.error).__name__

    @property
    def block_index(self) -> Optional[int]:
        return getattr(self.error, "block_index", None)


@dataclass
class Reported:
    """Value returned by a per-item solve together with its warnings."""

    value: Any
    warnings: list[Warning] = field(default_factory=list)


class MatrixListSolver:
    """
    Apply the same solve to every matrix of a `MatrixSource`.

    Items are divided across MPI ranks with :func:`divide_work` and across a
    thread pool within each rank. Every item writes its own outcome slot,
    a failing item never aborts the batch.

    Parameters
    ----------
    `source` : MatrixSource or array, sequence, callable
        Matrices to solve, see :func:`as_matrix_source`.
    `solve` : callable
        ``solve(matrix) -> value``. It may return a :class:`Reported` to
        attach warnings to the outcome.
    `count` : int, optional
        Number of items, required for a callable source.
    `max_workers` : int
        Threads per MPI rank.
    `comm` : MPI communicator, optional
        Defaults to ``MPI.COMM_WORLD``. Outcomes are gathered on every rank.
    `context` : SolverContext, optional
        Logging and progress context.
    """

    def __init__(
        self,
        source,
        solve: Callable[[Any], Any],
        count: Optional[int] = None,
        max_workers: int = 1,
        comm=None,
        context: Optional[SolverContext] = None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers has to be greater than 0")
        self.source = as_matrix_source(source, count)
        self.solve_item = solve
        self.max_workers = int(max_workers)
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        self.context = context or default_context()
        self.outcomes: list[SolveOutcome] = []

    def _run(self, index: int, progress: Optional[ProgressFeedback], step: float):
        outcome = SolveOutcome(index)
        try:
            result = self.solve_item(self.source.at(index))
            if isinstance(result, Reported):
                outcome.value = result.value
                outcome.warnings.extend(result.warnings)
            else:
                outcome.value = result
        except Exception as e:
            # Kept with its item so every rank reaches allgather.
            outcome.error = e
            self.context.warning(
                "Item %d failed with %s: %s", index, type(e).__name__, e, fallback=logger
            )
        if progress is not None:
            progress.update(step)
        return outcome

    def solve(self) -> list[SolveOutcome]:
        """
        Solve every item.

        Returns
        -------
        `outcomes` : list of SolveOutcome
            One outcome per item, ordered by item index.
        """
        total = self.source.count()
        progress = self.context.progress
        if progress is not None:
            progress.reset()

        rank, size = self.comm.Get_rank(), self.comm.Get_size()
        indices = local_indices(total, rank, size)
        step = 1.0 / total if total else 0.0

        if self.max_workers == 1 or len(indices) <= 1:
            local = [self._run(i, progress, step) for i in indices]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                local = list(executor.map(lambda i: self._run(i, progress, step), indices))

        if size > 1:
            gathered = self.comm.allgather(local)
            outcomes = [o for part in gathered for o in part]
        else:
            outcomes = local
        outcomes.sort(key=lambda o: o.index)

        if progress is not None:
            progress.finish()
        nfail = sum(1 for o in outcomes if not o.ok)
        if nfail:
            self.context.warning(
                "%d of %d items failed.", nfail, total, fallback=logger
            )
        self.outcomes = outcomes
        return outcomes

    def values(self) -> list[Any]:
        """Values of all items, ``None`` for failed ones."""
        return [o.value for o in self.outcomes]

    def failures(self) -> list[SolveOutcome]:
        return [o for o in self.outcomes if not o.ok]


def greens_list_solver(
    source,
    mode=GreenMatrixSubType.FULL_MATRIX,
    block_sizes: Optional[Sequence[int]] = None,
    count: Optional[int] = None,
    **kwargs,
) -> MatrixListSolver:
    """Batch of :class:`GreensSolver` runs, one per matrix."""

    def solve(matrix):
        return GreensSolver(matrix, block_sizes).compute(mode)

    return MatrixListSolver(source, solve, count=count, **kwargs)


def eigen_list_solver(
    source,
    action: EigenAction = EigenAction.EIGENVALUES_ONLY,
    eigen_range: EigenRange = EigenRange.full(),
    count: Optional[int] = None,
    **kwargs,
) -> MatrixListSolver:
    """
    Batch of Hermitian eigen-decompositions.

    Item values are the eigenvalue arrays, or ``(eigenvalues, eigenvectors)``
    tuples when eigenvectors are requested.
    """

    def solve(matrix):
        solver = HermitianSolver(matrix)
        values = solver.compute(action, eigen_range)
        if action is EigenAction.EIGENVALUES_AND_VECTORS:
            return values, solver.eigenvectors
        return values

    return MatrixListSolver(source, solve, count=count, **kwargs)


def transport_list_solver(
    source,
    direction="left_to_right",
    count: Optional[int] = None,
    max_iterations: int = 1000,
    tolerance: float = 1e-12,
    singular_threshold: float = SINGULAR_THRESHOLD,
    **kwargs,
) -> MatrixListSolver:
    """
    Batch of two-lead transmissions.

    Every item of `source` is a mapping with the keyword arguments of
    :class:`~NEGF_QTpy.transport.two_lead.TwoLeadTransportSolver` (for
    instance the output of ``TransportSystem.energy_matrices``), optionally
    with a ``block_sizes`` entry. Lead non-convergence is reported as a
    :class:`NonConvergenceWarning` on the item outcome.
    """
    def solve(blocks):
        solver = TwoLeadTransportSolver(
            **blocks,
            max_iterations=max_iterations,
            tolerance=tolerance,
            warn=False,
            singular_threshold=singular_threshold,
        )
        transmission = solver.compute(direction)
        lead_warnings: list[NonConvergenceWarning] = solver.lead_warnings
        return Reported(transmission, list(lead_warnings))

    return MatrixListSolver(source, solve, count=count, **kwargs)
