import numpy as np
import pytest

from NEGF_QTpy.eigensystem import EigenAction, EigenRange
from NEGF_QTpy.errors import NonConvergenceWarning, StructuralError
from NEGF_QTpy.feedback import ProgressFeedback, SolverContext
from NEGF_QTpy.green import GreenMatrixSubType
from NEGF_QTpy.hamiltonian import TransportSystem
from NEGF_QTpy.matrix_list import (
    ArrayMatrixSource,
    FunctionMatrixSource,
    MatrixListSolver,
    SequenceMatrixSource,
    as_matrix_source,
    eigen_list_solver,
    greens_list_solver,
    transport_list_solver,
)
from NEGF_QTpy.utils.divide_et_impera import divide_work, local_indices


def shifted_matrix(index, dim=4):
    """Well-conditioned matrix depending on `index`."""
    h = np.random.default_rng(index).random((dim, dim))
    return (1.0 + index) * np.eye(dim) + 0.1 * (h + h.T)


def test_matrix_sources():
    stack = np.stack([shifted_matrix(i) for i in range(3)])

    source = as_matrix_source(stack)
    assert isinstance(source, ArrayMatrixSource)
    assert source.count() == 3
    assert np.array_equal(source.at(-1), stack[2])

    first = stack[0]
    repeated = as_matrix_source(first, count=5)
    assert repeated.count() == 5
    assert repeated.at(4) is first

    sequence = as_matrix_source(list(stack))
    assert isinstance(sequence, SequenceMatrixSource)
    assert np.array_equal(sequence.at(1), stack[1])

    function = as_matrix_source(shifted_matrix, count=2)
    assert isinstance(function, FunctionMatrixSource)
    assert np.array_equal(function.at(1), shifted_matrix(1))

    with pytest.raises(IndexError):
        source.at(3)


def test_invalid_sources():
    with pytest.raises(StructuralError):
        as_matrix_source(shifted_matrix)
    with pytest.raises(StructuralError):
        as_matrix_source("matrices")
    with pytest.raises(StructuralError):
        ArrayMatrixSource(np.zeros((2, 3, 3)), count=4)
    with pytest.raises(StructuralError):
        ArrayMatrixSource(np.zeros(3))


def test_greens_list_solver_isolates_failures():
    """A singular item is reported and does not stop the batch."""
    matrices = [shifted_matrix(0), np.zeros((4, 4)), shifted_matrix(2)]

    solver = greens_list_solver(matrices, GreenMatrixSubType.LAST_BLOCK, block_sizes=(2, 2))
    outcomes = solver.solve()

    assert [o.index for o in outcomes] == [0, 1, 2]
    assert outcomes[0].ok and outcomes[2].ok
    assert np.allclose(outcomes[0].value, np.linalg.inv(matrices[0])[2:, 2:])
    assert not outcomes[1].ok
    assert outcomes[1].category == "SingularMatrixError"
    assert outcomes[1].block_index is not None
    assert solver.values()[1] is None
    assert [o.index for o in solver.failures()] == [1]


@pytest.mark.parametrize("max_workers", [1, 3])
def test_unexpected_errors_stay_with_their_item(max_workers):
    def source(ik):
        if ik == 1:
            raise KeyError(f"no matrix for k-point {ik}")
        return shifted_matrix(ik)

    def solve(matrix):
        if 2.5 < matrix[0, 0] < 3.5:
            raise ZeroDivisionError("bad item")
        return np.linalg.inv(matrix)

    outcomes = MatrixListSolver(source, solve, count=4, max_workers=max_workers).solve()

    assert [o.ok for o in outcomes] == [True, False, False, True]
    assert outcomes[1].category == "KeyError"
    assert outcomes[2].category == "ZeroDivisionError"
    assert outcomes[2].block_index is None
    assert np.allclose(outcomes[3].value, np.linalg.inv(shifted_matrix(3)))


@pytest.mark.parametrize("max_workers", [1, 4])
def test_threaded_solve_keeps_order(max_workers):
    solver = greens_list_solver(shifted_matrix, count=8, max_workers=max_workers)

    values = [o.value for o in solver.solve()]

    assert len(values) == 8
    for i, value in enumerate(values):
        assert np.allclose(value, np.linalg.inv(shifted_matrix(i)))


def test_progress_reported_from_zero_to_one():
    reported = []
    context = SolverContext(progress=ProgressFeedback(reported.append))

    MatrixListSolver(
        ArrayMatrixSource(np.eye(3), count=4), np.linalg.inv, context=context
    ).solve()

    assert reported[0] == 0.0
    assert reported[-1] == 1.0
    assert all(0.0 <= r <= 1.0 for r in reported)
    assert reported == sorted(reported)
    assert len(reported) == 6


def test_progress_with_threads():
    reported = []
    context = SolverContext(progress=ProgressFeedback(reported.append))

    MatrixListSolver(shifted_matrix, np.linalg.inv, count=10, max_workers=3, context=context).solve()

    assert reported[0] == 0.0
    assert reported[-1] == 1.0
    assert context.progress.value == pytest.approx(1.0)


def test_eigen_list_solver():
    matrices = np.stack([shifted_matrix(i, dim=5) for i in range(3)])

    outcomes = eigen_list_solver(
        matrices, EigenAction.EIGENVALUES_AND_VECTORS, EigenRange.lowest_count(2)
    ).solve()

    for matrix, outcome in zip(matrices, outcomes):
        values, vectors = outcome.value
        assert np.allclose(values, np.linalg.eigvalsh(matrix)[:2])
        assert np.allclose(matrix @ vectors, vectors * values)


def test_transport_list_solver():
    system = TransportSystem.uniform_chain(4, [[0.0]], [[-1.0]])
    energies = [-1.0, 0.5, 1.0]

    def blocks(ie):
        return dict(
            system.energy_matrices(energies[ie], delta=1e-6), block_sizes=system.block_sizes
        )

    solver = transport_list_solver(blocks, count=len(energies))
    outcomes = solver.solve()

    for outcome in outcomes:
        assert outcome.ok
        assert outcome.value == pytest.approx(1.0, abs=1e-3)
        assert outcome.warnings == []


def test_transport_list_solver_reports_nonconvergence():
    system = TransportSystem.uniform_chain(3, [[0.0]], [[-1.0]])
    blocks = [
        dict(system.energy_matrices(e, delta=1e-6), block_sizes=system.block_sizes)
        for e in (0.2, 0.4)
    ]

    outcomes = transport_list_solver(blocks, max_iterations=1, max_workers=2).solve()

    for outcome in outcomes:
        assert outcome.ok
        assert len(outcome.warnings) == 2
        assert all(isinstance(w, NonConvergenceWarning) for w in outcome.warnings)


def test_invalid_worker_count():
    with pytest.raises(ValueError):
        MatrixListSolver([np.eye(2)], np.linalg.inv, max_workers=0)


@pytest.mark.parametrize("count, size", [(10, 3), (2, 4), (7, 1)])
def test_work_division_covers_all_items(count, size):
    owned = [i for rank in range(size) for i in local_indices(count, rank, size)]

    assert owned == list(range(count))
    start, end = divide_work(0, count - 1, 0, size)
    assert start == 0 and end >= start
