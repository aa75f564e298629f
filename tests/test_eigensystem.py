import numpy as np
import pytest

from NEGF_QTpy.eigensystem import EigenAction, EigenRange, HermitianSolver, RangeType
from NEGF_QTpy.errors import StructuralError


def random_hermitian(dim, seed=0):
    np.random.seed(seed)
    h = np.random.rand(dim, dim) + 1j * np.random.rand(dim, dim)
    return (h + h.conj().T) / 2


@pytest.mark.parametrize(
    "eigen_range, expected",
    [
        (EigenRange.span(2, 4), (2, 4)),
        (EigenRange.span(-3, -1), (7, 9)),
        (EigenRange.lowest_count(3), (0, 2)),
        (EigenRange.highest_count(3), (7, 9)),
        (EigenRange.middle(3), (4, 6)),
        (EigenRange.middle(4), (4, 7)),
        (EigenRange.middle_span(-2, 0), (3, 5)),
    ],
)
def test_fit_indices_to_size(eigen_range, expected):
    fitted = eigen_range.fit_indices_to_size(10)

    assert fitted.kind is RangeType.INDEX
    assert (fitted.begin, fitted.end) == expected


@pytest.mark.parametrize(
    "eigen_range", [EigenRange.span(5, 12), EigenRange.span(-11, 2), EigenRange.span(6, 3)]
)
def test_fit_indices_out_of_range(eigen_range):
    with pytest.raises(ValueError):
        eigen_range.fit_indices_to_size(10)


def test_full_and_value_ranges_are_unchanged():
    full = EigenRange.full()
    values = EigenRange.values(-1.0, 1.0)

    assert full.is_full
    assert full.fit_indices_to_size(4) is full
    assert values.fit_indices_to_size(4) is values
    with pytest.raises(ValueError):
        EigenRange.values(1.0, 1.0)


def test_full_spectrum():
    h = random_hermitian(6)

    solver = HermitianSolver(h)
    values = solver.compute()

    assert np.allclose(values, np.linalg.eigvalsh(h))
    assert solver.eigenvectors is None


def test_index_subset_with_vectors():
    h = random_hermitian(8, seed=1)
    reference = np.linalg.eigvalsh(h)

    solver = HermitianSolver(h)
    values = solver.compute(EigenAction.EIGENVALUES_AND_VECTORS, EigenRange.highest_count(2))
    vectors = solver.eigenvectors

    assert np.allclose(values, reference[-2:])
    assert vectors.shape == (8, 2)
    assert np.allclose(h @ vectors, vectors * values)


def test_value_subset():
    h = np.diag([-2.0, -0.5, 0.3, 0.9, 4.0])

    values = HermitianSolver(h).compute("eigenvalues", EigenRange.values(-1.0, 1.0))

    assert np.allclose(values, [-0.5, 0.3, 0.9])


def test_cached_vectors_serve_value_requests():
    h = random_hermitian(5, seed=2)
    solver = HermitianSolver(h)

    values = solver.compute("eigenvectors", EigenRange.middle(3))
    assert solver.compute("eigenvalues", EigenRange.middle(3)) is values
    assert solver.eigenvectors is not None

    lowest = solver.compute("eigenvalues", EigenRange.lowest_count(1))
    assert lowest.shape == (1,)
    assert solver.eigenvectors is None


def test_invalid_matrix():
    with pytest.raises(StructuralError):
        HermitianSolver(np.zeros((2, 3)))
    with pytest.raises(ValueError):
        HermitianSolver(np.eye(3)).compute("eigenvalues", EigenRange.span(0, 3))
