import numpy as np

from NEGF_QTpy.green import GreenMatrixSubType, GreensSolver


def compute_dos(greens_function: np.ndarray, weight: float = 1.0) -> float:
    """
    Density of states from a retarded Green's function.

    Parameters
    ----------
    `greens_function` : np.ndarray
        Retarded Green's function (or a diagonal block of it).
    `weight` : float
        Weight of the contribution, e.g. a k-point weight.

    Returns
    -------
    `dos` : float
        -weight * Tr[Im G] / π
    """
    diag_imag = np.imag(np.diagonal(greens_function))
    return float(-weight * np.sum(diag_imag) / np.pi)


def device_dos(solver: GreensSolver) -> float:
    """DOS of the whole partitioned region of `solver`'s matrix."""
    return compute_dos(solver.compute(GreenMatrixSubType.FULL_MATRIX))

