import numpy as np


def broadening(sigma: np.ndarray) -> np.ndarray:
    """Broadening matrix Γ = i(Σ - Σ†) of a retarded self-energy."""
    return 1j * (sigma - sigma.conj().T)


def evaluate_transmittance(
    gamma_a: np.ndarray,
    G_ret: np.ndarray,
    gamma_b: np.ndarray,
) -> float:
    """
    Landauer/Caroli transmission through a single device block.

    Parameters
    ----------
    `gamma_a` : np.ndarray
        Broadening of the outgoing side, Γ_a.
    `G_ret` : np.ndarray
        Retarded Green's function block, G.
    `gamma_b` : np.ndarray
        Broadening of the incoming side, Γ_b.

    Returns
    -------
    `transmittance` : float
        T = Re Tr(Γ_a · G · Γ_b · G†).
    """
    trace = np.trace(gamma_a @ G_ret @ gamma_b @ G_ret.conj().T)
    return float(np.real(trace))
