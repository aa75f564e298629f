from typing import Literal, Optional

import numpy as np

from NEGF_QTpy.feedback import SolverContext
from NEGF_QTpy.green import SINGULAR_THRESHOLD
from NEGF_QTpy.transfer import ChainDirection, ChainSolver


def fold_lead(
    g_surf: np.ndarray,
    device_coupling: np.ndarray,
    side: Literal["left", "right"],
) -> np.ndarray:
    """
    Project a lead surface Green's function onto the adjacent device block.

    Parameters
    ----------
    `g_surf` : np.ndarray
        Surface Green's function of the lead.
    `device_coupling` : np.ndarray
        ``V_l = A[device_first, left_surface]`` for the left lead,
        ``V_r = A[right_surface, device_last]`` for the right lead.
    `side` : {'left', 'right'}
        Which lead `g_surf` belongs to.

    Returns
    -------
    `sigma` : np.ndarray
        Σ_L = V_l · g_L · V_l†  or  Σ_R = V_r† · g_R · V_r.
    """
    if side == "left":
        return device_coupling @ g_surf @ device_coupling.conj().T
    if side == "right":
        return device_coupling.conj().T @ g_surf @ device_coupling
    raise ValueError(f"Invalid value for `side`: {side}. Must be 'left' or 'right'.")


def lead_solver(
    lead_onsite: np.ndarray,
    lead_coupling: np.ndarray,
    max_iterations: int = 1000,
    tolerance: float = 1e-12,
    context: Optional[SolverContext] = None,
    warn: bool = True,
    singular_threshold: float = SINGULAR_THRESHOLD,
) -> ChainSolver:
    return ChainSolver(
        lead_onsite,
        lead_coupling,
        max_iterations=max_iterations,
        tolerance=tolerance,
        context=context,
        singular_threshold=singular_threshold,
        warn=warn,
    )


def compute_lead_self_energy(
    lead_onsite: np.ndarray,
    lead_coupling: np.ndarray,
    device_coupling: np.ndarray,
    side: Literal["left", "right"] = "right",
    max_iterations: int = 1000,
    tolerance: float = 1e-12,
    context: Optional[SolverContext] = None,
    singular_threshold: float = SINGULAR_THRESHOLD,
) -> tuple[np.ndarray, int]:
    """
    Compute the self-energy a semi-infinite lead folds onto the device.

    Parameters
    ----------
    `lead_onsite` : np.ndarray
        Lead unit-cell block of the matrix to invert, ``(E + i*eta) I - H_00``.
    `lead_coupling` : np.ndarray
        Lead cell-to-next-cell block of the matrix to invert, ``-H_01``.
    `device_coupling` : np.ndarray
        Device/lead block of the matrix to invert, see :func:`fold_lead`.
    `side` : {'left', 'right'}
        Which lead is being modeled.
    `max_iterations` : int
        Maximum number of decimation steps.
    `tolerance` : float
        Convergence threshold on the effective couplings.
    `context` : SolverContext, optional
        Logging context.
    `singular_threshold` : float
        Ill-conditioning limit of the decimation inversions.

    Returns
    -------
    `sigma` : np.ndarray
        Self-energy on the adjacent device block.
    `niter` : int
        Number of decimation steps used.
    """
    if side not in ("left", "right"):
        raise ValueError(f"Invalid value for `side`: {side}. Must be 'left' or 'right'.")
    solver = lead_solver(
        lead_onsite,
        lead_coupling,
        max_iterations,
        tolerance,
        context,
        singular_threshold=singular_threshold,
    )
    direction = (
        ChainDirection.LEFT_SEMI_INFINITE
        if side == "left"
        else ChainDirection.RIGHT_SEMI_INFINITE
    )
    g_surf = solver.compute(direction)
    return fold_lead(g_surf, device_coupling, side), solver.iterations
