from __future__ import annotations

import enum
import logging
import warnings
from typing import Optional, Tuple

import numpy as np

from NEGF_QTpy.errors import NonConvergenceWarning, StructuralError
from NEGF_QTpy.feedback import SolverContext, default_context
from NEGF_QTpy.green import SINGULAR_THRESHOLD, invert

logger = logging.getLogger(__name__)


class ChainDirection(enum.Enum):
    LEFT_SEMI_INFINITE = "left"
    RIGHT_SEMI_INFINITE = "right"

    @classmethod
    def parse(cls, value) -> "ChainDirection":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as e:
            raise StructuralError(f"Unknown chain direction: {value!r}") from e


class ChainSolver:
    """
    Surface Green's function of a semi-infinite periodic chain by iterative
    decimation (Lopez Sancho, Lopez Sancho and Rubio, J. Phys. F 15, 851, 1985).

    Parameters
    ----------
    `onsite` : np.ndarray
        Unit-cell block ``H0`` of the matrix to invert, e.g. ``(E + i*eta) I - H_00``.
    `coupling` : np.ndarray
        Off-diagonal block ``V`` linking cell ``n`` to cell ``n + 1`` of the
        matrix to invert. The block linking ``n + 1`` to ``n`` is ``V†``.
    `max_iterations` : int
        Iteration budget.
    `tolerance` : float
        Couplings whose entries are all below this magnitude are considered
        decimated away.
    `context` : SolverContext, optional
        Logging context.

    Notes
    -----
    Every decimation step removes the odd cells of the chain, which is a Schur
    complement of the matrix to invert:

        ε_s ← ε_s - α g β
        ε   ← ε - β g α - α g β
        α   ← α g α,   β ← β g β,   g = ε⁻¹

    with ``α = V``, ``β = V†`` for a chain extending to the right and the
    roles swapped for a chain extending to the left. The effective couplings
    shrink as the decimated cells double every step, so convergence is
    measured on them. The surface Green's function is ``g_s = ε_s⁻¹``.

    With a very small broadening ``eta`` the terms of ``ε_s`` grow like
    ``1/eta``. At symmetric band points, such as the centre of a
    one-orbital chain band, they cancel and the result loses precision even
    though the iteration reports convergence. ``eta`` of order ``1e-6`` or
    larger avoids this.
    """

    def __init__(
        self,
        onsite: np.ndarray,
        coupling: np.ndarray,
        max_iterations: int = 1000,
        tolerance: float = 1e-12,
        context: Optional[SolverContext] = None,
        singular_threshold: float = SINGULAR_THRESHOLD,
        warn: bool = True,
    ):
        onsite = np.asarray(onsite)
        coupling = np.asarray(coupling)
        if onsite.ndim != 2 or onsite.shape[0] != onsite.shape[1]:
            raise StructuralError(f"Onsite block must be square, got {onsite.shape}")
        if coupling.shape != onsite.shape:
            raise StructuralError(
                f"Coupling block shape {coupling.shape} does not match onsite block "
                f"shape {onsite.shape}"
            )
        if max_iterations <= 0:
            raise ValueError("max_iterations has to be greater than 0")

        self.onsite = onsite
        self.coupling = coupling
        self.max_iterations = int(max_iterations)
        self.tolerance = float(tolerance)
        self.context = context or default_context()
        self.singular_threshold = singular_threshold
        self.warn = warn

        self.iterations = 0
        self.converged = False
        self.surface_matrix: Optional[np.ndarray] = None
        self._cache: dict[ChainDirection, tuple] = {}

    def compute(self, direction=ChainDirection.RIGHT_SEMI_INFINITE) -> np.ndarray:
        """
        Surface Green's function of the semi-infinite chain.

        Parameters
        ----------
        `direction` : ChainDirection or {'left', 'right'}
            Side towards which the chain extends.

        Returns
        -------
        `g_surf` : np.ndarray
            Inverse of the renormalized surface block.

        Raises
        ------
        SingularMatrixError
            If one of the intermediate inversions fails.
        """
        direction = ChainDirection.parse(direction)
        if direction in self._cache:
            g_surf, eps_surf, niter, converged = self._cache[direction]
            self.surface_matrix = eps_surf
            self.iterations = niter
            self.converged = converged
            return g_surf

        v = self.coupling
        v_dag = v.conj().T
        if direction is ChainDirection.RIGHT_SEMI_INFINITE:
            alpha, beta = v.copy(), v_dag.copy()
        else:
            alpha, beta = v_dag.copy(), v.copy()

        eps = self.onsite.astype(np.complex128, copy=True)
        eps_surf = eps.copy()
        g = invert(eps, None, self.singular_threshold)

        niter = 0
        while not self._negligible(alpha, beta) and niter < self.max_iterations:
            ag = alpha @ g
            bg = beta @ g
            eps -= bg @ alpha + ag @ beta
            eps_surf -= ag @ beta
            alpha = ag @ alpha
            beta = bg @ beta
            niter += 1
            g = invert(eps, None, self.singular_threshold)

        converged = self._negligible(alpha, beta)
        eps_surf -= alpha @ g @ beta
        g_surf = invert(eps_surf, None, self.singular_threshold)
        self.iterations = niter
        self.converged = converged

        if converged:
            self.context.debug(
                "Decimation (%s) converged after %d iterations.",
                direction.value,
                niter,
                fallback=logger,
            )
        else:
            self.context.warning(
                "Decimation (%s) did not converge after %d iterations.",
                direction.value,
                niter,
                fallback=logger,
            )
            if self.warn:
                warnings.warn(self.nonconvergence_warning(), stacklevel=2)

        self.surface_matrix = eps_surf
        self._cache[direction] = (g_surf, eps_surf, niter, converged)
        return g_surf

    def nonconvergence_warning(self) -> NonConvergenceWarning:
        return NonConvergenceWarning(
            f"Decimation did not converge after {self.iterations} iterations.",
            self.iterations,
        )

    def _negligible(self, alpha: np.ndarray, beta: np.ndarray) -> bool:
        return (
            np.max(np.abs(alpha), initial=0.0) <= self.tolerance
            and np.max(np.abs(beta), initial=0.0) <= self.tolerance
        )


def compute_surface_green_function(
    onsite: np.ndarray,
    coupling: np.ndarray,
    direction="right",
    max_iterations: int = 1000,
    tolerance: float = 1e-12,
    verbose: bool = False,
) -> Tuple[np.ndarray, int]:
    """
    Surface Green's function of a semi-infinite lead.

    Parameters
    ----------
    `onsite` : np.ndarray
        Lead unit-cell block of the matrix to invert, ``(E + i*eta) I - H_00``.
    `coupling` : np.ndarray
        Cell-to-next-cell block of the matrix to invert, ``-H_01``.
    `direction` : {'left', 'right'}
        Side towards which the lead extends.
    `max_iterations` : int
        Maximum number of decimation steps.
    `tolerance` : float
        Convergence threshold on the effective couplings.
    `verbose` : bool
        If True, enables logging output.

    Returns
    -------
    `g_surf` : np.ndarray
        Surface Green's function (ndim x ndim).
    `niter` : int
        Number of decimation steps used.
    """
    solver = ChainSolver(
        onsite,
        coupling,
        max_iterations=max_iterations,
        tolerance=tolerance,
        context=SolverContext(log_enabled=verbose),
    )
    g_surf = solver.compute(direction)
    return g_surf, solver.iterations
