from __future__ import annotations

import enum
import logging
from typing import Optional, Sequence

import numpy as np

from NEGF_QTpy.block_partition import BlockPartition
from NEGF_QTpy.errors import NonConvergenceWarning, StructuralError
from NEGF_QTpy.feedback import SolverContext, default_context
from NEGF_QTpy.green import SINGULAR_THRESHOLD, GreenMatrixSubType, GreensSolver
from NEGF_QTpy.leads_self_energy import fold_lead, lead_solver
from NEGF_QTpy.transfer import ChainDirection
from NEGF_QTpy.transport.transmittance import broadening, evaluate_transmittance

logger = logging.getLogger(__name__)


class TransportDirection(enum.Enum):
    LEFT_TO_RIGHT = "left_to_right"
    RIGHT_TO_LEFT = "right_to_left"

    @classmethod
    def parse(cls, value) -> "TransportDirection":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as e:
            raise StructuralError(f"Unknown transport direction: {value!r}") from e


class TwoLeadTransportSolver:
    """
    Two-terminal transmission of a block-tridiagonal device between two
    semi-infinite leads.

    All blocks are blocks of the matrix to invert, ``(E + i*eta) I - H``.

    Parameters
    ----------
    `device` : np.ndarray
        Device block ``A_d`` (nD x nD).
    `left_onsite`, `left_coupling` : np.ndarray
        Left lead unit cell and cell-to-next-cell blocks (nL x nL).
    `right_onsite`, `right_coupling` : np.ndarray
        Right lead unit cell and cell-to-next-cell blocks (nR x nR).
    `device_left` : np.ndarray
        ``V_l = A[device_first, left_surface]`` (nD0 x nL).
    `device_right` : np.ndarray
        ``V_r = A[right_surface, device_last]`` (nR x nDN).
    `block_sizes` : sequence of int, optional
        Device partition; rows left uncovered form one trailing block.
        Sizes exceeding the device dimension raise `StructuralError`.
    `max_iterations`, `tolerance` :
        Decimation settings for both leads.
    `context` : SolverContext, optional
        Logging context.
    `singular_threshold` : float
        Reciprocal condition number below which a block inversion in the
        leads or the device raises `SingularMatrixError`. 0 disables the check.
    """

    def __init__(
        self,
        device: np.ndarray,
        left_onsite: np.ndarray,
        left_coupling: np.ndarray,
        right_onsite: np.ndarray,
        right_coupling: np.ndarray,
        device_left: np.ndarray,
        device_right: np.ndarray,
        block_sizes: Optional[Sequence[int]] = None,
        max_iterations: int = 1000,
        tolerance: float = 1e-12,
        context: Optional[SolverContext] = None,
        warn: bool = True,
        singular_threshold: float = SINGULAR_THRESHOLD,
    ):
        device = np.asarray(device)
        if device.ndim != 2 or device.shape[0] != device.shape[1]:
            raise StructuralError(f"Device block must be square, got {device.shape}")
        dim = device.shape[0]
        if block_sizes is None:
            partition = BlockPartition.single(dim)
        else:
            partition = BlockPartition.validated(block_sizes, dim).completed()

        device_left = np.asarray(device_left)
        device_right = np.asarray(device_right)
        if device_left.shape != (partition.size(0), np.shape(left_onsite)[0]):
            raise StructuralError(
                f"Left coupling shape {device_left.shape} does not match first device "
                f"block {partition.size(0)} and left lead {np.shape(left_onsite)[0]}",
                block_index=0,
            )
        if device_right.shape != (np.shape(right_onsite)[0], partition.size(-1)):
            raise StructuralError(
                f"Right coupling shape {device_right.shape} does not match right lead "
                f"{np.shape(right_onsite)[0]} and last device block {partition.size(-1)}",
                block_index=partition.count - 1,
            )

        self.device = device
        self.partition = partition
        self.left_onsite = np.asarray(left_onsite)
        self.left_coupling = np.asarray(left_coupling)
        self.right_onsite = np.asarray(right_onsite)
        self.right_coupling = np.asarray(right_coupling)
        self.device_left = device_left
        self.device_right = device_right
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.context = context or default_context()
        self.warn = warn
        self.singular_threshold = singular_threshold

        self.sigma_left: Optional[np.ndarray] = None
        self.sigma_right: Optional[np.ndarray] = None
        self.niter_left = 0
        self.niter_right = 0
        self.converged = True
        self._lead_warnings: list[NonConvergenceWarning] = []
        self.greens_function: Optional[np.ndarray] = None
        self.gamma_left: Optional[np.ndarray] = None
        self.gamma_right: Optional[np.ndarray] = None
        self.transmission: Optional[float] = None
        self._cache: dict[TransportDirection, tuple] = {}
        self._solver: Optional[GreensSolver] = None

    @classmethod
    def from_system(cls, system, energy: float, delta: float = 1e-5, **kwargs):
        """Build the solver for a :class:`~NEGF_QTpy.hamiltonian.TransportSystem` at `energy`."""
        return cls(
            **system.energy_matrices(energy, delta),
            block_sizes=system.block_sizes,
            **kwargs,
        )

    def lead_self_energies(self) -> tuple[np.ndarray, np.ndarray]:
        """Σ_left on the first device block and Σ_right on the last one."""
        if self.sigma_left is None:
            left = lead_solver(
                self.left_onsite,
                self.left_coupling,
                self.max_iterations,
                self.tolerance,
                self.context,
                self.warn,
                self.singular_threshold,
            )
            right = lead_solver(
                self.right_onsite,
                self.right_coupling,
                self.max_iterations,
                self.tolerance,
                self.context,
                self.warn,
                self.singular_threshold,
            )
            g_left = left.compute(ChainDirection.LEFT_SEMI_INFINITE)
            g_right = right.compute(ChainDirection.RIGHT_SEMI_INFINITE)
            self.sigma_left = fold_lead(g_left, self.device_left, "left")
            self.sigma_right = fold_lead(g_right, self.device_right, "right")
            self.niter_left, self.niter_right = left.iterations, right.iterations
            self.converged = left.converged and right.converged
            self._lead_warnings = [
                s.nonconvergence_warning() for s in (left, right) if not s.converged
            ]
        return self.sigma_left, self.sigma_right

    @property
    def lead_warnings(self) -> list[NonConvergenceWarning]:
        """Non-convergence of either lead decimation, as warning objects."""
        self.lead_self_energies()
        return list(self._lead_warnings)

    def dressed_device(self) -> np.ndarray:
        """Device block with both lead self-energies folded in."""
        sigma_left, sigma_right = self.lead_self_energies()
        p = self.partition
        dressed = self.device.astype(np.complex128, copy=True)
        dressed[p.slice(0), p.slice(0)] -= sigma_left
        dressed[p.slice(-1), p.slice(-1)] -= sigma_right
        return dressed

    def compute(self, direction=TransportDirection.LEFT_TO_RIGHT) -> float:
        """
        Landauer transmission of the device.

        Parameters
        ----------
        `direction` : TransportDirection or str
            LEFT_TO_RIGHT contracts the first device block with the self-energy
            of everything to its right; RIGHT_TO_LEFT is the mirror image. Both
            give the same transmission for a lossless device.

        Returns
        -------
        `transmission` : float
            T = Re Tr(Γ_far · G · Γ_near · G†).
        """
        direction = TransportDirection.parse(direction)
        if direction in self._cache:
            (
                self.transmission,
                self.greens_function,
                self.gamma_left,
                self.gamma_right,
            ) = self._cache[direction]
            return self.transmission

        sigma_left, sigma_right = self.lead_self_energies()
        if self._solver is None:
            self._solver = GreensSolver(
                self.dressed_device(),
                self.partition.sizes,
                context=self.context,
                singular_threshold=self.singular_threshold,
            )

        if direction is TransportDirection.LEFT_TO_RIGHT:
            G = self._solver.compute(GreenMatrixSubType.FIRST_BLOCK)
            far = sigma_right if not self.partition.is_blocked else self._solver.reduced_sigma
            gamma_left = broadening(sigma_left)
            gamma_right = broadening(far)
            transmission = evaluate_transmittance(gamma_right, G, gamma_left)
        else:
            G = self._solver.compute(GreenMatrixSubType.LAST_BLOCK)
            far = sigma_left if not self.partition.is_blocked else self._solver.reduced_sigma
            gamma_left = broadening(far)
            gamma_right = broadening(sigma_right)
            transmission = evaluate_transmittance(gamma_left, G, gamma_right)

        self.context.debug(
            "Transmission (%s) = %.6f", direction.value, transmission, fallback=logger
        )
        self.transmission = transmission
        self.greens_function = G
        self.gamma_left = gamma_left
        self.gamma_right = gamma_right
        self._cache[direction] = (transmission, G, gamma_left, gamma_right)
        return transmission
