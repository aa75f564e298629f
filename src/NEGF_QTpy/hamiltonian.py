from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from NEGF_QTpy.block_partition import BlockPartition
from NEGF_QTpy.errors import StructuralError


def energy_matrix(
    h: np.ndarray, energy: float, delta: float = 1e-5, s: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Matrix to invert for the retarded Green's function, ``(E + i*delta) S - H``.

    `s` defaults to the identity. Off-diagonal (coupling) blocks are passed
    through :func:`coupling_matrix`.
    """
    h = np.asarray(h)
    if s is None:
        s = np.eye(h.shape[0])
    return (energy + 1j * delta) * s - h


def coupling_matrix(h: np.ndarray) -> np.ndarray:
    """Off-diagonal block of the matrix to invert, ``-H_01`` (orthogonal basis)."""
    return -np.asarray(h).astype(np.complex128)


@dataclass(frozen=True)
class LeadBlocks:
    """Unit cell ``H_00`` and cell-to-next-cell hopping ``H_01`` of a lead."""

    onsite: np.ndarray
    coupling: np.ndarray

    def __post_init__(self):
        if self.onsite.ndim != 2 or self.onsite.shape[0] != self.onsite.shape[1]:
            raise StructuralError(f"Lead onsite block must be square, got {self.onsite.shape}")
        if self.coupling.shape != self.onsite.shape:
            raise StructuralError(
                f"Lead coupling shape {self.coupling.shape} differs from onsite shape "
                f"{self.onsite.shape}"
            )

    @property
    def dim(self) -> int:
        return self.onsite.shape[0]


@dataclass(frozen=True)
class TransportSystem:
    """
    Hamiltonian blocks of a two-terminal device.

    Attributes
    ----------
    `device` : np.ndarray
        Device Hamiltonian ``H_C`` (nD x nD).
    `left`, `right` : LeadBlocks
        Lead Hamiltonians.
    `left_coupling` : np.ndarray
        ``H_LC`` hopping from the left lead surface to the first device block (nL x nD0).
    `right_coupling` : np.ndarray
        ``H_CR`` hopping from the last device block to the right lead surface (nDN x nR).
    `block_sizes` : tuple of int, optional
        Device partition.
    """

    device: np.ndarray
    left: LeadBlocks
    right: LeadBlocks
    left_coupling: np.ndarray
    right_coupling: np.ndarray
    block_sizes: Optional[Sequence[int]] = None

    def __post_init__(self):
        dim = self.device.shape[0]
        if self.device.ndim != 2 or self.device.shape[1] != dim:
            raise StructuralError(f"Device Hamiltonian must be square, got {self.device.shape}")
        partition = self.partition
        if self.left_coupling.shape != (self.left.dim, partition.size(0)):
            raise StructuralError(
                f"H_LC shape {self.left_coupling.shape} does not match "
                f"({self.left.dim}, {partition.size(0)})"
            )
        if self.right_coupling.shape != (partition.size(-1), self.right.dim):
            raise StructuralError(
                f"H_CR shape {self.right_coupling.shape} does not match "
                f"({partition.size(-1)}, {self.right.dim})"
            )

    @property
    def dimension(self) -> int:
        return self.device.shape[0]

    @property
    def partition(self) -> BlockPartition:
        if self.block_sizes is None:
            return BlockPartition.single(self.dimension)
        return BlockPartition.validated(self.block_sizes, self.dimension).completed()

    def energy_matrices(self, energy: float, delta: float = 1e-5) -> dict[str, np.ndarray]:
        """
        Blocks of the matrix to invert at energy `energy`.

        Returns a dict with the keys accepted by
        :class:`~NEGF_QTpy.transport.two_lead.TwoLeadTransportSolver`.
        """
        return {
            "device": energy_matrix(self.device, energy, delta),
            "left_onsite": energy_matrix(self.left.onsite, energy, delta),
            "left_coupling": coupling_matrix(self.left.coupling),
            "right_onsite": energy_matrix(self.right.onsite, energy, delta),
            "right_coupling": coupling_matrix(self.right.coupling),
            # A[device_first, left_surface] = -(H_LC)†
            "device_left": coupling_matrix(self.left_coupling.conj().T),
            # A[right_surface, device_last] = -(H_CR)†
            "device_right": coupling_matrix(self.right_coupling.conj().T),
        }

    @classmethod
    def uniform_chain(
        cls,
        ncells: int,
        onsite: np.ndarray,
        hopping: np.ndarray,
        block_sizes: Optional[Sequence[int]] = None,
    ) -> "TransportSystem":
        """
        Device made of `ncells` copies of a lead cell, attached to two leads
        built from the same cell.
        """
        onsite = np.asarray(onsite, dtype=np.complex128)
        hopping = np.asarray(hopping, dtype=np.complex128)
        n = onsite.shape[0]
        device = np.zeros((ncells * n, ncells * n), dtype=np.complex128)
        for c in range(ncells):
            device[c * n : (c + 1) * n, c * n : (c + 1) * n] = onsite
            if c + 1 < ncells:
                device[c * n : (c + 1) * n, (c + 1) * n : (c + 2) * n] = hopping
                device[(c + 1) * n : (c + 2) * n, c * n : (c + 1) * n] = hopping.conj().T
        if block_sizes is None:
            block_sizes = (n,) * ncells
        lead = LeadBlocks(onsite, hopping)
        return cls(device, lead, lead, hopping, hopping, tuple(block_sizes))
