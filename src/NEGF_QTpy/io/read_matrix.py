from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

import numpy as np

from NEGF_QTpy.hamiltonian import LeadBlocks, TransportSystem

logger = logging.getLogger(__name__)

REQUIRED_BLOCKS = ("H_C", "H00_R", "H01_R", "H_LC", "H_CR")
LEFT_BLOCKS = ("H00_L", "H01_L")


def symmetrize(matrix: np.ndarray) -> np.ndarray:
    """Hermitian part ½(H + Hᴴ) of a square block."""
    return 0.5 * (matrix + matrix.conj().T)


def read_transport_system(
    filename: str | Path,
    block_sizes: Optional[Sequence[int]] = None,
    leads_are_identical: bool = False,
    enforce_hermiticity: bool = True,
) -> TransportSystem:
    """
    Read the Hamiltonian blocks of a two-terminal device from a ``.npz`` file.

    Parameters
    ----------
    `filename` : str or Path
        Archive holding the arrays ``H_C``, ``H00_R``, ``H01_R``, ``H_LC``,
        ``H_CR`` and, unless `leads_are_identical`, ``H00_L`` and ``H01_L``.
        An optional ``block_sizes`` array provides the device partition.
    `block_sizes` : sequence of int, optional
        Device partition; overrides the one stored in the file.
    `leads_are_identical` : bool
        If True, the right lead blocks are used for the left lead.
    `enforce_hermiticity` : bool
        Whether to symmetrize the onsite blocks via H ← ½(H + Hᴴ).

    Returns
    -------
    `system` : TransportSystem
        Validated device and lead blocks.
    """
    filename = Path(filename)
    if not filename.exists():
        raise FileNotFoundError(f"Unable to find {filename}")

    with np.load(filename) as archive:
        required = REQUIRED_BLOCKS if leads_are_identical else REQUIRED_BLOCKS + LEFT_BLOCKS
        missing = [key for key in required if key not in archive.files]
        if missing:
            raise KeyError(f"Missing blocks {missing} in {filename}")
        blocks = {
            key: np.array(archive[key], dtype=np.complex128)
            for key in archive.files
            if key != "block_sizes"
        }
        if block_sizes is None and "block_sizes" in archive.files:
            block_sizes = [int(b) for b in archive["block_sizes"]]

    onsite_keys = ("H_C", "H00_R", "H00_L")
    if enforce_hermiticity:
        for key in onsite_keys:
            if key in blocks:
                blocks[key] = symmetrize(blocks[key])

    right = LeadBlocks(blocks["H00_R"], blocks["H01_R"])
    left = right if leads_are_identical else LeadBlocks(blocks["H00_L"], blocks["H01_L"])

    logger.info(
        f"Read device of dimension {blocks['H_C'].shape[0]} with leads "
        f"{left.dim}/{right.dim} from {filename}"
    )
    return TransportSystem(
        device=blocks["H_C"],
        left=left,
        right=right,
        left_coupling=blocks["H_LC"],
        right_coupling=blocks["H_CR"],
        block_sizes=tuple(block_sizes) if block_sizes else None,
    )


def write_transport_system(filename: str | Path, system: TransportSystem) -> Path:
    """Store `system` in the ``.npz`` layout read by :func:`read_transport_system`."""
    filename = Path(filename).with_suffix(".npz")
    arrays = {
        "H_C": system.device,
        "H00_L": system.left.onsite,
        "H01_L": system.left.coupling,
        "H00_R": system.right.onsite,
        "H01_R": system.right.coupling,
        "H_LC": system.left_coupling,
        "H_CR": system.right_coupling,
    }
    if system.block_sizes:
        arrays["block_sizes"] = np.asarray(system.block_sizes, dtype=np.int64)
    np.savez(filename, **arrays)
    return filename
