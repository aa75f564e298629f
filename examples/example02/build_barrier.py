"""
Single orbital chain with a three-site tunnel barrier in the middle of the
device, coupled to leads of a different onsite energy on the right.
"""

from pathlib import Path

import numpy as np

from NEGF_QTpy.hamiltonian import LeadBlocks, TransportSystem
from NEGF_QTpy.io.read_matrix import write_transport_system

T = -1.0
BARRIER = 0.8
NSITES = 12


def main():
    onsite = np.zeros(NSITES)
    onsite[NSITES // 2 - 1 : NSITES // 2 + 2] = BARRIER
    device = np.diag(onsite) + T * (np.eye(NSITES, k=1) + np.eye(NSITES, k=-1))

    left = LeadBlocks(np.array([[0.0]]), np.array([[T]]))
    right = LeadBlocks(np.array([[0.2]]), np.array([[T]]))
    system = TransportSystem(
        device=device,
        left=left,
        right=right,
        left_coupling=np.array([[T]]),
        right_coupling=np.array([[T]]),
        block_sizes=(1, 3, 4, 3, 1),
    )
    filename = write_transport_system(Path(__file__).parent / "barrier.npz", system)
    print(f"Device of dimension {system.dimension} written to {filename}")


if __name__ == "__main__":
    main()
