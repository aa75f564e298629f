"""Write the Hamiltonian blocks of a perfect two-leg ladder to ``ladder.npz``."""

from pathlib import Path

import numpy as np

from NEGF_QTpy.hamiltonian import TransportSystem
from NEGF_QTpy.io.read_matrix import write_transport_system

RUNG = -1.0
LEG = -1.0
NCELLS = 8


def main():
    onsite = np.array([[0.0, RUNG], [RUNG, 0.0]])
    hopping = LEG * np.eye(2)
    system = TransportSystem.uniform_chain(NCELLS, onsite, hopping, block_sizes=(2, 4, 4, 4, 2))
    filename = write_transport_system(Path(__file__).parent / "ladder.npz", system)
    print(f"Device of dimension {system.dimension} written to {filename}")


if __name__ == "__main__":
    main()
