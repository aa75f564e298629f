import numpy as np
import pytest

from NEGF_QTpy.errors import StructuralError
from NEGF_QTpy.hamiltonian import TransportSystem
from NEGF_QTpy.io.read_matrix import read_transport_system, symmetrize, write_transport_system


def ladder_system(ncells=3):
    onsite = np.array([[0.0, -1.0], [-1.0, 0.0]])
    return TransportSystem.uniform_chain(ncells, onsite, -np.eye(2))


def test_written_system_is_read_back(tmp_path):
    system = ladder_system()

    filename = write_transport_system(tmp_path / "ladder", system)
    assert filename.suffix == ".npz"

    read = read_transport_system(filename)
    assert read.block_sizes == (2, 2, 2)
    assert np.allclose(read.device, system.device)
    assert np.allclose(read.left.coupling, system.left.coupling)
    assert np.allclose(read.right_coupling, system.right_coupling)


def test_block_sizes_argument_overrides_file(tmp_path):
    filename = write_transport_system(tmp_path / "ladder.npz", ladder_system())

    read = read_transport_system(filename, block_sizes=[2, 2])

    assert read.block_sizes == (2, 2)
    assert read.partition.sizes == (2, 2, 2)


def test_identical_leads(tmp_path):
    system = ladder_system()
    filename = tmp_path / "right_only.npz"
    np.savez(
        filename,
        H_C=system.device,
        H00_R=system.right.onsite,
        H01_R=system.right.coupling,
        H_LC=system.left_coupling,
        H_CR=system.right_coupling,
        block_sizes=np.array([2, 2, 2]),
    )

    with pytest.raises(KeyError):
        read_transport_system(filename)
    read = read_transport_system(filename, leads_are_identical=True)
    assert read.left is read.right
    assert read.block_sizes == (2, 2, 2)


def test_inconsistent_blocks(tmp_path):
    filename = write_transport_system(tmp_path / "ladder.npz", ladder_system())

    with pytest.raises(StructuralError):
        read_transport_system(filename, block_sizes=[3, 3])
    with pytest.raises(FileNotFoundError):
        read_transport_system(tmp_path / "missing.npz")


def test_symmetrize():
    h = np.array([[1.0, 2.0 + 1.0j], [0.0, 3.0]])

    s = symmetrize(h)

    assert np.allclose(s, s.conj().T)
    assert np.allclose(np.diag(s), [1.0, 3.0])
