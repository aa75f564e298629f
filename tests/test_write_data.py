import numpy as np

from NEGF_QTpy.errors import SingularMatrixError
from NEGF_QTpy.io.write_data import write_data, write_failures
from NEGF_QTpy.matrix_list import SolveOutcome


def test_write_transmission(tmp_path):
    egrid = np.array([-1.0, 0.0, 1.0])
    transmission = np.array([1.0, 2.0, 1.0])

    path = write_data(egrid, transmission, "transmission", tmp_path, verbose=False)

    assert path == tmp_path / "transmission.dat"
    lines = path.read_text().splitlines()
    assert lines[0] == "# E (eV)   T(E)"
    data = np.loadtxt(path)
    assert np.allclose(data[:, 0], egrid)
    assert np.allclose(data[:, 1], transmission)


def test_write_multicolumn_with_prefix(tmp_path):
    egrid = np.linspace(0.0, 1.0, 4)
    niter = np.array([[10, 11, 12, 13], [20, 21, 22, 23]])

    path = write_data(egrid, niter, "niter", tmp_path / "out", prefix="chain", verbose=False)

    assert path.name == "chain_niter_.dat"
    data = np.loadtxt(path)
    assert data.shape == (4, 3)
    assert np.allclose(data[:, 2], niter[1])


def test_write_failures(tmp_path):
    egrid = np.array([-1.0, 0.0, 1.0])
    failures = [SolveOutcome(1, error=SingularMatrixError("Inversion failed for block 2.", 2))]

    path = write_failures(failures, egrid, tmp_path)

    lines = path.read_text().splitlines()
    assert len(lines) == 2
    assert lines[1].split()[:4] == ["1", "0.000000000", "SingularMatrixError", "2"]
