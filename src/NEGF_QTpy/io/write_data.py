import logging
from pathlib import Path

import numpy as np
import numpy.typing as npt

logger = logging.getLogger(__name__)

HEADERS = {
    "transmission": "# E (eV)   T(E)",
    "dos": "# E (eV)   dos(E)",
    "niter": "# E (eV)   niter_L(E)   niter_R(E)",
}


def write_data(
    egrid: npt.NDArray[np.float64],
    data: npt.NDArray[np.float64],
    label: str,
    output_dir: Path,
    prefix: str = "",
    postfix: str = "",
    precision: int = 9,
    verbose: bool = True,
) -> Path:
    """
    Write energy-resolved data (e.g., transmission or DOS) into a single text file.

    Parameters
    ----------
    `egrid` : (ne,) ndarray
        Energy grid.
    `data` : (dim, ne) or (ne,) ndarray
        Data to write. Failed energy points are expected as NaN and written as such.
    `label` : str
        Data type label used for header and filename (e.g., "transmission", "dos").
    `output_dir` : Path
        Directory to store the output files.
    `prefix` : str
        Optional prefix to prepend to the filename.
    `postfix` : str
        Optional postfix to append to the filename.
    `precision` : int
        Number of decimal places to write.
    `verbose` : bool
        Whether to print output file paths.

    Returns
    -------
    `filepath` : Path
        Full path to the written file.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    filename = f"{prefix}_{label}_{postfix}.dat" if prefix else f"{label}{postfix}.dat"
    filepath = output_dir / filename

    width = 15
    fmt = f"{{:{width}.{precision}f}}"

    data = np.asarray(data)
    with filepath.open("w") as f:
        if label in HEADERS:
            f.write(HEADERS[label] + "\n")

        ne = egrid.shape[0]
        if data.ndim == 1:
            for ie in range(ne):
                f.write(f"{fmt.format(egrid[ie])}{fmt.format(data[ie])}\n")
        else:
            dim = data.shape[0]
            for ie in range(ne):
                values = " ".join(fmt.format(data[i, ie]) for i in range(dim))
                f.write(f"{fmt.format(egrid[ie])}{values}\n")

    if verbose:
        print(f"Writing {label} to {filepath}")
    logger.debug(f"{label} written to {filepath}")
    return filepath


def write_failures(failures: list, egrid: np.ndarray, output_dir: Path, prefix: str = "") -> Path:
    """
    List the energy points whose solve failed, one line per point.

    Each entry of `failures` is a `SolveOutcome` of the energy loop.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    filepath = output_dir / (f"{prefix}_failures.dat" if prefix else "failures.dat")
    with filepath.open("w") as f:
        f.write("# ie   E (eV)   category   block   message\n")
        for outcome in failures:
            block = "-" if outcome.block_index is None else outcome.block_index
            f.write(
                f"{outcome.index:6d} {egrid[outcome.index]:15.9f} "
                f"{outcome.category} {block} {outcome.error}\n"
            )
    return filepath
