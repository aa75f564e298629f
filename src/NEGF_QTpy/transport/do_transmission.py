from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import numpy as np
from mpi4py import MPI

from NEGF_QTpy.dos import device_dos
from NEGF_QTpy.feedback import ProgressFeedback, SolverContext
from NEGF_QTpy.green import GreensSolver
from NEGF_QTpy.grid.egrid import energy_grid_from_settings
from NEGF_QTpy.hamiltonian import TransportSystem
from NEGF_QTpy.io.get_input_params import load_transmission_data_from_yaml
from NEGF_QTpy.io.input_parameters import TransmissionData
from NEGF_QTpy.io.read_matrix import read_transport_system
from NEGF_QTpy.io.write_data import write_data, write_failures
from NEGF_QTpy.io.write_header import headered_function
from NEGF_QTpy.matrix_list import FunctionMatrixSource, MatrixListSolver, Reported
from NEGF_QTpy.transport.two_lead import TransportDirection, TwoLeadTransportSolver
from NEGF_QTpy.utils.timing import global_timing, timed_function

logger = logging.getLogger(__name__)


class TransmissionCalculator:
    """
    Transmission spectrum of a two-terminal device over an energy grid.

    Energy points are distributed over MPI ranks and, within a rank, over
    `data.advanced.max_workers` threads. A failing energy point is reported
    and excluded from the spectrum, it never stops the loop.
    """

    def __init__(
        self,
        data: TransmissionData,
        system: TransportSystem,
        comm=None,
    ):
        self.data = data
        self.system = system

        self.comm = comm if comm is not None else MPI.COMM_WORLD
        self.rank = self.comm.Get_rank()
        self.size = self.comm.Get_size()

        self.egrid = energy_grid_from_settings(data.energy)
        self.ne = data.energy.ne
        self.delta = data.energy.delta
        self.direction = TransportDirection.parse(data.direction)

        self.context = SolverContext(
            logger=logger,
            log_enabled=data.advanced.log_enabled,
            progress=ProgressFeedback(self._report_progress),
        )
        self._last_reported = -1

        self.transmission: Optional[np.ndarray] = None
        self.dos: Optional[np.ndarray] = None
        self.niter: Optional[np.ndarray] = None
        self.failures: list = []
        self.warnings: list = []

    def _report_progress(self, fraction: float) -> None:
        percent = int(100 * fraction)
        if self.rank == 0 and percent // 10 != self._last_reported // 10:
            self._last_reported = percent
            logger.info(f"Energy loop {percent:3d}% done")

    def energy_blocks(self, ie: int) -> tuple[int, dict]:
        return ie, self.system.energy_matrices(self.egrid[ie], self.delta)

    def process_energy(self, item: tuple[int, dict]) -> Reported:
        ie, blocks = item
        nprint = self.data.iteration.nprint
        if (ie % nprint == 0 or ie == self.ne - 1) and self.rank == 0:
            print(f"  Computing E({ie:6d}) = {self.egrid[ie]:12.5f} eV")

        solver = TwoLeadTransportSolver(
            **blocks,
            block_sizes=self.system.block_sizes,
            max_iterations=self.data.iteration.niterx,
            tolerance=self.data.iteration.transfer_thr,
            context=self.context,
            warn=False,
            singular_threshold=self.data.advanced.singular_threshold,
        )
        transmission = solver.compute(self.direction)

        dos = np.nan
        if self.data.advanced.compute_dos:
            dos = device_dos(
                GreensSolver(
                    solver.dressed_device(),
                    self.system.block_sizes,
                    singular_threshold=self.data.advanced.singular_threshold,
                )
            )
        return Reported(
            (transmission, dos, solver.niter_left, solver.niter_right),
            solver.lead_warnings,
        )

    @timed_function("do_transmission")
    @headered_function("Energy Loop")
    def run(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Solve every energy point.

        Returns
        -------
        `transmission` : (ne,) ndarray
            Transmission per energy; NaN marks failed points, which are also
            listed in `failures`.
        `dos` : (ne,) ndarray
            Device DOS per energy (NaN when not computed or failed).
        """
        list_solver = MatrixListSolver(
            FunctionMatrixSource(self.energy_blocks, self.ne),
            self.process_energy,
            max_workers=self.data.advanced.max_workers,
            comm=self.comm,
            context=self.context,
        )
        outcomes = list_solver.solve()

        self.transmission = np.full(self.ne, np.nan, dtype=np.float64)
        self.dos = np.full(self.ne, np.nan, dtype=np.float64)
        self.niter = np.zeros((2, self.ne), dtype=np.int64)
        for outcome in outcomes:
            if not outcome.ok:
                continue
            t, d, niter_l, niter_r = outcome.value
            self.transmission[outcome.index] = t
            self.dos[outcome.index] = d
            self.niter[:, outcome.index] = niter_l, niter_r
            self.warnings.extend((outcome.index, w) for w in outcome.warnings)
        self.failures = list_solver.failures()

        self.finalize(outcomes)
        return self.transmission, self.dos

    def finalize(self, outcomes) -> None:
        if self.rank != 0:
            return
        solved = self.niter[:, ~np.isnan(self.transmission)]
        avg_iter = solved.mean() if solved.size else 0.0
        print(f"  T matrix converged after avg. # of iterations {avg_iter:10.3f}\n")
        if self.warnings:
            print(f"  Lead decimation did not converge at {len(self.warnings)} energies")
        if self.failures:
            print(f"  {len(self.failures)} of {len(outcomes)} energies failed")
        global_timing.timing_upto_now("do_transmission", label="Total time spent up to now")

    @headered_function("Writing data")
    def write_output(self) -> list[Path]:
        if self.rank != 0:
            return []
        if self.transmission is None:
            raise RuntimeError("run() has to be called before write_output()")

        names = self.data.file_names
        output_dir = Path(names.output_dir)
        ok = ~np.isnan(self.transmission)
        written = [
            write_data(
                self.egrid[ok],
                self.transmission[ok],
                "transmission",
                output_dir,
                prefix=names.prefix,
                postfix=names.postfix,
            )
        ]
        if self.data.advanced.compute_dos:
            written.append(
                write_data(
                    self.egrid[ok],
                    self.dos[ok],
                    "dos",
                    output_dir,
                    prefix=names.prefix,
                    postfix=names.postfix,
                )
            )
        if self.failures:
            written.append(
                write_failures(self.failures, self.egrid, output_dir, prefix=names.prefix)
            )
        return written


class TransmissionRunner:
    """Input file, device blocks and calculator of one transmission run."""

    def __init__(self, data: TransmissionData, system: TransportSystem, comm=None):
        self.data = data
        self.system = system
        self.calculator = TransmissionCalculator(data, system, comm=comm)

    @classmethod
    def from_yaml(cls, yaml_file: str, comm=None) -> "TransmissionRunner":
        data = load_transmission_data_from_yaml(yaml_file)
        hamiltonian_file = Path(data.file_names.hamiltonian_file)
        if not hamiltonian_file.is_absolute():
            hamiltonian_file = Path(yaml_file).parent / hamiltonian_file
        system = read_transport_system(
            hamiltonian_file,
            block_sizes=data.block_sizes,
            leads_are_identical=data.advanced.leads_are_identical,
        )
        return cls(data, system, comm=comm)
