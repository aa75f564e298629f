import datetime

from mpi4py import MPI

from NEGF_QTpy import __version__

comm = MPI.COMM_WORLD
rank = comm.Get_rank()
size = comm.Get_size()


def log_startup(main_name):
    current_date = datetime.datetime.now().strftime("%Y-%m-%d")
    current_time = datetime.datetime.now().strftime("%H:%M:%S")

    if rank == 0:
        print("=" * 70)
        print("              =                                            =")
        print("              =      Block Tridiagonal NEGF Transport      =")
        print("              =   Recursive Green's function + Decimation  =")
        print("              =                                            =")
        print("=" * 70)
        print(f"Program <{main_name}>  v. {__version__}  starts ...")
        print(f"Date {current_date} at {current_time}")
        print(f"Number of MPI processes:    {size}")


def log_rank0(message: str):
    if rank == 0:
        print(message)


def log_section_start(name: str):
    log_rank0(f"Begins {name}")


def log_section_end(name: str):
    log_rank0(f"Ends {name}")


def summary_lines(data) -> list[str]:
    """Human readable summary of a validated `TransmissionData` input."""
    lines = []
    lines.append("  Input parameters:")
    lines.append(f"    hamiltonian_file : {data.file_names.hamiltonian_file}")
    lines.append(f"    output_dir       : {data.file_names.output_dir}")
    lines.append(f"    direction        : {data.direction}")
    lines.append(f"    block_sizes      : {data.block_sizes if data.block_sizes else 'single block'}")
    lines.append("")
    lines.append("  Energy grid:")
    lines.append(f"    emin     : {data.energy.emin:>12.6f}")
    lines.append(f"    emax     : {data.energy.emax:>12.6f}")
    lines.append(f"    ne       : {data.energy.ne:>5}")
    lines.append(f"    delta    : {data.energy.delta:>12.6e}")
    lines.append("")
    lines.append("  Decimation:")
    lines.append(f"    niterx       : {data.iteration.niterx:>5}")
    lines.append(f"    transfer_thr : {data.iteration.transfer_thr:>12.6e}")
    lines.append(f"    leads_are_identical : {data.advanced.leads_are_identical}")
    return lines
