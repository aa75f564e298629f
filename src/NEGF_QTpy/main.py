import argparse
import logging

from mpi4py import MPI

from NEGF_QTpy.io.log_module import (
    log_rank0,
    log_section_end,
    log_section_start,
    log_startup,
    summary_lines,
)
from NEGF_QTpy.transport.do_transmission import TransmissionRunner
from NEGF_QTpy.utils.timing import global_timing, timed_function

comm = MPI.COMM_WORLD


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="negf-transport",
        description="Landauer transmission of a block-tridiagonal device between two leads.",
    )
    parser.add_argument("yaml_file", help="YAML input file with an `input_transmission` section")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable solver log messages"
    )
    return parser.parse_args(argv)


@timed_function("transmission")
def run(yaml_file: str, verbose: bool = False) -> TransmissionRunner:
    log_startup("negf-transport")
    runner = TransmissionRunner.from_yaml(yaml_file, comm=comm)
    if verbose:
        runner.calculator.context.log_enabled = True
    for line in summary_lines(runner.data):
        log_rank0(line)

    log_section_start("transmission")
    runner.calculator.run()
    runner.calculator.write_output()
    log_section_end("transmission")
    return runner


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    run(args.yaml_file, verbose=args.verbose)
    global_timing.report()


if __name__ == "__main__":
    main()
