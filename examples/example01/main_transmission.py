from mpi4py import MPI

from NEGF_QTpy.main import parse_args
from NEGF_QTpy.transport.do_transmission import TransmissionRunner
from NEGF_QTpy.utils.timing import global_timing, timed_function

comm = MPI.COMM_WORLD


@timed_function("transmission")
def main():
    args = parse_args()
    runner = TransmissionRunner.from_yaml(args.yaml_file)
    runner.calculator.run()

    if comm.rank == 0:
        runner.calculator.write_output()
        global_timing.report()


if __name__ == "__main__":
    main()
