from functools import wraps

from mpi4py import MPI


def write_header(msg):
    """
    Print out the given header message msg.

    Parameters:
        msg (str): Header message to be printed.
    """

    if len(msg) >= 66:
        raise ValueError(f"message longer than 66 characters: {msg}")

    separator = "=" * 70

    print(f"  {separator}")
    print(f"  =  {msg:^66s}=")
    print(f"  {separator}")


def headered_function(msg: str):
    """Print the `msg` header on rank 0 before running the decorated function."""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if MPI.COMM_WORLD.Get_rank() == 0:
                write_header(msg)
            return func(*args, **kwargs)

        return wrapper

    return decorator
