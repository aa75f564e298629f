from typing import Optional


class NEGFError(Exception):
    """Base class for all errors raised by the Green's function engines."""


class StructuralError(NEGFError, ValueError):
    """
    Raised when a block partition or a block access request is malformed.

    Parameters
    ----------
    `message` : str
        Human readable description of the problem.
    `block_index` : int, optional
        Offending block index, if the error refers to a single block.
    """

    def __init__(self, message: str, block_index: Optional[int] = None):
        super().__init__(message)
        self.block_index = block_index

    def __reduce__(self):
        return type(self), (str(self), self.block_index)


class SingularMatrixError(NEGFError, ArithmeticError):
    """
    Raised when a (block) inversion fails because the block is singular
    or too ill-conditioned to be inverted in floating point.

    Parameters
    ----------
    `message` : str
        Human readable description of the problem.
    `block_index` : int, optional
        Index of the block whose inversion failed. ``None`` for a full
        matrix inversion.
    """

    def __init__(self, message: str, block_index: Optional[int] = None):
        super().__init__(message)
        self.block_index = block_index

    def __reduce__(self):
        return type(self), (str(self), self.block_index)


class EigenSolverError(NEGFError, ArithmeticError):
    """Raised when the Hermitian eigen-decomposition fails."""


class NonConvergenceWarning(RuntimeWarning):
    """
    Emitted when an iterative procedure exhausts its iteration budget.

    The best-effort result is still returned to the caller.
    """

    def __init__(self, message: str, iterations: int = 0):
        super().__init__(message)
        self.iterations = iterations

    def __reduce__(self):
        return type(self), (str(self), self.iterations)
