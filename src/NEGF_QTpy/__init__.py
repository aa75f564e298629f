__version__ = "0.1.0"

from NEGF_QTpy.block_partition import BlockPartition, BlockView  # noqa: E402
from NEGF_QTpy.errors import (  # noqa: E402
    NEGFError,
    NonConvergenceWarning,
    SingularMatrixError,
    StructuralError,
)
from NEGF_QTpy.feedback import ProgressFeedback, SolverContext  # noqa: E402
from NEGF_QTpy.green import GreenMatrixSubType, GreensSolver  # noqa: E402
from NEGF_QTpy.transfer import ChainDirection, ChainSolver  # noqa: E402

__all__ = [
    "BlockPartition",
    "BlockView",
    "ChainDirection",
    "ChainSolver",
    "GreenMatrixSubType",
    "GreensSolver",
    "NEGFError",
    "NonConvergenceWarning",
    "ProgressFeedback",
    "SingularMatrixError",
    "SolverContext",
    "StructuralError",
]
