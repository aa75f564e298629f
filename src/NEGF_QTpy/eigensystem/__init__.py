from NEGF_QTpy.eigensystem.hermitian_solver import EigenAction, HermitianSolver
from NEGF_QTpy.eigensystem.range import EigenRange, RangeType

__all__ = ["EigenAction", "EigenRange", "HermitianSolver", "RangeType"]
