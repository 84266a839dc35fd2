"""Solver adapter and sequence-form models"""

from .model import (
    Model,
    LinExpr,
    Var,
    Constraint,
    SolveResult,
    SolveStatus,
    SolverError,
    InfeasibleModelError,
    ModelNotSolvedError,
    GUROBI_AVAILABLE,
)
from .sequence_form import SequenceFormLPSolver

__all__ = [
    "Model",
    "LinExpr",
    "Var",
    "Constraint",
    "SolveResult",
    "SolveStatus",
    "SolverError",
    "InfeasibleModelError",
    "ModelNotSolvedError",
    "GUROBI_AVAILABLE",
    "SequenceFormLPSolver",
]
