"""Opponent models built on the sequence-form LP"""

from .lookahead import LimitedLookAheadOpponentSolver

__all__ = [
    "LimitedLookAheadOpponentSolver",
]
