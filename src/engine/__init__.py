"""Experiment sweeps over abstraction sizes and look-ahead depths"""

from .runner import SweepConfig, AbstractionSweep, LookAheadSweep, build_game

__all__ = [
    "SweepConfig",
    "AbstractionSweep",
    "LookAheadSweep",
    "build_game",
]
