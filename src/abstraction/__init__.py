"""Signal abstraction of private chance outcomes"""

from .cost import CostEstimator
from .signal_abstraction import SignalAbstraction
from .die_roll_abstractor import DieRollPokerAbstractor

__all__ = [
    "CostEstimator",
    "SignalAbstraction",
    "DieRollPokerAbstractor",
]
