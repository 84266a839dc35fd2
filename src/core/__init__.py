"""Core game tree definitions, generators and tree scans"""

from .game import GameTree, Node, Action, NATURE, PLAYERS
from .kuhn import build_kuhn_tree, get_kuhn_game, KUHN_VALUE
from .die_roll import build_die_roll_poker_tree
from .utils import (
    compute_payoff_bounds,
    compute_nature_probabilities,
    iterate_frontier,
    make_non_negative,
    leaf_payoff_table,
)

__all__ = [
    "GameTree",
    "Node",
    "Action",
    "NATURE",
    "PLAYERS",
    "build_kuhn_tree",
    "get_kuhn_game",
    "KUHN_VALUE",
    "build_die_roll_poker_tree",
    "compute_payoff_bounds",
    "compute_nature_probabilities",
    "iterate_frontier",
    "make_non_negative",
    "leaf_payoff_table",
]
