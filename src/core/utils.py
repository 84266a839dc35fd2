"""
Functions for scanning game trees: payoff bounds, nature reach probabilities and
depth-limited frontiers
"""

import numpy as np
from typing import Iterator, Tuple

from .game import GameTree, NATURE


def compute_payoff_bounds(game: GameTree) -> Tuple[float, float]:
    """
    Full leaf scan returning (max_payoff, min_payoff) of the terminal values
    """
    max_payoff = -np.inf
    min_payoff = np.inf

    stack = [game.root()]
    while stack:
        node = game.node_by_id(stack.pop())
        if game.is_leaf(node):
            value = game.terminal_value(node)
            max_payoff = max(max_payoff, value)
            min_payoff = min(min_payoff, value)
            continue
        for action in game.actions(node):
            stack.append(game.child_id(action))

    if not np.isfinite(max_payoff):
        raise ValueError(f"Game tree '{game.name}' has no reachable leaves")
    return float(max_payoff), float(min_payoff)


def compute_nature_probabilities(game: GameTree) -> np.ndarray:
    """
    Probability that nature's moves lead to each node (1 at the root).
    Nodes unreachable from the root keep probability 0.
    """
    probabilities = np.zeros(game.num_nodes)
    probabilities[game.root()] = 1.0

    stack = [game.root()]
    while stack:
        node_id = stack.pop()
        node = game.node_by_id(node_id)
        for action in game.actions(node):
            child = game.child_id(action)
            if game.player(node) == NATURE:
                probabilities[child] = probabilities[node_id] * game.nature_probability(action)
            else:
                probabilities[child] = probabilities[node_id]
            stack.append(child)

    return probabilities


def iterate_frontier(game: GameTree, node_id: int, depth: int, look_ahead: int) -> Iterator[int]:
    """
    Yield the nodes where a depth-limited search started at node_id (counted as
    `depth`) stops: leaves, or nodes reached at depth == look_ahead.
    """
    stack = [(node_id, depth)]
    while stack:
        current, current_depth = stack.pop()
        node = game.node_by_id(current)
        if current_depth >= look_ahead or game.is_leaf(node):
            yield current
            continue
        for action in reversed(game.actions(node)):
            stack.append((game.child_id(action), current_depth + 1))


def make_non_negative(table: np.ndarray) -> np.ndarray:
    """
    Shift a table up by the magnitude of its most negative entry. Tables that
    are already non-negative are returned unchanged (as a copy).
    """
    table = np.array(table, dtype=float)
    min_value = min(0.0, float(table.min())) if table.size else 0.0
    return table + abs(min_value)


def leaf_payoff_table(game: GameTree, player: int = 1) -> np.ndarray:
    """
    Node evaluation table holding each leaf's payoff from `player`'s perspective
    and 0 at interior nodes
    """
    sign = 1.0 if player == 1 else -1.0
    table = np.zeros(game.num_nodes)
    for node in game.nodes():
        if node.is_leaf:
            table[node.node_id] = sign * node.value
    return table
