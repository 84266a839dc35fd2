"""
Extensive-form game tree: decision nodes owned by a player or nature, terminal leaves
carrying the payoff to player 1, and information sets grouping the nodes a player
cannot tell apart.
"""

import numpy as np
from typing import Dict, List, Optional
from dataclasses import dataclass, field


NATURE = 0
PLAYERS = (1, 2)


@dataclass(frozen=True)
class Action:
    name: str
    child_id: int
    probability: float = 0.0  # only meaningful at nature nodes


@dataclass
class Node:
    node_id: int
    player: int = NATURE
    information_set: int = -1
    actions: List[Action] = field(default_factory=list)
    value: float = 0.0
    is_leaf: bool = False


class GameTree:
    """
    Two-player zero-sum game tree with nature moves.

    Nodes are created top-down with add_node / add_leaf, connected with add_action,
    and the tree is frozen with finalize(), which checks that every information set
    exposes the same ordered action names at all of its nodes.
    """

    def __init__(self, name: str = "game"):
        self.name = name
        self._nodes: List[Node] = []
        self._root = 0
        self._information_sets: Dict[int, Dict[int, List[int]]] = {1: {}, 2: {}}
        self._largest_payoff: Optional[float] = None
        self.finalized = False

    def add_node(self, player: int, information_set: int = -1) -> int:
        if player != NATURE and player not in PLAYERS:
            raise ValueError(f"Unknown player {player}; expected 0 (nature), 1 or 2")
        if player != NATURE and information_set < 0:
            raise ValueError("Player nodes need a non-negative information set id")
        self._check_mutable()
        node = Node(node_id=len(self._nodes), player=player, information_set=information_set)
        self._nodes.append(node)
        return node.node_id

    def add_leaf(self, value: float) -> int:
        self._check_mutable()
        node = Node(node_id=len(self._nodes), player=NATURE, value=float(value), is_leaf=True)
        self._nodes.append(node)
        return node.node_id

    def add_action(self, node_id: int, name: str, child_id: int, probability: float = 0.0) -> Action:
        self._check_mutable()
        node = self.node_by_id(node_id)
        if node.is_leaf:
            raise ValueError(f"Cannot add action '{name}' to leaf {node_id}")
        self.node_by_id(child_id)
        if any(a.name == name for a in node.actions):
            raise ValueError(f"Node {node_id} already has an action named '{name}'")
        action = Action(name=name, child_id=child_id, probability=float(probability))
        node.actions.append(action)
        return action

    def set_root(self, node_id: int):
        self._check_mutable()
        self.node_by_id(node_id)
        self._root = node_id

    def finalize(self) -> "GameTree":
        if not self._nodes:
            raise ValueError("Game tree has no nodes")

        information_sets: Dict[int, Dict[int, List[int]]] = {1: {}, 2: {}}
        payoffs = []
        for node in self._nodes:
            if node.is_leaf:
                payoffs.append(node.value)
                continue
            if not node.actions:
                raise ValueError(f"Decision node {node.node_id} has no actions")
            if node.player == NATURE:
                total = sum(a.probability for a in node.actions)
                if any(a.probability < 0 for a in node.actions) or not np.isclose(total, 1.0):
                    raise ValueError(
                        f"Nature node {node.node_id} has invalid probabilities (sum={total:.6f})"
                    )
            else:
                information_sets[node.player].setdefault(node.information_set, []).append(node.node_id)

        for player, sets in information_sets.items():
            for set_id, members in sets.items():
                expected = [a.name for a in self._nodes[members[0]].actions]
                for member in members[1:]:
                    names = [a.name for a in self._nodes[member].actions]
                    if names != expected:
                        raise ValueError(
                            f"Information set {set_id} of player {player} has inconsistent actions: "
                            f"{expected} at node {members[0]} vs {names} at node {member}"
                        )

        self._information_sets = information_sets
        self._largest_payoff = float(np.max(np.abs(payoffs))) if payoffs else 0.0
        self.finalized = True
        return self

    def _check_mutable(self):
        if self.finalized:
            raise RuntimeError(f"Game tree '{self.name}' is finalized and cannot be modified")

    # Read-only accessors

    def root(self) -> int:
        return self._root

    def node_by_id(self, node_id: int) -> Node:
        if not 0 <= node_id < len(self._nodes):
            raise IndexError(f"Node id {node_id} out of range [0, {len(self._nodes)})")
        return self._nodes[node_id]

    @property
    def num_nodes(self) -> int:
        return len(self._nodes)

    def nodes(self) -> List[Node]:
        return list(self._nodes)

    def is_leaf(self, node: Node) -> bool:
        return node.is_leaf

    def player(self, node: Node) -> int:
        return node.player

    def information_set(self, node: Node) -> int:
        return node.information_set

    def actions(self, node: Node) -> List[Action]:
        return node.actions

    def child_id(self, action: Action) -> int:
        return action.child_id

    def nature_probability(self, action: Action) -> float:
        return action.probability

    def terminal_value(self, node: Node) -> float:
        if not node.is_leaf:
            raise ValueError(f"Node {node.node_id} is not a leaf")
        return node.value

    def information_set_ids(self, player: int) -> List[int]:
        return list(self._information_sets[player].keys())

    def information_set_members(self, player: int, information_set: int) -> List[int]:
        try:
            return list(self._information_sets[player][information_set])
        except KeyError:
            raise ValueError(f"Information set {information_set} not found for player {player}")

    def num_information_sets(self, player: int) -> int:
        return len(self._information_sets[player])

    def largest_payoff(self) -> float:
        if self._largest_payoff is None:
            raise RuntimeError(f"Game tree '{self.name}' must be finalized first")
        return self._largest_payoff

    def __repr__(self) -> str:
        return (f"GameTree(name={self.name!r}, nodes={self.num_nodes}, "
                f"infosets=({self.num_information_sets(1)}, {self.num_information_sets(2)}))")
