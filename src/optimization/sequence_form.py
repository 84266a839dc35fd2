"""
Sequence-form LP for two-player zero-sum extensive-form games.

The player to solve for (primal) picks realization probabilities x over its sequences,
the opponent (dual) is represented by one free value per information set:

    max  q_root
    s.t. x_root = 1,  sum_a x[I, a] = x[parent(I)]                  (primal sequence form)
         q[I(s)] - sum_{J: parent(J) = s} q[J] - (A^T x)_s <= 0      (one dual constraint per opponent sequence s)
"""

import numpy as np
from typing import Dict, List, Optional

from ..core.game import GameTree, NATURE, PLAYERS
from ..core.utils import compute_nature_probabilities
from .model import Model, LinExpr, SolveResult, SolverError, InfeasibleModelError, ModelNotSolvedError


EMPTY_SEQUENCE_NAME = "∅"


class SequenceFormLPSolver:
    def __init__(
        self,
        game: GameTree,
        player_to_solve_for: int = 1,
        solver_kwargs: Optional[Dict] = None,
        verbose: bool = False,
    ):
        """
        Sequence-form args:
            game: Finalized GameTree (payoffs to player 1)
            player_to_solve_for: Player 1 or player 2
            solver_kwargs: Additional kwargs for the Model (use_gurobi, time_limit, mip_gap, ...)
            verbose: Flag to allow/disallow progress prints
        """
        if player_to_solve_for not in PLAYERS:
            raise ValueError(f"player_to_solve_for must be 1 or 2, got {player_to_solve_for}")
        if not game.finalized:
            raise ValueError(f"Game tree '{game.name}' must be finalized before building a model")

        self.game = game
        self.player_to_solve_for = player_to_solve_for
        self.player_not_to_solve_for = 3 - player_to_solve_for
        self.verbose = verbose

        self.model = Model(name=f"{type(self).__name__}_{game.name}", verbose=verbose, **(solver_kwargs or {}))
        self._result: Optional[SolveResult] = None

        self._compute_sequences()
        self._set_up_sequence_form_model()

    # Sequence bookkeeping

    def _compute_sequences(self):
        game = self.game
        n = game.num_nodes

        self.node_nature_probabilities = compute_nature_probabilities(game)

        self.sequence_ids: Dict[int, Dict] = {1: {}, 2: {}}
        self.sequence_names: Dict[int, List[str]] = {1: [EMPTY_SEQUENCE_NAME], 2: [EMPTY_SEQUENCE_NAME]}
        self.sequence_information_set: Dict[int, List[int]] = {1: [-1], 2: [-1]}
        self.information_set_ids: Dict[int, List[int]] = {1: [], 2: []}
        self.information_set_index: Dict[int, Dict[int, int]] = {1: {}, 2: {}}
        self.information_set_parent_sequence: Dict[int, List[int]] = {1: [], 2: []}
        self.information_set_sequences: Dict[int, List[List[int]]] = {1: [], 2: []}
        self.sequence_id_for_node = {1: np.zeros(n, dtype=int), 2: np.zeros(n, dtype=int)}
        self.leaf_ids: List[int] = []

        stack = [(game.root(), 0, 0)]
        while stack:
            node_id, seq1, seq2 = stack.pop()
            node = game.node_by_id(node_id)
            self.sequence_id_for_node[1][node_id] = seq1
            self.sequence_id_for_node[2][node_id] = seq2
            if node.is_leaf:
                self.leaf_ids.append(node_id)
                continue

            player = node.player
            if player != NATURE:
                self._register_information_set(player, node, seq1 if player == 1 else seq2)

            for action in reversed(node.actions):
                if player == 1:
                    stack.append((action.child_id, self.sequence_ids[1][(node.information_set, action.name)], seq2))
                elif player == 2:
                    stack.append((action.child_id, seq1, self.sequence_ids[2][(node.information_set, action.name)]))
                else:
                    stack.append((action.child_id, seq1, seq2))

        self.child_information_sets: Dict[int, List[List[int]]] = {}
        for player in PLAYERS:
            children = [[] for _ in self.sequence_names[player]]
            for index, parent in enumerate(self.information_set_parent_sequence[player]):
                children[parent].append(index)
            self.child_information_sets[player] = children

    def _register_information_set(self, player: int, node, parent_sequence: int):
        index = self.information_set_index[player].get(node.information_set)
        if index is not None:
            if self.information_set_parent_sequence[player][index] != parent_sequence:
                raise ValueError(
                    f"Game '{self.game.name}' does not satisfy perfect recall: information set "
                    f"{node.information_set} of player {player} is reached through different sequences"
                )
            return

        index = len(self.information_set_ids[player])
        self.information_set_index[player][node.information_set] = index
        self.information_set_ids[player].append(node.information_set)
        self.information_set_parent_sequence[player].append(parent_sequence)

        sequences = []
        for action in node.actions:
            sequence_id = len(self.sequence_names[player])
            self.sequence_ids[player][(node.information_set, action.name)] = sequence_id
            self.sequence_names[player].append(f"{action.name}_{node.information_set}")
            self.sequence_information_set[player].append(index)
            sequences.append(sequence_id)
        self.information_set_sequences[player].append(sequences)

    @property
    def num_primal_sequences(self) -> int:
        return len(self.sequence_names[self.player_to_solve_for])

    @property
    def num_dual_sequences(self) -> int:
        return len(self.sequence_names[self.player_not_to_solve_for])

    @property
    def num_primal_information_sets(self) -> int:
        return len(self.information_set_ids[self.player_to_solve_for])

    @property
    def num_dual_information_sets(self) -> int:
        return len(self.information_set_ids[self.player_not_to_solve_for])

    @property
    def primal_sequence_names(self) -> List[str]:
        return self.sequence_names[self.player_to_solve_for]

    @property
    def dual_sequence_names(self) -> List[str]:
        return self.sequence_names[self.player_not_to_solve_for]

    def get_sequence_id_for_player_to_solve_for(self, information_set: int, action_name: str) -> int:
        return self._sequence_id(self.player_to_solve_for, information_set, action_name)

    def get_sequence_id_for_player_not_to_solve_for(self, information_set: int, action_name: str) -> int:
        return self._sequence_id(self.player_not_to_solve_for, information_set, action_name)

    def _sequence_id(self, player: int, information_set: int, action_name: str) -> int:
        try:
            return self.sequence_ids[player][(information_set, action_name)]
        except KeyError:
            raise ValueError(
                f"No sequence for action '{action_name}' at information set {information_set} of player {player}"
            )

    # Model

    def _set_up_sequence_form_model(self):
        primal = self.player_to_solve_for
        dual = self.player_not_to_solve_for
        model = self.model

        self.strategy_vars_by_sequence_id = model.add_vars(
            self.num_primal_sequences, lb=0.0, ub=1.0,
            names=[f"X{name}" for name in self.primal_sequence_names],
        )
        # q[0] is the root value, q[k + 1] the value of dual information set k
        self.dual_vars = model.add_vars(
            self.num_dual_information_sets + 1, lb=-np.inf, ub=np.inf,
            names=["Qroot"] + [f"Q{i}" for i in self.information_set_ids[dual]],
        )

        x = self.strategy_vars_by_sequence_id
        model.add_eq(x[0], 1.0, name="SequenceForm(root)")
        for index, parent in enumerate(self.information_set_parent_sequence[primal]):
            expr = LinExpr()
            for sequence in self.information_set_sequences[primal][index]:
                expr.add_term(1.0, x[sequence])
            expr.add_term(-1.0, x[parent])
            model.add_eq(expr, 0.0, name=f"SequenceForm({self.information_set_ids[primal][index]})")

        # Payoff of each leaf from the primal player's point of view, weighted by nature
        sign = 1.0 if primal == 1 else -1.0
        payoff_exprs = [LinExpr() for _ in range(self.num_dual_sequences)]
        for leaf_id in self.leaf_ids:
            weight = sign * self.game.node_by_id(leaf_id).value * self.node_nature_probabilities[leaf_id]
            if weight == 0.0:
                continue
            payoff_exprs[self.sequence_id_for_node[dual][leaf_id]].add_term(
                weight, x[self.sequence_id_for_node[primal][leaf_id]]
            )

        self.dual_constraints = []
        for sequence in range(self.num_dual_sequences):
            expr = LinExpr().add_term(1.0, self.dual_vars[self.sequence_information_set[dual][sequence] + 1])
            for child in self.child_information_sets[dual][sequence]:
                expr.add_term(-1.0, self.dual_vars[child + 1])
            expr.add(payoff_exprs[sequence], -1.0)
            self.dual_constraints.append(
                model.add_le(expr, 0.0, name=f"Dual({self.dual_sequence_names[sequence]})")
            )

        model.maximize(self.dual_vars[0])

    # Solving and results

    def solve(self) -> SolveResult:
        result = self.model.solve()
        if result.is_infeasible:
            raise InfeasibleModelError(f"Model '{self.model.name}' is infeasible: {result.message}", result)
        if not result.has_solution:
            raise SolverError(
                f"Model '{self.model.name}' was not solved (status {result.status.value}): {result.message}"
            )
        self._result = result
        if self.verbose:
            print(f"Value of game for player {self.player_to_solve_for}: {result.objective_value:.6f}")
        return result

    def _require_solved(self):
        if self._result is None or not self.model.has_solution:
            raise ModelNotSolvedError(f"{type(self).__name__} has not been solved; call solve() first")

    def get_value_of_game(self) -> float:
        self._require_solved()
        return self.model.get_value(self.dual_vars[0])

    def get_strategy_vars_values(self) -> np.ndarray:
        self._require_solved()
        return self.model.get_values(self.strategy_vars_by_sequence_id)

    def get_strategy_profile(self) -> Dict[int, Dict[str, float]]:
        """
        Behavioral strategy of the primal player: information set id -> action -> probability.
        Information sets reached with (near) zero probability get the uniform strategy.
        """
        x = self.get_strategy_vars_values()
        primal = self.player_to_solve_for
        profile = {}
        for index, information_set in enumerate(self.information_set_ids[primal]):
            sequences = self.information_set_sequences[primal][index]
            parent_value = x[self.information_set_parent_sequence[primal][index]]
            names = [self.sequence_names[primal][s].rsplit("_", 1)[0] for s in sequences]
            if parent_value > Model.EPSILON:
                probs = [max(0.0, x[s]) / parent_value for s in sequences]
            else:
                probs = [1.0 / len(sequences)] * len(sequences)
            profile[information_set] = dict(zip(names, probs))
        return profile
