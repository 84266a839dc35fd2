"""
Limited look-ahead opponent model.

Extends the sequence-form best-response LP with boolean deactivation variables per
opponent sequence. The opponent is restricted to strategies that a heuristic node
evaluation, examined only `look_ahead` plies deep, can rationalize: every sequence it
keeps active must look at least as good as its siblings, and strictly better (by
epsilon) than the siblings it deactivates.

Incentive constraint for an active action a against a sibling b at the same
information set (M_b = max evaluation reachable under b):

    Inc(a) >= Dom(b) - M_b + (M_b + eps) * D[b] - (M_b + eps) * D[a]

which is binding (Inc(a) >= Dom(b) + eps) only when a is active and b deactivated.
Two active siblings must tie: Inc(a) >= Dom(b) - M_b * D[b] - M_b * D[a].
"""

import numpy as np
from typing import Dict, List, Optional

from ..core.game import GameTree
from ..core.utils import compute_payoff_bounds, iterate_frontier, make_non_negative
from ..optimization.model import Model, LinExpr, Var
from ..optimization.sequence_form import SequenceFormLPSolver


class LimitedLookAheadOpponentSolver(SequenceFormLPSolver):
    def __init__(
        self,
        game: GameTree,
        player_to_solve_for: int,
        node_evaluation_table: np.ndarray,
        look_ahead: int,
        epsilon: float = 0.001,
        solver_kwargs: Optional[Dict] = None,
        verbose: bool = False,
    ):
        """
        Limited look-ahead args:
            game: Finalized GameTree
            player_to_solve_for: The rational player (1 or 2); the other player looks ahead
            node_evaluation_table: Heuristic value of every node (indexed by node id) for the
                limited look-ahead player
            look_ahead: Number of plies the opponent examines below each of its decisions
            epsilon: How much an action must be heuristically preferred before it is incentivized
            solver_kwargs: Additional kwargs for the Model
            verbose: Flag to allow/disallow progress prints
        """
        if look_ahead <= 0:
            raise ValueError(f"look_ahead must be positive, got {look_ahead}")
        if epsilon < 0:
            raise ValueError(f"epsilon must be non-negative, got {epsilon}")
        table = np.asarray(node_evaluation_table, dtype=float)
        if table.shape != (game.num_nodes,):
            raise ValueError(
                f"node_evaluation_table must have one entry per node ({game.num_nodes}), got shape {table.shape}"
            )
        if not np.all(np.isfinite(table)):
            raise ValueError("node_evaluation_table must be finite")

        self.node_evaluation_table = make_non_negative(table)
        self.look_ahead = int(look_ahead)
        self.epsilon = float(epsilon)

        super().__init__(game, player_to_solve_for, solver_kwargs=solver_kwargs, verbose=verbose)
        self._set_up_look_ahead_model()

    def _set_up_look_ahead_model(self):
        self.max_payoff, self.min_payoff = compute_payoff_bounds(self.game)
        self.max_evaluation_value_for_sequence = self._compute_max_evaluation()

        self._create_boolean_dual_vars()
        self._create_information_set_value_vars()

        self._add_dual_constraint_removal()
        self._add_deactivation_sequence_form_constraints()
        self._add_look_ahead_choice_constraints()
        self._add_primal_incentive_constraints()

        # The empty sequence is never deactivated
        self.model.add_eq(self.sequence_deactivation_vars[0], 0.0, name="Deactivation(root)")

        if self.verbose:
            print(f"Look-ahead model for player {self.player_not_to_solve_for} (k={self.look_ahead}): "
                  f"{self.model.num_vars} vars, {self.model.num_constraints} constraints")

    # Bounds

    def _compute_max_evaluation(self) -> np.ndarray:
        """
        For every dual sequence, the largest evaluation at the depth-limited frontier below
        it. Used as the big-M of the sequence's incentive constraints.
        """
        dual = self.player_not_to_solve_for
        bounds = np.zeros(self.num_dual_sequences)

        for node_id in iterate_frontier(self.game, self.game.root(), 0, self.look_ahead):
            bounds[0] = max(bounds[0], self.node_evaluation_table[node_id])

        for information_set in self.information_set_ids[dual]:
            for member in self.game.information_set_members(dual, information_set):
                for action in self.game.node_by_id(member).actions:
                    sequence = self.get_sequence_id_for_player_not_to_solve_for(information_set, action.name)
                    for node_id in iterate_frontier(self.game, action.child_id, 1, self.look_ahead):
                        bounds[sequence] = max(bounds[sequence], self.node_evaluation_table[node_id])

        return bounds

    # Variables

    def _create_boolean_dual_vars(self):
        names = self.dual_sequence_names
        self.sequence_deactivation_vars: List[Var] = self.model.add_vars(
            len(names), vtype=Model.BINARY, names=[f"D{name}" for name in names]
        )
        self.sequence_look_ahead_vars: List[Var] = self.model.add_vars(
            len(names), vtype=Model.BINARY, names=[f"T{name}" for name in names]
        )

    def _create_information_set_value_vars(self):
        dual = self.player_not_to_solve_for
        self.information_set_value_vars: List[Var] = self.model.add_vars(
            self.num_dual_information_sets, lb=0.0, ub=np.inf,
            names=[f"V{i}" for i in self.information_set_ids[dual]],
        )

    # Constraints

    def _add_dual_constraint_removal(self):
        # Start at 1, the empty sequence is never deactivated
        biggest_differential = self.max_payoff - self.min_payoff
        for sequence in range(1, self.num_dual_sequences):
            # Dual constraints read lhs <= 0; a deactivated sequence widens it by the payoff range
            self.model.change_coefficient(
                self.dual_constraints[sequence], self.sequence_deactivation_vars[sequence], -biggest_differential
            )

    def _add_deactivation_sequence_form_constraints(self):
        """
        At the first node of each opponent information set, at least one action stays active
        unless the parent sequence is deactivated, and children of a deactivated sequence are
        deactivated too.
        """
        game = self.game
        dual = self.player_not_to_solve_for
        deactivation = self.sequence_deactivation_vars

        visited = set()
        stack = [(game.root(), deactivation[0])]
        while stack:
            node_id, parent_var = stack.pop()
            node = game.node_by_id(node_id)
            if node.is_leaf:
                continue

            if node.player == dual and node.information_set not in visited:
                visited.add(node.information_set)
                total = LinExpr()
                for action in node.actions:
                    var = deactivation[self.get_sequence_id_for_player_not_to_solve_for(node.information_set, action.name)]
                    total.add_term(1.0, var)
                    self.model.add_ge(var, parent_var, name=f"DeactivationPropagation({var.name})")
                    stack.append((action.child_id, var))
                # a deactivated parent subtracts one from the sum, allowing all children to be deactivated
                total.add_term(-1.0, parent_var)
                self.model.add_le(total, len(node.actions) - 1, name=f"AtLeastOneActive({node.information_set})")
            else:
                for action in node.actions:
                    if node.player == dual:
                        sequence = self.get_sequence_id_for_player_not_to_solve_for(node.information_set, action.name)
                        stack.append((action.child_id, deactivation[sequence]))
                    else:
                        stack.append((action.child_id, parent_var))

    def _add_look_ahead_choice_constraints(self):
        """The opponent picks exactly one active action wherever its parent sequence is active."""
        dual = self.player_not_to_solve_for
        choice = self.sequence_look_ahead_vars
        deactivation = self.sequence_deactivation_vars

        self.model.add_eq(choice[0] + deactivation[0], 1.0, name="LookAheadChoice(root)")
        for index, information_set in enumerate(self.information_set_ids[dual]):
            total = LinExpr()
            for sequence in self.information_set_sequences[dual][index]:
                total.add_term(1.0, choice[sequence])
                self.model.add_le(choice[sequence] + deactivation[sequence], 1.0,
                                  name=f"ChooseActive({choice[sequence].name})")
            total.add_term(1.0, deactivation[self.information_set_parent_sequence[dual][index]])
            self.model.add_eq(total, 1.0, name=f"LookAheadChoice({information_set})")

    def _add_primal_incentive_constraints(self):
        """
        Loop over all information sets and action pairs of the limited look-ahead player
        """
        game = self.game
        dual = self.player_not_to_solve_for
        deactivation = self.sequence_deactivation_vars
        eps = self.epsilon

        # Dynamic programming table for expressions representing dominated actions, by sequence id
        dominated_action_expression_table: List[Optional[LinExpr]] = [None] * self.num_dual_sequences

        for index, information_set in enumerate(self.information_set_ids[dual]):
            first_node = game.node_by_id(game.information_set_members(dual, information_set)[0])
            action_names = [action.name for action in first_node.actions]

            for action_name in action_names:
                dominated_expr = self._get_dominated_action_expression(
                    index, action_name, dominated_action_expression_table
                )
                self.model.add_ge(self.information_set_value_vars[index], dominated_expr,
                                  name=f"InformationSetValue({information_set};{action_name})")

            if len(action_names) < 2:
                continue

            for incentivized_name in action_names:
                incentive_expr = self._get_incentivized_action_expression(index, incentivized_name)
                incentive_sequence = self.get_sequence_id_for_player_not_to_solve_for(information_set, incentivized_name)

                for dominated_name in action_names:
                    if dominated_name == incentivized_name:
                        continue
                    dominated_expr = self._get_dominated_action_expression(
                        index, dominated_name, dominated_action_expression_table
                    )
                    dominated_sequence = self.get_sequence_id_for_player_not_to_solve_for(information_set, dominated_name)
                    bound = self.max_evaluation_value_for_sequence[dominated_sequence]

                    # binding only when the incentivized action is active and the dominated one is not
                    rhs = dominated_expr.copy()
                    rhs.add_term(bound + eps, deactivation[dominated_sequence])
                    rhs.add_term(-(bound + eps), deactivation[incentive_sequence])
                    rhs.add_constant(-bound)
                    self.model.add_ge(incentive_expr, rhs,
                                      name=f"PrimalIncentive({information_set};{incentivized_name};{dominated_name})")

                    # both active: one side of the equality, the other side comes from the reversed pair
                    equality_rhs = dominated_expr.copy()
                    equality_rhs.add_term(-bound, deactivation[dominated_sequence])
                    equality_rhs.add_term(-bound, deactivation[incentive_sequence])
                    self.model.add_ge(incentive_expr, equality_rhs,
                                      name=f"Equality({information_set};{incentivized_name};{dominated_name})")

    def _child_for_action(self, node_id: int, action_name: str) -> int:
        for action in self.game.node_by_id(node_id).actions:
            if action.name == action_name:
                return action.child_id
        raise ValueError(f"Node {node_id} has no action named '{action_name}'")

    def _frontier_weight(self, node_id: int) -> float:
        # evaluation of a frontier node weighted by the probability nature reaches it
        return float(self.node_nature_probabilities[node_id] * self.node_evaluation_table[node_id])

    def _primal_strategy_var(self, node_id: int) -> Var:
        return self.strategy_vars_by_sequence_id[self.sequence_id_for_node[self.player_to_solve_for][node_id]]

    def _get_dominated_action_expression(
        self,
        information_set_index: int,
        action_name: str,
        dominated_action_expression_table: List[Optional[LinExpr]],
    ) -> LinExpr:
        """
        Using dynamic programming, computes an expression for the value of an action not
        chosen to be made optimal: the sum over the information set's nodes of the
        depth-limited heuristic value below the action, where the look-ahead player takes
        the best action at every information set it meets along the way.
        """
        dual = self.player_not_to_solve_for
        information_set = self.information_set_ids[dual][information_set_index]
        sequence = self.get_sequence_id_for_player_not_to_solve_for(information_set, action_name)
        if dominated_action_expression_table[sequence] is not None:
            return dominated_action_expression_table[sequence]

        label = f"{information_set}{action_name}"
        action_value_var = self.model.add_num_var(0.0, np.inf, name=f"DomActionValue;{label}")

        lower_bound = LinExpr()
        value_table: List[Optional[Dict[str, LinExpr]]] = [None] * self.num_dual_information_sets
        pending = []
        for member in self.game.information_set_members(dual, information_set):
            self._fill_dominated_action_expression(
                lower_bound, self._child_for_action(member, action_name), value_table, pending, 1, label
            )

        self.model.add_ge(action_value_var, lower_bound, name=f"DomActionValue;{label}")
        for information_set_value_var, action_expr, name in pending:
            self.model.add_ge(information_set_value_var, action_expr,
                              name=f"{information_set_value_var.name};{name}")

        expr = LinExpr().add_term(1.0, action_value_var)
        dominated_action_expression_table[sequence] = expr
        return expr

    def _fill_dominated_action_expression(self, parent_expr, node_id, value_table, pending, depth, label):
        node = self.game.node_by_id(node_id)
        if depth == self.look_ahead or node.is_leaf:
            weight = self._frontier_weight(node_id)
            if weight > 0.0:
                parent_expr.add_term(weight, self._primal_strategy_var(node_id))
            return

        if node.player == self.player_not_to_solve_for:
            index = self.information_set_index[node.player][node.information_set]
            if value_table[index] is None:
                # information set value: at least the value of each of its actions
                information_set_value_var = self.model.add_num_var(
                    0.0, np.inf, name=f"InfoValueVar;{label}({node.information_set})"
                )
                parent_expr.add_term(1.0, information_set_value_var)
                value_table[index] = {action.name: LinExpr() for action in node.actions}
                for name, action_expr in value_table[index].items():
                    pending.append((information_set_value_var, action_expr, name))
            for action in node.actions:
                self._fill_dominated_action_expression(
                    value_table[index][action.name], action.child_id, value_table, pending, depth + 1, label
                )
        else:
            for action in node.actions:
                self._fill_dominated_action_expression(
                    parent_expr, action.child_id, value_table, pending, depth + 1, label
                )

    def _get_incentivized_action_expression(self, information_set_index: int, action_name: str) -> LinExpr:
        """
        Expression for the heuristic value of an action chosen to be made optimal. The
        look-ahead player commits to one action at every information set below, and the
        whole expression vanishes when the action is deactivated.
        """
        dual = self.player_not_to_solve_for
        information_set = self.information_set_ids[dual][information_set_index]
        sequence = self.get_sequence_id_for_player_not_to_solve_for(information_set, action_name)
        label = f"{information_set}{action_name}"

        action_active_var = self.model.add_bool_var(f"ActionActive({label})")
        self.model.add_eq(action_active_var, 1.0 - self.sequence_deactivation_vars[sequence],
                          name=f"NotDeactivated({label})")

        action_expr = LinExpr()
        active_table: List[Optional[Dict[str, Var]]] = [None] * self.num_dual_information_sets
        for member in self.game.information_set_members(dual, information_set):
            self._fill_incentivized_action_expression(
                action_expr, action_active_var, self._child_for_action(member, action_name), active_table, 1, label
            )
        return action_expr

    def _fill_incentivized_action_expression(self, action_expr, parent_active_var, node_id, active_table, depth, label):
        node = self.game.node_by_id(node_id)
        if depth == self.look_ahead or node.is_leaf:
            weight = self._frontier_weight(node_id)
            if weight <= 0.0:
                return
            node_value_var = self.model.add_num_var(0.0, np.inf, name=f"NodeVal;{label}({node_id})")
            # the value of the node for the look-ahead player, weighted by nature and the rational player
            self.model.add_le(node_value_var, weight * self._primal_strategy_var(node_id),
                              name=f"NodeVal;{label}({node_id})")
            # but only if every choice leading to it is active
            self.model.add_le(node_value_var, weight * parent_active_var,
                              name=f"NodeActive;{label}({node_id})")
            action_expr.add_term(1.0, node_value_var)
            return

        if node.player == self.player_not_to_solve_for:
            index = self.information_set_index[node.player][node.information_set]
            if active_table[index] is None:
                active_vars = {
                    action.name: self.model.add_bool_var(f"ActionActive{label}{node.information_set}{action.name}")
                    for action in node.actions
                }
                total = LinExpr()
                for var in active_vars.values():
                    total.add_term(1.0, var)
                # one action is picked exactly when the branch leading here is picked
                self.model.add_eq(total, parent_active_var, name=f"PickOne;{label}({node.information_set})")
                active_table[index] = active_vars
            for action in node.actions:
                self._fill_incentivized_action_expression(
                    action_expr, active_table[index][action.name], action.child_id, active_table, depth + 1, label
                )
        else:
            for action in node.actions:
                self._fill_incentivized_action_expression(
                    action_expr, parent_active_var, action.child_id, active_table, depth + 1, label
                )

    # Results

    def get_deactivation_values(self) -> np.ndarray:
        self._require_solved()
        return self.model.get_values(self.sequence_deactivation_vars)

    def get_deactivated_sequences(self) -> List[str]:
        values = self.get_deactivation_values()
        return [name for name, value in zip(self.dual_sequence_names, values) if value > 1 - Model.EPSILON]

    def get_active_sequences(self) -> List[str]:
        values = self.get_deactivation_values()
        return [name for name, value in zip(self.dual_sequence_names, values) if value <= 1 - Model.EPSILON]

    def get_lookahead_choices(self) -> Dict[int, str]:
        """Information set id -> action the look-ahead player picks (only where its parent is active)"""
        self._require_solved()
        dual = self.player_not_to_solve_for
        choices = {}
        for index, information_set in enumerate(self.information_set_ids[dual]):
            for sequence in self.information_set_sequences[dual][index]:
                if self.model.is_true(self.sequence_look_ahead_vars[sequence]):
                    choices[information_set] = self.dual_sequence_names[sequence].rsplit("_", 1)[0]
        return choices

    def get_information_set_values(self) -> Dict[int, float]:
        """
        Information set id -> depth-limited heuristic value of its best action under the
        solved strategy of the rational player. The model's V variables are only bounded
        from below, so the value is recomputed from the realization plan.
        """
        x = self.get_strategy_vars_values()
        dual = self.player_not_to_solve_for
        values = {}
        for index, information_set in enumerate(self.information_set_ids[dual]):
            first_node = self.game.node_by_id(self.game.information_set_members(dual, information_set)[0])
            values[information_set] = max(
                self._dominated_action_value(index, action.name, x) for action in first_node.actions
            )
        return values

    def _dominated_action_value(self, information_set_index: int, action_name: str, x: np.ndarray) -> float:
        # numeric counterpart of _get_dominated_action_expression for a solved plan
        dual = self.player_not_to_solve_for
        information_set = self.information_set_ids[dual][information_set_index]
        totals: Dict[Optional[tuple], float] = {None: 0.0}
        # inner information set index -> (where its value goes, action sums), in discovery order
        inner: Dict[int, tuple] = {}

        stack = [(self._child_for_action(member, action_name), 1, None)
                 for member in self.game.information_set_members(dual, information_set)]
        while stack:
            node_id, depth, target = stack.pop()
            node = self.game.node_by_id(node_id)
            if depth == self.look_ahead or node.is_leaf:
                sequence = self.sequence_id_for_node[self.player_to_solve_for][node_id]
                totals[target] = totals.get(target, 0.0) + self._frontier_weight(node_id) * x[sequence]
            elif node.player == dual:
                index = self.information_set_index[dual][node.information_set]
                if index not in inner:
                    inner[index] = (target, [action.name for action in node.actions])
                for action in node.actions:
                    stack.append((action.child_id, depth + 1, (index, action.name)))
            else:
                for action in node.actions:
                    stack.append((action.child_id, depth + 1, target))

        # deeper information sets are discovered after the ones above them
        for index in reversed(list(inner)):
            target, names = inner[index]
            best = max(totals.get((index, name), 0.0) for name in names)
            totals[target] = totals.get(target, 0.0) + best
        return totals[None]

    def print_sequence_activation_values(self):
        values = self.get_deactivation_values()
        for name, value in zip(self.dual_sequence_names[1:], values[1:]):
            print(f"D{name} = {value:.4f}")
