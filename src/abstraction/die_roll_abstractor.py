"""
Bounded-error signal abstraction for die-roll poker.

Each player rolls a private die, betting happens, then each player rolls another
private die followed by betting. The abstractor buckets the (first roll, second roll)
histories of a player into a fixed number of abstract information sets, minimizing
the total payoff error introduced by merging histories with different sums.
"""

import numpy as np
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.game import GameTree
from ..optimization.model import (
    Model, LinExpr, Var, SolveResult, SolverError, InfeasibleModelError, ModelNotSolvedError
)
from .cost import CostEstimator
from .signal_abstraction import SignalAbstraction


class DieRollPokerAbstractor:
    def __init__(
        self,
        game: Optional[GameTree] = None,
        num_sides: int = 3,
        num_buckets: int = 5,
        side_probabilities: Optional[Sequence[float]] = None,
        largest_payoff: Optional[float] = None,
        solver_kwargs: Optional[Dict] = None,
        verbose: bool = False,
    ):
        """
        Abstractor args:
            game: Die-roll poker game; its largest payoff scales the merge costs
            num_sides: Number of sides on each die
            num_buckets: Number of abstract information sets for two-roll histories
            side_probabilities: Probability of each side (uniform if None)
            largest_payoff: Used when no game is given
            solver_kwargs: Additional kwargs for the Model
            verbose: Flag to allow/disallow progress prints
        """
        if game is None and largest_payoff is None:
            raise ValueError("Either a game or largest_payoff must be given")

        self.game = game
        self.num_sides = num_sides
        self.num_buckets = num_buckets
        self.side_probabilities = side_probabilities
        self.largest_payoff = float(game.largest_payoff() if largest_payoff is None else largest_payoff)
        self.solver_kwargs = dict(solver_kwargs or {})
        self.verbose = verbose

        self.model: Optional[Model] = None
        self.cost_estimator: Optional[CostEstimator] = None
        self.assignment_vars: List[Var] = []
        self.cost_vars: List[Var] = []
        self._result: Optional[SolveResult] = None

    @property
    def num_histories(self) -> int:
        return self.num_sides * self.num_sides

    def _history_index(self, first_roll: int, second_roll: int) -> int:
        return (first_roll - 1) * self.num_sides + (second_roll - 1)

    def _histories(self) -> List[Tuple[int, int]]:
        return [(f, s) for f in range(1, self.num_sides + 1) for s in range(1, self.num_sides + 1)]

    def build_model(self) -> Model:
        if self.model is not None:
            return self.model
        if self.num_sides <= 0:
            raise ValueError(f"num_sides must be positive, got {self.num_sides}")
        if self.num_buckets <= 0:
            raise ValueError(f"num_buckets must be positive, got {self.num_buckets}")

        self.cost_estimator = CostEstimator(self.num_sides, self.largest_payoff, self.side_probabilities)
        model = Model(name=f"drp{self.num_sides}_abstraction_{self.num_buckets}", verbose=self.verbose,
                      **self.solver_kwargs)

        self._create_assignment_vars(model)
        self._create_cost_vars(model)
        self._add_cost_constraints(model)

        objective = LinExpr()
        for var in self.cost_vars:
            objective.add_term(1.0, var)
        model.minimize(objective)

        self.model = model
        if self.verbose:
            print(f"Abstraction model: {model.num_vars} vars, {model.num_constraints} constraints")
        return model

    def _create_assignment_vars(self, model: Model):
        # Flat layout: ((first - 1) * num_sides + (second - 1)) * num_buckets + bucket
        self.assignment_vars = []
        for first_roll, second_roll in self._histories():
            expr = LinExpr()
            for bucket in range(self.num_buckets):
                var = model.add_bool_var(f"B({first_roll};{second_roll};{bucket})")
                self.assignment_vars.append(var)
                expr.add_term(1.0, var)
            # Each history goes in exactly one bucket
            model.add_eq(expr, 1.0, name=f"OneBucket({first_roll};{second_roll})")

    def _create_cost_vars(self, model: Model):
        self.cost_vars = [
            model.add_num_var(0.0, 2 * self.largest_payoff, name=f"Cost({first_roll};{second_roll})")
            for first_roll, second_roll in self._histories()
        ]

    def _add_cost_constraints(self, model: Model):
        costs = self.cost_estimator.cost_matrix()
        for a in range(self.num_histories):
            for b in range(a + 1, self.num_histories):
                cost = costs[a, b]
                if cost <= 0.0:
                    continue
                for bucket in range(self.num_buckets):
                    # cost * (A_b + B_b - 1) is the full cost if both are in the bucket, non-positive otherwise
                    expr = LinExpr(-cost)
                    expr.add_term(cost, self.assignment_vars[a * self.num_buckets + bucket])
                    expr.add_term(cost, self.assignment_vars[b * self.num_buckets + bucket])
                    model.add_le(expr, self.cost_vars[a], name=f"MergeCost({a};{b};{bucket})")
                    model.add_le(expr, self.cost_vars[b], name=f"MergeCost({b};{a};{bucket})")

    def solve(self) -> SolveResult:
        model = self.build_model()
        result = model.solve()
        if result.is_infeasible:
            raise InfeasibleModelError(f"Abstraction model '{model.name}' is infeasible: {result.message}", result)
        if not result.has_solution:
            raise SolverError(
                f"Abstraction model '{model.name}' was not solved (status {result.status.value}): {result.message}"
            )
        self._result = result
        if self.verbose:
            print(f"Abstraction value with {self.num_buckets} buckets: {result.objective_value:.6f}")
        return result

    def _require_solved(self) -> Model:
        if self._result is None or self.model is None or not self.model.has_solution:
            raise ModelNotSolvedError("Abstraction has not been computed; call solve() first")
        return self.model

    def get_objective_value(self) -> float:
        return self._require_solved().objective_value

    def get_assignment_var(self, first_roll: int, second_roll: int, bucket: int) -> Var:
        if not (1 <= first_roll <= self.num_sides and 1 <= second_roll <= self.num_sides
                and 0 <= bucket < self.num_buckets):
            raise IndexError(f"No assignment variable for ({first_roll}, {second_roll}, {bucket})")
        self.build_model()
        return self.assignment_vars[self._history_index(first_roll, second_roll) * self.num_buckets + bucket]

    def get_bucket_assignments(self) -> Dict[Tuple[int, int], int]:
        """History -> bucket it was assigned to"""
        model = self._require_solved()
        values = model.get_values(self.assignment_vars).reshape(self.num_histories, self.num_buckets)
        # one-hot rows can sit just under 1 within the solver's integrality tolerance
        return {
            history: int(np.argmax(values[self._history_index(*history)]))
            for history in self._histories()
        }

    def get_abstraction(self) -> SignalAbstraction:
        assignments = self.get_bucket_assignments()

        # Histories of each bucket, in (first roll, second roll) order
        buckets: List[List[Tuple[int, int]]] = [[] for _ in range(self.num_buckets)]
        for history in self._histories():
            buckets[assignments[history]].append(history)

        abstraction = SignalAbstraction([str(side) for side in range(1, self.num_sides + 1)])
        # Everything maps to the first history in its bucket
        for members in buckets:
            for member in members:
                abstraction.add_abstraction(members[0], member)
        return abstraction
