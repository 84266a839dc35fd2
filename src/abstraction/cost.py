"""
Cost of merging two die-roll histories into one abstract information set.

A history is a pair of private rolls (first, second); at showdown only their sum
matters. Merging two histories with different sums costs the payoff swing an
opponent can inflict: an opponent sum equal to either history's sum ties with one
and wins or loses against the other (swing of one largest payoff), an opponent sum
strictly between the two beats one and loses to the other (swing of two).
"""

import numpy as np
from typing import Optional, Sequence


class CostEstimator:
    def __init__(
        self,
        num_sides: int,
        largest_payoff: float,
        side_probabilities: Optional[Sequence[float]] = None,
    ):
        """
        Cost estimator args:
            num_sides: Number of sides on each die
            largest_payoff: Largest absolute payoff of the game
            side_probabilities: Probability of each side (uniform if None)
        """
        if num_sides <= 0:
            raise ValueError(f"num_sides must be positive, got {num_sides}")
        if largest_payoff < 0:
            raise ValueError(f"largest_payoff must be non-negative, got {largest_payoff}")

        if side_probabilities is None:
            probs = np.ones(num_sides) / num_sides
        else:
            probs = np.asarray(side_probabilities, dtype=float)
            if probs.shape != (num_sides,) or np.any(probs < 0) or not np.isclose(probs.sum(), 1.0):
                raise ValueError(f"side_probabilities must be {num_sides} non-negative values summing to 1")

        self.num_sides = num_sides
        self.largest_payoff = float(largest_payoff)
        self.side_probabilities = probs

        # Probability of the opponent rolling each total, index = sum of two rolls
        pair_probabilities = np.outer(probs, probs)
        self._sum_probabilities = np.zeros(2 * num_sides + 1)
        for r1 in range(1, num_sides + 1):
            for r2 in range(1, num_sides + 1):
                self._sum_probabilities[r1 + r2] += pair_probabilities[r1 - 1, r2 - 1]

        self._cost_matrix: Optional[np.ndarray] = None

    def _check_roll(self, roll: int):
        if not 1 <= roll <= self.num_sides:
            raise ValueError(f"Roll {roll} is outside [1, {self.num_sides}]")

    def _cost_of_sums(self, sum_a: int, sum_b: int) -> float:
        if sum_a == sum_b:
            return 0.0
        lower, higher = min(sum_a, sum_b), max(sum_a, sum_b)
        swing = (
            self._sum_probabilities[lower]
            + self._sum_probabilities[higher]
            + 2.0 * self._sum_probabilities[lower + 1:higher].sum()
        )
        return float(swing * self.largest_payoff)

    def cost(self, first_a: int, second_a: int, first_b: int, second_b: int) -> float:
        """Cost of putting histories (first_a, second_a) and (first_b, second_b) in one bucket"""
        for roll in (first_a, second_a, first_b, second_b):
            self._check_roll(roll)
        return self._cost_of_sums(first_a + second_a, first_b + second_b)

    def cost_matrix(self) -> np.ndarray:
        """
        Costs between all histories. Histories are indexed (first - 1) * num_sides + (second - 1).
        """
        if self._cost_matrix is None:
            n = self.num_sides
            sums = np.array([f + s for f in range(1, n + 1) for s in range(1, n + 1)])
            matrix = np.zeros((n * n, n * n))
            for a in range(n * n):
                for b in range(a + 1, n * n):
                    matrix[a, b] = matrix[b, a] = self._cost_of_sums(sums[a], sums[b])
            self._cost_matrix = matrix
        return self._cost_matrix.copy()
