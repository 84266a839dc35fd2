"""
Computing a bounded-error abstraction of the second-roll histories of die-roll poker
Run: uv run python examples/abstraction_example.py
"""

from src.core import build_die_roll_poker_tree
from src.abstraction import DieRollPokerAbstractor, CostEstimator


def main():
    num_sides = 3
    game = build_die_roll_poker_tree(num_sides)
    print(f"Die-roll poker with {num_sides} sides: {game.num_nodes} nodes, largest payoff {game.largest_payoff()}")

    estimator = CostEstimator(num_sides, game.largest_payoff())
    print("\nMerge costs of history (1, 1) with every other history:")
    for first in range(1, num_sides + 1):
        for second in range(1, num_sides + 1):
            print(f"  (1, 1) ~ ({first}, {second}): {estimator.cost(1, 1, first, second):.4f}")

    for num_buckets in [2 * num_sides - 1, num_sides]:
        abstractor = DieRollPokerAbstractor(game, num_sides=num_sides, num_buckets=num_buckets)
        abstractor.solve()
        abstraction = abstractor.get_abstraction()

        print(f"\n{num_buckets} buckets: abstraction value {abstractor.get_objective_value():.4f}")
        for bucket in abstraction.buckets():
            names = ", ".join(abstraction.history_name(h) for h in bucket)
            print(f"  {abstraction.history_name(bucket[0])} <- {names}")


if __name__ == "__main__":
    main()
