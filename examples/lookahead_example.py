"""
Exploiting a limited look-ahead opponent in Kuhn poker
Run: uv run python examples/lookahead_example.py
"""

from src.core import get_kuhn_game, leaf_payoff_table, KUHN_VALUE
from src.optimization import SequenceFormLPSolver, InfeasibleModelError
from src.agents import LimitedLookAheadOpponentSolver


def main():
    game = get_kuhn_game()

    nash = SequenceFormLPSolver(game, player_to_solve_for=1)
    nash.solve()
    print(f"Nash value for player 1: {nash.get_value_of_game():.6f} (expected {KUHN_VALUE:.6f})")

    # Player 2 evaluates nodes by their payoff to itself, interior nodes are worth 0
    evaluation = leaf_payoff_table(game, player=2)

    for look_ahead in [1, 2]:
        solver = LimitedLookAheadOpponentSolver(game, 1, evaluation, look_ahead, epsilon=0.0)
        try:
            solver.solve()
        except InfeasibleModelError as e:
            print(f"\nLook-ahead {look_ahead}: infeasible ({e})")
            continue

        print(f"\nLook-ahead {look_ahead}: value {solver.get_value_of_game():.6f}")
        print(f"  Deactivated opponent sequences: {solver.get_deactivated_sequences()}")
        print(f"  Opponent choices: {solver.get_lookahead_choices()}")
        for information_set, strategy in solver.get_strategy_profile().items():
            probs = ", ".join(f"{a}={p:.3f}" for a, p in strategy.items())
            print(f"  P1 infoset {information_set}: {probs}")


if __name__ == "__main__":
    main()
