"""
Cross-checking the sequence-form LP on Kuhn poker against best responses computed
directly from the payoff matrix
Test: uv run python examples/kuhn_sequence_form_checks.py
"""

import numpy as np
from scipy.optimize import linprog

from src.core import get_kuhn_game, KUHN_VALUE
from src.optimization import SequenceFormLPSolver


TOL = 1e-7


def sequence_form_matrices(solver):
    """Payoff matrix A (player 1 payoffs) and constraints E x = e, F y = f"""
    game = solver.game
    num = {p: len(solver.sequence_names[p]) for p in (1, 2)}

    A = np.zeros((num[1], num[2]))
    for leaf in solver.leaf_ids:
        A[solver.sequence_id_for_node[1][leaf], solver.sequence_id_for_node[2][leaf]] += (
            game.node_by_id(leaf).value * solver.node_nature_probabilities[leaf]
        )

    constraints = {}
    for p in (1, 2):
        parents = solver.information_set_parent_sequence[p]
        M = np.zeros((len(parents) + 1, num[p]))
        M[0, 0] = 1.0
        for index, parent in enumerate(parents):
            M[index + 1, solver.information_set_sequences[p][index]] = 1.0
            M[index + 1, parent] = -1.0
        m = np.zeros(len(parents) + 1)
        m[0] = 1.0
        constraints[p] = (M, m)
    return A, constraints


def best_response_p1(A, E, e, y):
    res = linprog(-A @ y, A_eq=E, b_eq=e, bounds=[(0, None)] * A.shape[0], method="highs")
    if not res.success:
        raise RuntimeError(f"P1 best-response LP failed: {res.message}")
    return res.x


def best_response_p2(A, F, f, x):
    res = linprog(A.T @ x, A_eq=F, b_eq=f, bounds=[(0, None)] * A.shape[1], method="highs")
    if not res.success:
        raise RuntimeError(f"P2 best-response LP failed: {res.message}")
    return res.x


def main():
    game = get_kuhn_game()

    p1 = SequenceFormLPSolver(game, player_to_solve_for=1)
    p1.solve()
    p2 = SequenceFormLPSolver(game, player_to_solve_for=2)
    p2.solve()

    A, constraints = sequence_form_matrices(p1)
    (E, e), (F, f) = constraints[1], constraints[2]
    print("Checking dimensions...")
    assert A.shape == (13, 13)
    assert E.shape == (7, 13) and F.shape == (7, 13)

    x = p1.get_strategy_vars_values()
    y = p2.get_strategy_vars_values()
    print("Checking realization plans...")
    assert np.allclose(E @ x, e, atol=TOL)
    assert np.allclose(F @ y, f, atol=TOL)

    print("Checking saddle point...")
    value = float(x @ A @ y)
    lower = float(x @ A @ best_response_p2(A, F, f, x))
    upper = float(best_response_p1(A, E, e, y) @ A @ y)
    print(f"  value: {value:.6f}, lower: {lower:.6f}, upper: {upper:.6f}, gap: {upper - lower:.3e}")
    assert upper - lower <= TOL
    assert abs(value - KUHN_VALUE) <= TOL
    assert abs(p1.get_value_of_game() - lower) <= TOL
    assert abs(p2.get_value_of_game() + upper) <= TOL

    print("\nAll Kuhn sequence-form checks passed.")


if __name__ == "__main__":
    main()
