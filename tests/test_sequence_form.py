import math

import pytest

from src.core import KUHN_VALUE, GameTree
from src.optimization import SequenceFormLPSolver, ModelNotSolvedError


def test_kuhn_value_player_1(kuhn_game):
    solver = SequenceFormLPSolver(kuhn_game, player_to_solve_for=1)
    solver.solve()
    assert solver.get_value_of_game() == pytest.approx(KUHN_VALUE, abs=1e-6)


def test_kuhn_value_player_2(kuhn_game):
    solver = SequenceFormLPSolver(kuhn_game, player_to_solve_for=2)
    solver.solve()
    assert solver.get_value_of_game() == pytest.approx(-KUHN_VALUE, abs=1e-6)


def test_kuhn_sequences(kuhn_game):
    solver = SequenceFormLPSolver(kuhn_game)
    # empty sequence plus two actions at each of the six information sets
    assert solver.num_primal_sequences == 13
    assert solver.num_dual_sequences == 13
    assert solver.num_dual_information_sets == 6
    assert solver.primal_sequence_names[0] == "∅"
    assert len(solver.dual_constraints) == solver.num_dual_sequences

    sequence = solver.get_sequence_id_for_player_to_solve_for(0, "B")
    assert solver.primal_sequence_names[sequence] == "B_0"
    with pytest.raises(ValueError):
        solver.get_sequence_id_for_player_not_to_solve_for(0, "B")


def test_kuhn_strategy_is_a_valid_realization_plan(kuhn_game):
    solver = SequenceFormLPSolver(kuhn_game)
    solver.solve()
    x = solver.get_strategy_vars_values()
    assert x[0] == pytest.approx(1.0)
    for index, parent in enumerate(solver.information_set_parent_sequence[1]):
        children = solver.information_set_sequences[1][index]
        assert x[children].sum() == pytest.approx(x[parent], abs=1e-6)

    for strategy in solver.get_strategy_profile().values():
        assert sum(strategy.values()) == pytest.approx(1.0)
        assert all(p >= 0 for p in strategy.values())


def test_kuhn_king_never_folds_to_a_bet(kuhn_game):
    solver = SequenceFormLPSolver(kuhn_game)
    solver.solve()
    x = solver.get_strategy_vars_values()
    # information set 5: holding K after check-bet; it may be unreached when K always
    # bets, so check the realization plan rather than the behavioral strategy
    fold = solver.get_sequence_id_for_player_to_solve_for(5, "F")
    call = solver.get_sequence_id_for_player_to_solve_for(5, "Ca")
    assert x[fold] == pytest.approx(0.0, abs=1e-6)
    assert x[call] >= x[fold] - 1e-6


def test_strategy_profile_has_no_negative_zeros(kuhn_game, monkeypatch):
    solver = SequenceFormLPSolver(kuhn_game)
    solver.solve()
    x = solver.get_strategy_vars_values().copy()
    x[x <= 1e-9] = -0.0
    monkeypatch.setattr(solver, "get_strategy_vars_values", lambda: x)
    for strategy in solver.get_strategy_profile().values():
        for probability in strategy.values():
            assert math.copysign(1.0, probability) == 1.0


def test_matching_pennies_value(matching_game):
    game, _ = matching_game
    solver = SequenceFormLPSolver(game)
    solver.solve()
    assert solver.get_value_of_game() == pytest.approx(0.0, abs=1e-7)
    assert solver.get_strategy_profile()[0]["a"] == pytest.approx(0.5, abs=1e-6)


def test_game_without_opponent_decisions(coin_game):
    solver = SequenceFormLPSolver(coin_game)
    assert solver.num_dual_sequences == 1
    solver.solve()
    assert solver.get_value_of_game() == pytest.approx(0.0, abs=1e-7)


def test_query_before_solve_raises(kuhn_game):
    solver = SequenceFormLPSolver(kuhn_game)
    with pytest.raises(ModelNotSolvedError):
        solver.get_value_of_game()
    with pytest.raises(ModelNotSolvedError):
        solver.get_strategy_profile()


def test_invalid_player(kuhn_game):
    with pytest.raises(ValueError):
        SequenceFormLPSolver(kuhn_game, player_to_solve_for=3)


def test_unfinalized_game_rejected():
    game = GameTree()
    game.add_leaf(1.0)
    with pytest.raises(ValueError, match="finalized"):
        SequenceFormLPSolver(game)


def test_imperfect_recall_rejected():
    # player 1 forgets its own first action
    game = GameTree(name="forgetful")
    root = game.add_node(1, 0)
    for action in ("l", "r"):
        second = game.add_node(1, 1)
        game.add_action(root, action, second)
        game.add_action(second, "x", game.add_leaf(1.0))
        game.add_action(second, "y", game.add_leaf(-1.0))
    game.set_root(root)
    game.finalize()
    with pytest.raises(ValueError, match="perfect recall"):
        SequenceFormLPSolver(game)
