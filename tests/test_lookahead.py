import numpy as np
import pytest

from src.core import KUHN_VALUE, leaf_payoff_table
from src.optimization import InfeasibleModelError, ModelNotSolvedError, Model
from src.agents import LimitedLookAheadOpponentSolver


def evaluation_table(game, values):
    table = np.zeros(game.num_nodes)
    for node_id, value in values.items():
        table[node_id] = value
    return table


def matching_evaluation(game, leaves, left, right):
    values = {leaf: left for leaf in leaves["L"]}
    values.update({leaf: right for leaf in leaves["R"]})
    return evaluation_table(game, values)


def deactivation_by_name(solver):
    return dict(zip(solver.dual_sequence_names, solver.get_deactivation_values()))


def test_two_ply_prefers_higher_evaluation(matching_game):
    game, leaves = matching_game
    solver = LimitedLookAheadOpponentSolver(game, 1, matching_evaluation(game, leaves, 1.0, 3.0), look_ahead=1)
    solver.solve()

    deactivation = deactivation_by_name(solver)
    assert deactivation["L_0"] == pytest.approx(1.0)
    assert deactivation["R_0"] == pytest.approx(0.0)
    assert solver.get_deactivated_sequences() == ["L_0"]
    assert solver.get_active_sequences() == ["∅", "R_0"]
    assert solver.get_lookahead_choices() == {0: "R"}
    # player 1 exploits the predictable opponent by playing b
    assert solver.get_value_of_game() == pytest.approx(1.0, abs=1e-6)
    assert solver.get_strategy_profile()[0]["b"] == pytest.approx(1.0, abs=1e-6)


def test_exactly_one_action_active_when_preference_is_strict(matching_game):
    game, leaves = matching_game
    solver = LimitedLookAheadOpponentSolver(game, 1, matching_evaluation(game, leaves, 5.0, 2.0), look_ahead=1)
    solver.solve()
    deactivation = deactivation_by_name(solver)
    assert deactivation["L_0"] + deactivation["R_0"] == pytest.approx(1.0)
    assert deactivation["L_0"] == pytest.approx(0.0)
    assert solver.get_value_of_game() == pytest.approx(1.0, abs=1e-6)


def test_equal_evaluations_keep_both_actions_active(matching_game):
    game, leaves = matching_game
    solver = LimitedLookAheadOpponentSolver(game, 1, matching_evaluation(game, leaves, 1.0, 1.0), look_ahead=1)
    solver.solve()
    assert solver.get_deactivated_sequences() == []
    # an unrestricted opponent holds player 1 to the equilibrium value
    assert solver.get_value_of_game() == pytest.approx(0.0, abs=1e-6)


def test_equal_evaluations_without_epsilon_allow_a_strict_choice(matching_game):
    game, leaves = matching_game
    evaluation = matching_evaluation(game, leaves, 1.0, 1.0)
    solver = LimitedLookAheadOpponentSolver(game, 1, evaluation, look_ahead=1, epsilon=0.0)
    solver.solve()
    # with ties allowed, deactivating one action is optimal for player 1
    assert len(solver.get_deactivated_sequences()) == 1
    assert solver.get_value_of_game() == pytest.approx(1.0, abs=1e-6)


def test_preference_smaller_than_epsilon_is_infeasible(matching_game):
    game, leaves = matching_game
    epsilon = 0.01
    evaluation = matching_evaluation(game, leaves, 1.0, 1.0 + epsilon / 2)
    solver = LimitedLookAheadOpponentSolver(game, 1, evaluation, look_ahead=1, epsilon=epsilon)
    with pytest.raises(InfeasibleModelError) as info:
        solver.solve()
    assert info.value.result.is_infeasible
    with pytest.raises(ModelNotSolvedError):
        solver.get_value_of_game()


def test_negative_evaluations_are_shifted(matching_game):
    game, leaves = matching_game
    evaluation = matching_evaluation(game, leaves, -3.0, -1.0)
    solver = LimitedLookAheadOpponentSolver(game, 1, evaluation, look_ahead=1)
    # the caller's table is left untouched
    assert evaluation.min() == -3.0
    assert solver.node_evaluation_table.min() == 0.0
    assert solver.max_evaluation_value_for_sequence[solver.get_sequence_id_for_player_not_to_solve_for(0, "R")] == 2.0

    solver.solve()
    assert solver.get_deactivated_sequences() == ["L_0"]


def test_bounds(matching_game):
    game, leaves = matching_game
    solver = LimitedLookAheadOpponentSolver(game, 1, matching_evaluation(game, leaves, 1.0, 3.0), look_ahead=1)
    assert solver.max_payoff == 1.0
    assert solver.min_payoff == -1.0
    left = solver.get_sequence_id_for_player_not_to_solve_for(0, "L")
    right = solver.get_sequence_id_for_player_not_to_solve_for(0, "R")
    assert solver.max_evaluation_value_for_sequence[left] == 1.0
    assert solver.max_evaluation_value_for_sequence[right] == 3.0
    # the dual constraint of a sequence is widened by the payoff range when deactivated
    constraint = solver.dual_constraints[left]
    assert solver.model.get_coefficient(constraint, solver.sequence_deactivation_vars[left]) == -2.0
    assert solver.model.get_coefficient(constraint, solver.sequence_deactivation_vars[0]) == 0.0


def test_deactivation_propagates_to_descendants(two_stage_game):
    game, leaves = two_stage_game
    evaluation = evaluation_table(game, {
        leaves["uxl"]: 1.0, leaves["uxr"]: 1.0, leaves["vxl"]: 1.0, leaves["vxr"]: 1.0,
        leaves["uy"]: 5.0, leaves["vy"]: 5.0,
    })
    solver = LimitedLookAheadOpponentSolver(game, 1, evaluation, look_ahead=2)
    solver.solve()

    assert sorted(solver.get_deactivated_sequences()) == ["l_1", "r_1", "x_0"]
    assert solver.get_lookahead_choices() == {0: "y"}
    assert solver.get_value_of_game() == pytest.approx(-1.0, abs=1e-6)
    assert_propagation(solver)


def test_root_sequence_never_deactivated(two_stage_game):
    game, leaves = two_stage_game
    solver = LimitedLookAheadOpponentSolver(game, 1, leaf_payoff_table(game, 2), look_ahead=1)
    solver.solve()
    assert solver.get_deactivation_values()[0] == pytest.approx(0.0)
    assert solver.model.is_true(solver.sequence_look_ahead_vars[0])


def assert_propagation(solver):
    """Scan solved deactivations top-down: children of a deactivated sequence are deactivated"""
    dual = solver.player_not_to_solve_for
    values = solver.get_deactivation_values()
    stack = [0]
    while stack:
        sequence = stack.pop()
        for index in solver.child_information_sets[dual][sequence]:
            children = solver.information_set_sequences[dual][index]
            if values[sequence] > 1 - Model.EPSILON:
                assert all(values[child] > 1 - Model.EPSILON for child in children)
            else:
                # at least one action stays active under an active parent
                assert any(values[child] <= 1 - Model.EPSILON for child in children)
            stack.extend(children)


@pytest.mark.parametrize("look_ahead", [1, 2])
def test_kuhn_opponent_model(kuhn_game, look_ahead):
    solver = LimitedLookAheadOpponentSolver(
        kuhn_game, 1, leaf_payoff_table(kuhn_game, player=2), look_ahead=look_ahead, epsilon=0.0
    )
    solver.solve()
    # restricting the opponent can only help player 1
    assert solver.get_value_of_game() >= KUHN_VALUE - 1e-6
    assert solver.get_deactivation_values()[0] == pytest.approx(0.0)
    assert_propagation(solver)
    assert set(solver.get_lookahead_choices()) == set(kuhn_game.information_set_ids(2))


def test_information_set_values_are_best_action_values(matching_game):
    game, leaves = matching_game
    solver = LimitedLookAheadOpponentSolver(game, 1, matching_evaluation(game, leaves, 1.0, 3.0), look_ahead=1)
    solver.solve()
    # both members are reached with total probability 1, so the best action is worth 3
    assert solver.get_information_set_values() == {0: pytest.approx(3.0, abs=1e-6)}
    # the model variable is only an upper bound on that value
    bound = solver.model.get_value(solver.information_set_value_vars[0])
    assert bound >= 3.0 - 1e-6


def test_information_set_values_look_past_inner_choices(two_stage_game):
    game, leaves = two_stage_game
    evaluation = evaluation_table(game, {
        leaves["uxl"]: 1.0, leaves["uxr"]: 2.0, leaves["vxl"]: 1.0, leaves["vxr"]: 2.0,
        leaves["uy"]: 1.5, leaves["vy"]: 1.5,
    })
    solver = LimitedLookAheadOpponentSolver(game, 1, evaluation, look_ahead=2)
    solver.solve()
    values = solver.get_information_set_values()
    root_set = game.information_set_ids(2)[0]
    # x reaches the inner choice, where r is worth 2 against 1.5 for y
    assert values[root_set] == pytest.approx(2.0, abs=1e-6)


def test_solving_for_player_2(matching_game):
    game, leaves = matching_game
    # player 1 is now the look-ahead player; it can only see player 2's nodes after one ply
    evaluation = evaluation_table(game, {})
    solver = LimitedLookAheadOpponentSolver(game, 2, evaluation, look_ahead=1)
    solver.solve()
    assert solver.get_value_of_game() == pytest.approx(0.0, abs=1e-6)


@pytest.mark.parametrize("kwargs, message", [
    ({"look_ahead": 0}, "look_ahead"),
    ({"look_ahead": -1}, "look_ahead"),
    ({"look_ahead": 1, "epsilon": -0.1}, "epsilon"),
])
def test_invalid_configuration(matching_game, kwargs, message):
    game, leaves = matching_game
    evaluation = matching_evaluation(game, leaves, 1.0, 3.0)
    with pytest.raises(ValueError, match=message):
        LimitedLookAheadOpponentSolver(game, 1, evaluation, **kwargs)


def test_evaluation_table_must_cover_every_node(matching_game):
    game, _ = matching_game
    with pytest.raises(ValueError, match="one entry per node"):
        LimitedLookAheadOpponentSolver(game, 1, np.zeros(game.num_nodes - 1), look_ahead=1)
