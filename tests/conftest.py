import pytest

from src.core import GameTree, NATURE, get_kuhn_game, build_die_roll_poker_tree


def build_matching_tree():
    """
    Player 1 picks a or b, player 2 (who does not see it) picks L or R.
    Payoffs to player 1: aL=1, aR=-1, bL=-1, bR=1.
    Returns the game and the ids of the L and R leaves.
    """
    game = GameTree(name="matching")
    root = game.add_node(1, 0)
    leaves = {"L": [], "R": []}
    for p1_action, payoffs in (("a", (1.0, -1.0)), ("b", (-1.0, 1.0))):
        p2_node = game.add_node(2, 0)
        game.add_action(root, p1_action, p2_node)
        for p2_action, payoff in zip(("L", "R"), payoffs):
            leaf = game.add_leaf(payoff)
            game.add_action(p2_node, p2_action, leaf)
            leaves[p2_action].append(leaf)
    game.set_root(root)
    return game.finalize(), leaves


def build_two_stage_tree():
    """
    Player 1 picks u or v; player 2 (not seeing it) picks x or y. After x, player 2
    picks l or r at a second information set; y ends the game.
    Returns the game and a dict from path (e.g. "uxl") to leaf id.
    """
    game = GameTree(name="two_stage")
    root = game.add_node(1, 0)
    payoffs = {"uxl": 2.0, "uxr": 0.0, "uy": -1.0, "vxl": 0.0, "vxr": 2.0, "vy": -1.0}
    leaves = {}
    for p1_action in ("u", "v"):
        first = game.add_node(2, 0)
        game.add_action(root, p1_action, first)

        second = game.add_node(2, 1)
        game.add_action(first, "x", second)
        for last in ("l", "r"):
            path = f"{p1_action}x{last}"
            leaves[path] = game.add_leaf(payoffs[path])
            game.add_action(second, last, leaves[path])

        path = f"{p1_action}y"
        leaves[path] = game.add_leaf(payoffs[path])
        game.add_action(first, "y", leaves[path])
    game.set_root(root)
    return game.finalize(), leaves


@pytest.fixture
def kuhn_game():
    return get_kuhn_game()


@pytest.fixture
def matching_game():
    return build_matching_tree()


@pytest.fixture
def two_stage_game():
    return build_two_stage_tree()


@pytest.fixture
def drp2_game():
    return build_die_roll_poker_tree(num_sides=2)


@pytest.fixture
def coin_game():
    """Nature flips a fair coin, player 1 guesses it without seeing it"""
    game = GameTree(name="coin")
    root = game.add_node(NATURE)
    for side in ("H", "T"):
        guess = game.add_node(1, 0)
        game.add_action(root, side, guess, probability=0.5)
        game.add_action(guess, "h", game.add_leaf(1.0 if side == "H" else -1.0))
        game.add_action(guess, "t", game.add_leaf(1.0 if side == "T" else -1.0))
    game.set_root(root)
    return game.finalize()
