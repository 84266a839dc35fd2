"""
Kuhn Poker as an extensive-form game tree.

Three cards (J, Q, K), one dealt to each player, ante of 1. Player 1 bets (B) or
checks (Ch); facing a bet player 2 calls (ca) or folds (f), facing a check player 2
bets (b) or checks (ch); after check-bet player 1 calls (Ca) or folds (F).
Payoffs (to player 1):
  - bet-call showdown: winner +2, loser -2
  - bet-fold: bettor +1
  - check-check showdown: winner +1, loser -1
  - check-bet-call showdown: winner +2, loser -2
  - check-bet-fold (P1 folds): P1 -1
"""

from .game import GameTree, NATURE


CARDS = ["J", "Q", "K"]
RANK = {"J": 0, "Q": 1, "K": 2}

# Game value for player 1 at equilibrium
KUHN_VALUE = -1.0 / 18.0

KUHN_GAME = None


def _p1_information_set(card: str, facing_bet: bool) -> int:
    # 0..2: first decision per card, 3..5: check then facing a bet
    return RANK[card] + (3 if facing_bet else 0)


def _p2_information_set(card: str, facing_bet: bool) -> int:
    # 0..2: facing a bet per card, 3..5: facing a check
    return RANK[card] + (0 if facing_bet else 3)


def build_kuhn_tree() -> GameTree:
    """Build the full Kuhn Poker tree (one nature node with the 6 deals)"""
    game = GameTree(name="kuhn")
    root = game.add_node(NATURE)

    deals = [(c1, c2) for c1 in CARDS for c2 in CARDS if c1 != c2]
    prob = 1.0 / len(deals)

    for c1, c2 in deals:
        win = 1.0 if RANK[c1] > RANK[c2] else -1.0

        p1_node = game.add_node(1, _p1_information_set(c1, facing_bet=False))
        game.add_action(root, f"{c1}{c2}", p1_node, probability=prob)

        # P1 bets
        p2_facing_bet = game.add_node(2, _p2_information_set(c2, facing_bet=True))
        game.add_action(p1_node, "B", p2_facing_bet)
        game.add_action(p2_facing_bet, "ca", game.add_leaf(2.0 * win))
        game.add_action(p2_facing_bet, "f", game.add_leaf(1.0))

        # P1 checks
        p2_facing_check = game.add_node(2, _p2_information_set(c2, facing_bet=False))
        game.add_action(p1_node, "Ch", p2_facing_check)

        p1_facing_bet = game.add_node(1, _p1_information_set(c1, facing_bet=True))
        game.add_action(p2_facing_check, "b", p1_facing_bet)
        game.add_action(p2_facing_check, "ch", game.add_leaf(1.0 * win))

        game.add_action(p1_facing_bet, "Ca", game.add_leaf(2.0 * win))
        game.add_action(p1_facing_bet, "F", game.add_leaf(-1.0))

    game.set_root(root)
    return game.finalize()


def get_kuhn_game() -> GameTree:
    """Get or create the Kuhn Poker game singleton"""
    global KUHN_GAME
    if KUHN_GAME is None:
        KUHN_GAME = build_kuhn_tree()
    return KUHN_GAME
