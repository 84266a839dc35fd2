"""
Die-roll poker generator.

Each player antes 1 and rolls a private die, a betting round follows, then each
player rolls a second private die, followed by a second betting round and a showdown
on the sum of each player's own rolls. Betting rounds are limit rounds without raises
(bet sizes 2 and 4): player 1 bets (B) or checks (Ch); facing a bet player 2 calls (ca)
or folds (f); facing a check player 2 bets (b) or checks (ch); after check-bet player 1
calls (Ca) or folds (F).
"""

import numpy as np
from typing import Dict, Optional, Sequence, Tuple

from .game import GameTree, NATURE


class _DieRollPokerBuilder:
    def __init__(
        self,
        num_sides: int,
        side_probabilities: np.ndarray,
        ante: float,
        bet_sizes: Sequence[float],
    ):
        self.num_sides = num_sides
        self.side_probabilities = side_probabilities
        self.ante = ante
        self.bet_sizes = list(bet_sizes)
        self.game = GameTree(name=f"drp{num_sides}")
        self._information_sets: Dict[int, Dict[Tuple, int]] = {1: {}, 2: {}}

    def information_set(self, player: int, rolls: Tuple[int, ...], history: str) -> int:
        table = self._information_sets[player]
        key = (rolls, history)
        if key not in table:
            table[key] = len(table)
        return table[key]

    def build(self) -> GameTree:
        root = self._add_roll_node(0, (), (), self.ante, "")
        self.game.set_root(root)
        return self.game.finalize()

    def _add_roll_node(self, round_index, rolls1, rolls2, contribution, history) -> int:
        node = self.game.add_node(NATURE)
        for r1 in range(1, self.num_sides + 1):
            for r2 in range(1, self.num_sides + 1):
                child = self._add_betting_round(
                    round_index, rolls1 + (r1,), rolls2 + (r2,), contribution, history
                )
                prob = self.side_probabilities[r1 - 1] * self.side_probabilities[r2 - 1]
                self.game.add_action(node, f"{r1}-{r2}", child, probability=prob)
        return node

    def _continue(self, round_index, rolls1, rolls2, contribution, history) -> int:
        if round_index + 1 < len(self.bet_sizes):
            return self._add_roll_node(round_index + 1, rolls1, rolls2, contribution, history + "/")
        return self.game.add_leaf(self._showdown(rolls1, rolls2, contribution))

    @staticmethod
    def _showdown(rolls1, rolls2, contribution) -> float:
        total1, total2 = sum(rolls1), sum(rolls2)
        if total1 == total2:
            return 0.0
        return contribution if total1 > total2 else -contribution

    def _add_betting_round(self, round_index, rolls1, rolls2, contribution, history) -> int:
        bet = self.bet_sizes[round_index]
        game = self.game

        p1_node = game.add_node(1, self.information_set(1, rolls1, history))

        # P1 bets
        h = history + "B"
        p2_facing_bet = game.add_node(2, self.information_set(2, rolls2, h))
        game.add_action(p1_node, "B", p2_facing_bet)
        game.add_action(p2_facing_bet, "ca",
                        self._continue(round_index, rolls1, rolls2, contribution + bet, h + "ca"))
        game.add_action(p2_facing_bet, "f", game.add_leaf(contribution))

        # P1 checks
        h = history + "Ch"
        p2_facing_check = game.add_node(2, self.information_set(2, rolls2, h))
        game.add_action(p1_node, "Ch", p2_facing_check)

        hb = h + "b"
        p1_facing_bet = game.add_node(1, self.information_set(1, rolls1, hb))
        game.add_action(p2_facing_check, "b", p1_facing_bet)
        game.add_action(p2_facing_check, "ch",
                        self._continue(round_index, rolls1, rolls2, contribution, h + "ch"))

        game.add_action(p1_facing_bet, "Ca",
                        self._continue(round_index, rolls1, rolls2, contribution + bet, hb + "Ca"))
        game.add_action(p1_facing_bet, "F", game.add_leaf(-contribution))

        return p1_node


def build_die_roll_poker_tree(
    num_sides: int = 3,
    side_probabilities: Optional[Sequence[float]] = None,
    ante: float = 1.0,
    bet_sizes: Sequence[float] = (2.0, 4.0),
) -> GameTree:
    """
    Build a die-roll poker tree. The number of betting rounds (and private rolls per
    player) equals len(bet_sizes).
    """
    if num_sides <= 0:
        raise ValueError(f"num_sides must be positive, got {num_sides}")
    if len(bet_sizes) == 0:
        raise ValueError("bet_sizes must contain at least one betting round")

    if side_probabilities is None:
        probs = np.ones(num_sides) / num_sides
    else:
        probs = np.asarray(side_probabilities, dtype=float)
        if probs.shape != (num_sides,) or np.any(probs < 0) or not np.isclose(probs.sum(), 1.0):
            raise ValueError(f"side_probabilities must be {num_sides} non-negative values summing to 1")

    return _DieRollPokerBuilder(num_sides, probs, float(ante), bet_sizes).build()
