"""
Experiment sweeps: abstraction value over a range of bucket counts, and the
limited look-ahead opponent model over a range of look-ahead depths
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Optional
from dataclasses import dataclass, field
import time
from tqdm import tqdm

from ..core import GameTree, get_kuhn_game, build_die_roll_poker_tree, leaf_payoff_table
from ..optimization import InfeasibleModelError
from ..abstraction import DieRollPokerAbstractor
from ..agents import LimitedLookAheadOpponentSolver


@dataclass
class SweepConfig:
    name: str
    game: str = 'drp'  # 'drp' or 'kuhn'
    num_sides: int = 3
    side_probabilities: Optional[List[float]] = None

    # Abstraction sweep: lossless size 2 * num_sides - 1 if empty
    bucket_counts: List[int] = field(default_factory=list)

    # Look-ahead sweep
    look_ahead_depths: List[int] = field(default_factory=lambda: [1, 2])
    player_to_solve_for: int = 1
    epsilon: float = 0.001
    # Evaluation of every node for the look-ahead player; its leaf payoffs if None
    evaluation_table: Optional[np.ndarray] = None

    solver_kwargs: Dict = field(default_factory=dict)


def build_game(config: SweepConfig) -> GameTree:
    if config.game == 'kuhn':
        return get_kuhn_game()
    if config.game == 'drp':
        return build_die_roll_poker_tree(config.num_sides, config.side_probabilities)
    raise ValueError(f"Unknown game '{config.game}', expected 'drp' or 'kuhn'")


class _Sweep:
    """
    Shared result handling: rows collected by run() are kept in self.results
    """

    x_column = ''

    def __init__(self, config: SweepConfig):
        self.config = config
        self.results: List[Dict] = []

    def _results_to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.results)

    def save_results(self, filepath: str):
        df = self._results_to_dataframe()
        df.to_csv(filepath, index=False)

    def plot_results(self, metric: str = 'value', filepath: Optional[str] = None):
        import plotly.graph_objects as go

        df = self._results_to_dataframe()

        fig = go.Figure()
        fig.add_trace(go.Scatter(
            x=df[self.x_column],
            y=df[metric],
            mode='lines+markers',
            name=self.config.name
        ))

        fig.update_layout(
            title=f'{self.config.name} - {metric.replace("_", " ").title()}',
            xaxis_title=self.x_column.replace('_', ' ').title(),
            yaxis_title=metric.replace('_', ' ').title(),
        )

        if filepath:
            fig.write_html(filepath)

        return fig


class AbstractionSweep(_Sweep):
    """
    Computes the abstraction value of die-roll poker for each bucket count
    """

    x_column = 'num_buckets'

    def run(self, verbose: bool = True) -> pd.DataFrame:
        config = self.config
        if config.game != 'drp':
            raise ValueError("Abstraction sweeps are defined for die-roll poker only")

        bucket_counts = config.bucket_counts or [2 * config.num_sides - 1]
        game = build_game(config)

        if verbose:
            print(f"Running abstraction sweep: {config.name}")
            print(f"  Sides: {config.num_sides}, largest payoff: {game.largest_payoff()}")
            print(f"  Bucket counts: {bucket_counts}")

        self.results = []
        for num_buckets in tqdm(bucket_counts, desc="  Buckets", disable=not verbose):
            abstractor = DieRollPokerAbstractor(
                game=game,
                num_sides=config.num_sides,
                num_buckets=num_buckets,
                side_probabilities=config.side_probabilities,
                solver_kwargs=config.solver_kwargs,
            )
            start_time = time.time()
            result = abstractor.solve()
            abstraction = abstractor.get_abstraction()

            self.results.append({
                'num_sides': config.num_sides,
                'num_buckets': num_buckets,
                'buckets_used': abstraction.num_buckets,
                'value': abstractor.get_objective_value(),
                'status': result.status.value,
                'solve_time': result.runtime,
                'total_time': time.time() - start_time,
            })

        if verbose:
            for row in self.results:
                print(f"  {row['num_buckets']} buckets: value {row['value']:.4f} ({row['solve_time']:.2f}s)")

        return self._results_to_dataframe()


class LookAheadSweep(_Sweep):
    """
    Solves the limited look-ahead opponent model for each look-ahead depth.
    Infeasible depths are recorded with a NaN value.
    """

    x_column = 'look_ahead'

    def run(self, verbose: bool = True) -> pd.DataFrame:
        config = self.config
        game = build_game(config)
        opponent = 3 - config.player_to_solve_for
        if config.evaluation_table is None:
            evaluation_table = leaf_payoff_table(game, player=opponent)
        else:
            evaluation_table = config.evaluation_table

        if verbose:
            print(f"Running look-ahead sweep: {config.name}")
            print(f"  Game: {game.name} ({game.num_nodes} nodes)")
            print(f"  Depths: {config.look_ahead_depths}")

        self.results = []
        for look_ahead in tqdm(config.look_ahead_depths, desc="  Depths", disable=not verbose):
            solver = LimitedLookAheadOpponentSolver(
                game,
                config.player_to_solve_for,
                evaluation_table,
                look_ahead,
                epsilon=config.epsilon,
                solver_kwargs=config.solver_kwargs,
            )
            row = {
                'look_ahead': look_ahead,
                'num_vars': solver.model.num_vars,
                'num_constraints': solver.model.num_constraints,
            }
            try:
                result = solver.solve()
            except InfeasibleModelError as e:
                row.update({
                    'value': np.nan,
                    'status': e.result.status.value if e.result is not None else 'infeasible',
                    'num_deactivated': np.nan,
                    'solve_time': e.result.runtime if e.result is not None else np.nan,
                })
            else:
                row.update({
                    'value': solver.get_value_of_game(),
                    'status': result.status.value,
                    'num_deactivated': len(solver.get_deactivated_sequences()),
                    'solve_time': result.runtime,
                })
            self.results.append(row)

        if verbose:
            for row in self.results:
                print(f"  look-ahead {row['look_ahead']}: value {row['value']:.4f} [{row['status']}]")

        return self._results_to_dataframe()
