import numpy as np
import pandas as pd
import pytest

from src.core import KUHN_VALUE
from src.engine import SweepConfig, AbstractionSweep, LookAheadSweep, build_game


def test_abstraction_sweep(tmp_path):
    config = SweepConfig(name="drp2", game="drp", num_sides=2, bucket_counts=[1, 2, 3])
    sweep = AbstractionSweep(config)
    df = sweep.run(verbose=False)

    assert isinstance(df, pd.DataFrame)
    assert list(df["num_buckets"]) == [1, 2, 3]
    values = list(df["value"])
    # more buckets never cost more, 2 * sides - 1 buckets are lossless
    assert values[0] >= values[1] - 1e-6
    assert values[1] >= values[2] - 1e-6
    assert values[2] == pytest.approx(0.0, abs=1e-6)
    assert (df["buckets_used"] <= df["num_buckets"]).all()

    path = tmp_path / "abstraction.csv"
    sweep.save_results(str(path))
    saved = pd.read_csv(path)
    assert list(saved.columns) == list(df.columns)
    assert len(saved) == 3


def test_abstraction_sweep_defaults_to_lossless_size():
    df = AbstractionSweep(SweepConfig(name="drp2", num_sides=2)).run(verbose=False)
    assert list(df["num_buckets"]) == [3]


def test_abstraction_sweep_requires_die_roll_poker():
    with pytest.raises(ValueError):
        AbstractionSweep(SweepConfig(name="kuhn", game="kuhn")).run(verbose=False)


def test_look_ahead_sweep_on_kuhn():
    config = SweepConfig(name="kuhn", game="kuhn", look_ahead_depths=[1, 2], epsilon=0.0)
    df = LookAheadSweep(config).run(verbose=False)

    assert list(df["look_ahead"]) == [1, 2]
    assert (df["status"] == "optimal").all()
    assert (df["value"] >= KUHN_VALUE - 1e-6).all()
    assert (df["num_constraints"] > 0).all()


def test_look_ahead_sweep_records_infeasible_depths():
    game = build_game(SweepConfig(name="kuhn", game="kuhn"))
    # holding J, player 2 barely prefers calling a bet and betting after a check; one of
    # the two information sets is always reached, so no preference can beat epsilon
    evaluation = np.zeros(game.num_nodes)
    for information_set in (0, 3):
        for member in game.information_set_members(2, information_set):
            better, worse = game.node_by_id(member).actions
            evaluation[better.child_id] = 1.005
            evaluation[worse.child_id] = 1.0

    config = SweepConfig(name="kuhn", game="kuhn", look_ahead_depths=[1], epsilon=0.01,
                         evaluation_table=evaluation)
    df = LookAheadSweep(config).run(verbose=False)
    assert df["status"].iloc[0] == "infeasible"
    assert np.isnan(df["value"].iloc[0])


def test_unknown_game():
    with pytest.raises(ValueError):
        build_game(SweepConfig(name="x", game="chess"))
