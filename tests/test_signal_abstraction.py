import pytest

from src.abstraction import SignalAbstraction


@pytest.fixture
def abstraction():
    abstraction = SignalAbstraction(["1", "2", "3"])
    for member in [(1, 2), (2, 1)]:
        abstraction.add_abstraction((1, 2), member)
    abstraction.add_abstraction((1, 1), (1, 1))
    return abstraction


def test_canonical_lookup(abstraction):
    assert abstraction.get_canonical((2, 1)) == (1, 2)
    assert abstraction.get_canonical((1, 2)) == (1, 2)
    assert abstraction.get_canonical([1, 1]) == (1, 1)


def test_iteration_includes_canonical_itself(abstraction):
    assert list(abstraction) == [((1, 2), (1, 2)), ((1, 2), (2, 1)), ((1, 1), (1, 1))]
    assert len(abstraction) == 3
    assert abstraction.num_buckets == 2
    assert abstraction.buckets() == [[(1, 2), (2, 1)], [(1, 1)]]


def test_contains(abstraction):
    assert (2, 1) in abstraction
    assert (3, 3) not in abstraction


def test_unknown_history(abstraction):
    with pytest.raises(KeyError):
        abstraction.get_canonical((3, 3))


def test_conflicting_mapping(abstraction):
    with pytest.raises(ValueError):
        abstraction.add_abstraction((1, 1), (2, 1))
    # a member cannot become the canonical history of another bucket
    with pytest.raises(ValueError):
        abstraction.add_abstraction((2, 1), (3, 3))


def test_repeated_mapping_is_idempotent(abstraction):
    abstraction.add_abstraction((1, 2), (2, 1))
    assert len(abstraction) == 3


def test_signal_out_of_range(abstraction):
    with pytest.raises(ValueError):
        abstraction.add_abstraction((4, 1), (4, 1))


def test_history_name(abstraction):
    assert abstraction.history_name((1, 3)) == "1-3"
