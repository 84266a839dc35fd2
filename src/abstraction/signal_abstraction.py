"""
Signal abstraction: maps every private signal history to the canonical history of
its abstract information set.
"""

from typing import Dict, Iterator, List, Sequence, Tuple


History = Tuple[int, ...]


class SignalAbstraction:
    """
    Histories are tuples of 1-based signals, e.g. (1, 3) for rolling 1 followed by 3.
    The first history added to a bucket is its canonical representative.
    """

    def __init__(self, signal_names: Sequence[str]):
        self.signal_names = list(signal_names)
        self._canonical: Dict[History, History] = {}
        self._buckets: Dict[History, List[History]] = {}

    def _check(self, history: Sequence[int]) -> History:
        history = tuple(int(s) for s in history)
        for signal in history:
            if not 1 <= signal <= len(self.signal_names):
                raise ValueError(f"Signal {signal} of history {history} is outside [1, {len(self.signal_names)}]")
        return history

    def add_abstraction(self, canonical: Sequence[int], member: Sequence[int]):
        canonical = self._check(canonical)
        member = self._check(member)
        if self._canonical.get(canonical, canonical) != canonical:
            raise ValueError(f"History {canonical} is already mapped to {self._canonical[canonical]}")
        existing = self._canonical.get(member)
        if existing is not None and existing != canonical:
            raise ValueError(f"History {member} is already mapped to {existing}, cannot map it to {canonical}")
        if existing is None:
            self._canonical[member] = canonical
            self._buckets.setdefault(canonical, []).append(member)

    def get_canonical(self, history: Sequence[int]) -> History:
        history = tuple(history)
        try:
            return self._canonical[history]
        except KeyError:
            raise KeyError(f"History {history} is not part of the abstraction")

    def buckets(self) -> List[List[History]]:
        return [list(members) for members in self._buckets.values()]

    @property
    def num_buckets(self) -> int:
        return len(self._buckets)

    def history_name(self, history: Sequence[int]) -> str:
        return "-".join(self.signal_names[s - 1] for s in history)

    def __iter__(self) -> Iterator[Tuple[History, History]]:
        for canonical, members in self._buckets.items():
            for member in members:
                yield canonical, member

    def __len__(self) -> int:
        return len(self._canonical)

    def __contains__(self, history) -> bool:
        return tuple(history) in self._canonical

    def __repr__(self) -> str:
        return f"SignalAbstraction(histories={len(self)}, buckets={self.num_buckets})"
