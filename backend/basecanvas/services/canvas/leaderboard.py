from typing import Dict, List, Optional
import itertools


class Leaderboard:
    """Paint counts per actor.

    Ties rank the actor that reached the tied count first ahead of the
    other; ``_reached`` holds the sequence number of each actor's latest
    increment.
    """

    def __init__(self) -> None:
        self._counts: Dict[str, int] = {}
        self._reached: Dict[str, int] = {}
        self._seq = itertools.count()

    def record_mutation(self, actor: str) -> int:
        self._counts[actor] = self._counts.get(actor, 0) + 1
        self._reached[actor] = next(self._seq)
        return self._counts[actor]

    def score(self, actor: str) -> int:
        return self._counts.get(actor, 0)

    def _ranked(self) -> List[str]:
        return sorted(self._counts, key=lambda a: (-self._counts[a], self._reached[a]))

    def top_k(self, k: Optional[int] = None) -> List[dict]:
        ranked = self._ranked()
        if k is not None:
            ranked = ranked[:k]
        return [{'address': a, 'score': self._counts[a]} for a in ranked]

    def counts(self) -> Dict[str, int]:
        """Counts in tie-break order, so a reload keeps the same ranking."""
        ordered = sorted(self._counts, key=lambda a: self._reached[a])
        return {a: self._counts[a] for a in ordered}

    def load(self, mapping: Optional[dict]) -> None:
        self._counts = {}
        self._reached = {}
        self._seq = itertools.count()
        for actor, count in (mapping or {}).items():
            try:
                count = int(count)
            except (TypeError, ValueError):
                continue
            if count > 0:
                self._counts[str(actor)] = count
                self._reached[str(actor)] = next(self._seq)
