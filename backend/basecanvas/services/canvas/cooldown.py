from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class CooldownDecision:
    allowed: bool
    remaining_ms: int = 0


class CooldownManager:
    """Per-actor rate limit between accepted paints.

    ``check`` is advisory and never writes; only ``commit`` advances an
    actor's timestamp, and it is called after a paint is fully accepted.
    """

    def __init__(self, window_ms: int) -> None:
        self.window_ms = int(window_ms)
        self._last_accepted: Dict[str, int] = {}

    def check(self, actor: str, now: int) -> CooldownDecision:
        last = self._last_accepted.get(actor, 0)
        elapsed = now - last
        if last and elapsed < self.window_ms:
            return CooldownDecision(False, self.window_ms - elapsed)
        return CooldownDecision(True)

    def commit(self, actor: str, now: int) -> None:
        self._last_accepted[actor] = int(now)

    def reset(self, actor: str) -> None:
        self._last_accepted.pop(actor, None)

    def last_accepted(self, actor: str) -> int:
        return self._last_accepted.get(actor, 0)
