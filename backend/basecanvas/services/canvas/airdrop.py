import logging
import math
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AirdropInstance:
    id: str
    spawned_at: int
    expires_at: int
    position: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'spawnedAt': self.spawned_at,
            'expiresAt': self.expires_at,
            'position': dict(self.position),
        }


def random_position(rng: random.Random) -> dict:
    """Uniform point on the sphere as spherical angles."""
    return {
        'theta': rng.random() * 2 * math.pi,
        'phi': math.acos(2 * rng.random() - 1),
    }


class AirdropScheduler:
    """Spawns one claimable airdrop at a time and races claim against expiry.

    State machine: idle -> active -> (claimed | expired) -> idle. Every slot
    transition compares the instance id under ``state.lock`` before clearing,
    so whichever of claim/expiry runs second for an id does nothing.
    """

    def __init__(self, state, broadcaster, interval: float, ttl: float,
                 spawn: Callable, sleep: Callable[[float], None],
                 rng: Optional[random.Random] = None,
                 clock: Optional[Callable[[], int]] = None) -> None:
        self.state = state
        self.broadcaster = broadcaster
        self.interval = float(interval)
        self.ttl = float(ttl)
        self._spawn = spawn
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._running = False
        self._last_stamp = 0

    def current(self) -> Optional[AirdropInstance]:
        with self.state.lock:
            return self.state.airdrop

    def try_spawn(self) -> Optional[AirdropInstance]:
        with self.state.lock:
            if self.state.airdrop is not None:
                return None
            now = self._clock()
            # ids stay unique even when two spawns share a millisecond
            self._last_stamp = max(now, self._last_stamp + 1)
            instance = AirdropInstance(
                id=f'airdrop-{self._last_stamp}',
                spawned_at=now,
                expires_at=now + int(self.ttl * 1000),
                position=random_position(self._rng),
            )
            self.state.airdrop = instance
        log.info(f"[airdrop-spawn] id={instance.id} ttl={self.ttl}s")
        self.broadcaster.airdrop_spawned(instance.to_dict())
        self._spawn(self._expire_after, instance.id, self.ttl)
        return instance

    def _expire_after(self, airdrop_id: str, delay: float) -> None:
        self._sleep(delay)
        self.expire(airdrop_id)

    def expire(self, airdrop_id: str) -> bool:
        with self.state.lock:
            current = self.state.airdrop
            if current is None or current.id != airdrop_id:
                return False
            self.state.airdrop = None
        log.info(f"[airdrop-expire] id={airdrop_id}")
        self.broadcaster.airdrop_expired({'id': airdrop_id})
        return True

    def claim(self, actor: str, airdrop_id: str) -> bool:
        with self.state.lock:
            current = self.state.airdrop
            if current is None or current.id != airdrop_id:
                return False
            self.state.airdrop = None
            self.state.cooldowns.reset(actor)
        log.info(f"[airdrop-claim] id={airdrop_id} actor={actor}")
        self.broadcaster.airdrop_claimed({'id': airdrop_id, 'actor': actor})
        return True

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._spawn(self._loop)

    def stop(self) -> None:
        self._running = False

    def _loop(self) -> None:
        while self._running:
            self._sleep(self.interval)
            if not self._running:
                break
            try:
                self.try_spawn()
            except Exception:
                log.exception('[airdrop-loop] spawn failed')
