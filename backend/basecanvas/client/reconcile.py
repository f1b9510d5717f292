"""Client-side merge of optimistic paints with the server's event stream.

The rule is small: a cell the user painted locally stays painted in the
view until the server confirms it, either through a ``tile-painted`` delta
for that exact index or a full grid that already shows it painted. The
view is the authoritative grid overlaid with the optimistic set, and
confirmation is a set difference on that set.
"""
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Iterable, List, Optional, Set


@dataclass
class PaintIntent:
    payment_ref: str
    cell_index: int
    actor: str
    annotation: Optional[str] = None
    captcha_token: Optional[str] = None
    attempts: int = 0
    # monotonic time before which a retry is pointless
    not_before: float = 0.0

    def to_payload(self) -> dict:
        payload = {
            'paymentRef': self.payment_ref,
            'cellIndex': self.cell_index,
            'actor': self.actor,
        }
        if self.annotation is not None:
            payload['annotation'] = self.annotation
        if self.captcha_token is not None:
            payload['captchaToken'] = self.captcha_token
        return payload


# Outcomes a sender reports for one retried intent
SENT = 'sent'
RETRY = 'retry'
DROPPED = 'dropped'


class ReconciliationEngine:
    def __init__(self, grid_size: int) -> None:
        self.grid_size = grid_size
        self._lock = threading.Lock()
        self._server = bytearray(grid_size)
        self._owners: Dict[int, str] = {}
        self._annotations: Dict[int, str] = {}
        self.optimistic: Set[int] = set()
        self._inbound: Deque[dict] = deque()
        self._retry: Deque[PaintIntent] = deque()

    # -- optimistic edits --

    def mark_optimistic(self, index: int) -> None:
        if not 0 <= index < self.grid_size:
            raise IndexError(index)
        with self._lock:
            self.optimistic.add(index)

    def rollback(self, index: int) -> None:
        with self._lock:
            self.optimistic.discard(index)

    # -- inbound stream --

    def enqueue_delta(self, event: dict) -> None:
        with self._lock:
            self._inbound.append(event)

    def pending_deltas(self) -> int:
        return len(self._inbound)

    def flush(self) -> List[int]:
        """Apply all queued deltas at once. Returns the indices applied."""
        with self._lock:
            batch = list(self._inbound)
            self._inbound.clear()
            applied = []
            for event in batch:
                index = event.get('index')
                if not isinstance(index, int) or not 0 <= index < self.grid_size:
                    continue
                self._server[index] = 1
                if event.get('owner') is not None:
                    self._owners[index] = event['owner']
                if event.get('annotation') is not None:
                    self._annotations[index] = event['annotation']
                else:
                    self._annotations.pop(index, None)
                applied.append(index)
            self.optimistic -= set(applied)
        return applied

    def resync(self, grid: Iterable[int]) -> None:
        """Replace the authoritative grid, keeping unconfirmed local paints."""
        fresh = bytearray(self.grid_size)
        for i, value in enumerate(grid):
            if i >= self.grid_size:
                break
            fresh[i] = 1 if value else 0
        with self._lock:
            self._server = fresh
            confirmed = {i for i in self.optimistic if fresh[i]}
            self.optimistic -= confirmed

    def set_annotations(self, annotations: dict) -> None:
        with self._lock:
            self._annotations = {int(k): v for k, v in (annotations or {}).items()}

    # -- reading the view --

    def is_painted(self, index: int) -> bool:
        with self._lock:
            return bool(self._server[index]) or index in self.optimistic

    def view(self) -> List[int]:
        with self._lock:
            cells = list(self._server)
            for index in self.optimistic:
                cells[index] = 1
        return cells

    def painted_count(self) -> int:
        return sum(self.view())

    def owner(self, index: int) -> Optional[str]:
        return self._owners.get(index)

    def annotation(self, index: int) -> Optional[str]:
        return self._annotations.get(index)

    # -- background confirmation retries --

    def queue_retry(self, intent: PaintIntent) -> None:
        with self._lock:
            self._retry.append(intent)

    def pending_retries(self) -> int:
        return len(self._retry)

    def drain_retries(self, send: Callable[[PaintIntent], str], now: Optional[float] = None) -> int:
        """Resend queued intents; those that still fail go back on the queue.

        ``send`` returns SENT, RETRY or DROPPED. A DROPPED intent was
        definitively refused, so its optimistic paint is rolled back. Intents
        whose ``not_before`` is still ahead of ``now`` wait for a later drain.
        Returns the number of intents still queued.
        """
        with self._lock:
            batch = list(self._retry)
            self._retry.clear()
        keep = []
        for intent in batch:
            if now is not None and intent.not_before > now:
                keep.append(intent)
                continue
            intent.attempts += 1
            outcome = send(intent)
            if outcome == RETRY:
                keep.append(intent)
            elif outcome == DROPPED:
                self.rollback(intent.cell_index)
        with self._lock:
            # intents queued while we were sending stay behind the kept ones
            self._retry.extendleft(reversed(keep))
            return len(self._retry)
