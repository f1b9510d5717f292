import logging
import threading
import time
from typing import Callable, Optional

import requests
import socketio

from .reconcile import DROPPED, RETRY, SENT, PaintIntent, ReconciliationEngine

log = logging.getLogger(__name__)

ACCEPTED = 'accepted'
SYNCING = 'syncing'
REJECTED = 'rejected'


class CanvasClient:
    """A viewer/painter connected to a canvas server.

    Push events feed the reconciliation engine; two background loops flush
    inbound deltas on a short cadence and retry failed confirmations on a
    slower one. Neither loop blocks the caller.
    """

    def __init__(self, base_url: str, actor: str, grid_size: int = 40000,
                 namespace: str = '/ws', flush_interval: float = 0.1,
                 retry_interval: float = 5.0, request_timeout: float = 20.0,
                 http: Optional[requests.Session] = None, sio=None,
                 on_status: Optional[Callable[[str], None]] = None) -> None:
        self.base_url = base_url.rstrip('/')
        self.actor = actor
        self.namespace = namespace
        self.flush_interval = flush_interval
        self.retry_interval = retry_interval
        self.request_timeout = request_timeout
        self.engine = ReconciliationEngine(grid_size)
        self.http = http or requests.Session()
        self.sio = sio or socketio.Client(reconnection=True)
        self.on_status = on_status or (lambda message: log.info(message))
        self.leaderboard: list = []
        self.airdrop: Optional[dict] = None
        self.endgame = False
        self._clock_skew_ms = 0
        self._cooldown_ms = 0
        self._synced_at_ms: Optional[int] = None
        self._stop_event = threading.Event()
        self._threads: list = []
        self._bind_events()

    def _bind_events(self) -> None:
        ns = self.namespace
        self.sio.on('init-grid', self._on_init_grid, namespace=ns)
        self.sio.on('init-annotations', self._on_init_annotations, namespace=ns)
        self.sio.on('tile-painted', self.engine.enqueue_delta, namespace=ns)
        self.sio.on('leaderboard-update', self._on_leaderboard, namespace=ns)
        self.sio.on('spawn-airdrop', self._on_airdrop_spawned, namespace=ns)
        self.sio.on('airdrop-claimed', self._on_airdrop_gone, namespace=ns)
        self.sio.on('airdrop-expired', self._on_airdrop_gone, namespace=ns)
        self.sio.on('endgame-triggered', self._on_endgame, namespace=ns)

    # -- push channel --

    def _on_init_grid(self, grid) -> None:
        self.engine.resync(grid)

    def _on_init_annotations(self, annotations) -> None:
        self.engine.set_annotations(annotations)

    def _on_leaderboard(self, entries) -> None:
        self.leaderboard = list(entries or [])

    def _on_airdrop_spawned(self, payload) -> None:
        self.airdrop = payload

    def _on_airdrop_gone(self, payload) -> None:
        if self.airdrop and payload and self.airdrop.get('id') == payload.get('id'):
            self.airdrop = None

    def _on_endgame(self, *args) -> None:
        self.endgame = True

    # -- lifecycle --

    def connect(self) -> None:
        self.sio.connect(self.base_url, namespaces=[self.namespace])
        self.start()

    def start(self) -> None:
        if self._threads:
            return
        self._stop_event.clear()
        for interval, step in ((self.flush_interval, self.engine.flush),
                               (self.retry_interval, self.retry_pending)):
            thread = threading.Thread(target=self._loop, args=(interval, step), daemon=True)
            thread.start()
            self._threads.append(thread)

    def _loop(self, interval: float, step: Callable) -> None:
        while not self._stop_event.wait(interval):
            try:
                step()
            except Exception:
                log.exception('[client-loop] step failed')

    def close(self) -> None:
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=2)
        self._threads = []
        if self.sio.connected:
            self.sio.disconnect()

    # -- paint flow --

    def submit(self, intent: PaintIntent) -> str:
        """Confirm a paint whose payment was just submitted to the chain.

        The cell shows as painted immediately. Transient failures leave it
        painted and queue a background retry; definitive ones roll it back.
        """
        self.engine.mark_optimistic(intent.cell_index)
        outcome = self._send(intent)
        if outcome == SENT:
            self.on_status('Painted successfully!')
            return ACCEPTED
        if outcome == RETRY:
            self.engine.queue_retry(intent)
            self.on_status('Paint provisionally accepted, syncing in the background')
            return SYNCING
        self.engine.rollback(intent.cell_index)
        return REJECTED

    def retry_pending(self) -> int:
        return self.engine.drain_retries(lambda intent: self._send(intent, retrying=True),
                                         now=time.monotonic())

    def _send(self, intent: PaintIntent, retrying: bool = False) -> str:
        try:
            resp = self.http.post(f'{self.base_url}/api/paint', json=intent.to_payload(),
                                  timeout=self.request_timeout)
        except requests.RequestException as exc:
            log.warning(f"[paint-retry] cell={intent.cell_index} network error: {exc}")
            return RETRY
        if resp.status_code == 200:
            return SENT
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.status_code >= 500 or body.get('retryable'):
            return RETRY
        if retrying and body.get('error') == 'cooldown_active':
            # already paid for: wait out the window
            wait_ms = int(body.get('retry_after_ms') or 0)
            intent.not_before = time.monotonic() + wait_ms / 1000
            log.info(f"[paint-retry] cell={intent.cell_index} cooldown, next try in {wait_ms}ms")
            return RETRY
        self.on_status(f"Paint rejected: {body.get('message') or resp.status_code}")
        return DROPPED

    # -- cooldown and airdrops --

    def sync_clock(self) -> dict:
        resp = self.http.get(f'{self.base_url}/api/user/{self.actor}', timeout=self.request_timeout)
        resp.raise_for_status()
        data = resp.json()
        self._clock_skew_ms = int(data['serverTime']) - int(time.time() * 1000)
        self._cooldown_ms = int(data.get('cooldownMs', 0))
        self._synced_at_ms = int(data['serverTime'])
        return data

    def cooldown_remaining(self) -> int:
        """Milliseconds until the actor may paint again, on the server's clock."""
        if self._synced_at_ms is None:
            self.sync_clock()
        server_now = int(time.time() * 1000) + self._clock_skew_ms
        return max(0, self._cooldown_ms - (server_now - self._synced_at_ms))

    def claim_airdrop(self) -> bool:
        if not self.airdrop:
            return False
        resp = self.http.post(f'{self.base_url}/api/airdrop/claim',
                              json={'actor': self.actor, 'airdropId': self.airdrop['id']},
                              timeout=self.request_timeout)
        ok = resp.status_code == 200 and bool(resp.json().get('success'))
        if ok:
            self.airdrop = None
            self._cooldown_ms = 0
        return ok
