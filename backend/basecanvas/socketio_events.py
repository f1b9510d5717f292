from flask_socketio import emit
from flask import current_app
from typing import Any


class Broadcaster:
    """Fan-out of canvas events to every connected viewer.

    Delivery is best-effort: a failed emit is logged and dropped, it never
    reaches the request that caused it.
    """

    def __init__(self, socketio, namespace: str = '/ws', logger=None) -> None:
        self.socketio = socketio
        self.namespace = namespace
        self.logger = logger

    def _emit(self, event: str, payload: Any = None) -> None:
        try:
            if payload is None:
                self.socketio.emit(event, namespace=self.namespace)
            else:
                self.socketio.emit(event, payload, namespace=self.namespace)
        except Exception as exc:
            if self.logger is not None:
                self.logger.warning(f"[broadcast-failed] event={event} error={exc}")

    def tile_painted(self, payload: dict) -> None:
        self._emit('tile-painted', payload)

    def leaderboard(self, entries: list) -> None:
        self._emit('leaderboard-update', entries)

    def endgame(self) -> None:
        self._emit('endgame-triggered')

    def airdrop_spawned(self, payload: dict) -> None:
        self._emit('spawn-airdrop', payload)

    def airdrop_claimed(self, payload: dict) -> None:
        self._emit('airdrop-claimed', payload)

    def airdrop_expired(self, payload: dict) -> None:
        self._emit('airdrop-expired', payload)


def handle_connect(auth=None):
    service = current_app.extensions['canvas']
    for event, payload in service.initial_events():
        emit(event, payload)
    current_app.logger.info('[connect] viewer synced')


def handle_disconnect(reason=None):
    current_app.logger.info('[disconnect] viewer left')


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(socketio, namespace: str = '/ws') -> None:
    """Register Socket.IO event handlers on the push namespace."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('ping', handle_ping, namespace=namespace)
