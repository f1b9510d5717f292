import json
import threading
import time
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from basecanvas import db
from basecanvas.models import CanvasSnapshot, SNAPSHOT_KEY


def write_snapshot(document: dict) -> None:
    row = CanvasSnapshot.query.filter_by(key=SNAPSHOT_KEY).first()
    if row is None:
        row = CanvasSnapshot(key=SNAPSHOT_KEY)
    row.payload = json.dumps(document)
    row.saved_at = time.time()
    db.session.add(row)
    db.session.commit()


def read_snapshot() -> Optional[dict]:
    row = CanvasSnapshot.query.filter_by(key=SNAPSHOT_KEY).first()
    if row is None or not row.payload:
        return None
    document = json.loads(row.payload)
    if not isinstance(document, dict):
        raise ValueError('snapshot payload is not an object')
    return document


def load_snapshot(app, state) -> bool:
    """Restore ``state`` from the stored snapshot. Never fatal.

    Returns True when a snapshot was applied; a missing or unreadable
    snapshot leaves the state as a cold, empty canvas.
    """
    with app.app_context():
        try:
            document = read_snapshot()
        except (SQLAlchemyError, ValueError, TypeError) as exc:
            db.session.rollback()
            app.logger.warning(f"[load] snapshot unreadable, starting empty: {exc}")
            return False
    if document is None:
        app.logger.info('[load] no snapshot, cold start')
        return False
    try:
        state.load_document(document, app.config.get('ENDGAME_THRESHOLD', 0.99))
    except (ValueError, TypeError, AttributeError) as exc:
        state.reset()
        app.logger.warning(f"[load] snapshot corrupt, starting empty: {exc}")
        return False
    app.logger.info(f"[load] restored snapshot painted={state.grid.count_painted()}")
    return True


class SnapshotSaver:
    """Debounced snapshot writer.

    The first ``schedule_save`` arms a one-shot task; further calls before it
    fires coalesce into it. The task writes whatever the state holds when it
    fires, not when it was armed.
    """

    def __init__(self, app, state, debounce: float, spawn: Callable, sleep: Callable[[float], None]) -> None:
        self.app = app
        self.state = state
        self.debounce = float(debounce)
        self._spawn = spawn
        self._sleep = sleep
        self._lock = threading.Lock()
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    def schedule_save(self) -> None:
        with self._lock:
            if self._pending:
                return
            self._pending = True
        self._spawn(self._fire)

    def _fire(self) -> None:
        if self.debounce > 0:
            self._sleep(self.debounce)
        with self._lock:
            self._pending = False
        self.save_now()

    def save_now(self) -> bool:
        with self.state.lock:
            document = self.state.to_document()
        with self.app.app_context():
            try:
                write_snapshot(document)
            except Exception as exc:
                db.session.rollback()
                self.app.logger.error(f"[save-failed] {exc}")
                return False
        self.app.logger.info(f"[save] painted={sum(document['grid'])}")
        return True
