import itertools
import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from .cooldown import CooldownManager
from .errors import CaptchaFailed, CooldownActive, InvalidInput, PaymentIndeterminate, PaymentRejected
from .grid import Cell, GridStore
from .leaderboard import Leaderboard
from .payments import INDETERMINATE, REJECTED

log = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1
PAYMENT_REF_LIMIT = 100_000
MAX_ANNOTATION_LEN = 20


class CanvasState:
    """All authoritative server state, guarded by one re-entrant lock."""

    def __init__(self, grid_size: int, cooldown_ms: int, payment_ref_limit: int = PAYMENT_REF_LIMIT) -> None:
        self.lock = threading.RLock()
        self.grid = GridStore(grid_size)
        self.cooldowns = CooldownManager(cooldown_ms)
        self.leaderboard = Leaderboard()
        self.airdrop = None
        # payment ref -> (cell index, actor) of the paint it paid for, oldest
        # first; only the newest payment_ref_limit refs are remembered
        self.payments: Dict[str, Tuple[int, str]] = {}
        self.payment_ref_limit = max(1, int(payment_ref_limit))
        self.endgame_fired = False

    def reset(self) -> None:
        with self.lock:
            self.grid = GridStore(self.grid.size)
            self.leaderboard = Leaderboard()
            self.payments = {}
            self.endgame_fired = False

    def record_payment(self, payment_ref: str, cell_index: int, actor: str) -> None:
        self.payments[payment_ref] = (cell_index, actor)
        self._trim_payments()

    def _trim_payments(self) -> None:
        excess = len(self.payments) - self.payment_ref_limit
        if excess > 0:
            for ref in list(itertools.islice(self.payments, excess)):
                del self.payments[ref]

    def to_document(self) -> dict:
        snap = self.grid.snapshot()
        return {
            'version': SNAPSHOT_VERSION,
            'grid': snap['grid'],
            'owners': {str(k): v for k, v in snap['owners'].items()},
            'annotations': {str(k): v for k, v in snap['annotations'].items()},
            'leaderboard': self.leaderboard.counts(),
            'payments': {ref: [idx, actor] for ref, (idx, actor) in self.payments.items()},
        }

    def load_document(self, document: dict, endgame_threshold: Optional[float] = None) -> None:
        with self.lock:
            self.grid.load(
                document.get('grid') or [],
                document.get('owners') or {},
                document.get('annotations') or {},
            )
            self.leaderboard.load(document.get('leaderboard') or {})
            payments = {}
            for ref, entry in (document.get('payments') or {}).items():
                if isinstance(entry, (list, tuple)) and len(entry) == 2:
                    payments[str(ref)] = (int(entry[0]), str(entry[1]))
            self.payments = payments
            self._trim_payments()
            if endgame_threshold is not None:
                self.endgame_fired = self.grid.painted_fraction() > endgame_threshold


def clean_annotation(raw) -> Optional[str]:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise InvalidInput('Annotation must be a string')
    text = raw.strip()
    if not text:
        return None
    if len(text) > MAX_ANNOTATION_LEN:
        raise InvalidInput(f'Annotation must be at most {MAX_ANNOTATION_LEN} characters')
    if '<' in text or '>' in text:
        raise InvalidInput('Annotation may not contain markup')
    return text


def _require_str(value, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f'{name} is required')
    return value.strip()


class CanvasService:
    """The gated paint pipeline over one injected ``CanvasState``.

    Gate order: input validation, payment replay lookup, cooldown, captcha,
    payment verification, then one locked commit of grid, leaderboard,
    cooldown and endgame flag. Saving and broadcasting happen after the
    commit and cannot undo it.
    """

    def __init__(self, state: CanvasState, gateway, broadcaster, saver=None, captcha=None,
                 airdrops=None, endgame_threshold: float = 0.99, leaderboard_size: int = 10,
                 clock: Optional[Callable[[], int]] = None) -> None:
        self.state = state
        self.gateway = gateway
        self.broadcaster = broadcaster
        self.saver = saver
        self.captcha = captcha
        self.airdrops = airdrops
        self.endgame_threshold = endgame_threshold
        self.leaderboard_size = leaderboard_size
        self._clock = clock or (lambda: int(time.time() * 1000))

    def now(self) -> int:
        return self._clock()

    def paint(self, payment_ref, cell_index, actor, annotation=None, captcha_token=None) -> Cell:
        payment_ref = _require_str(payment_ref, 'paymentRef')
        actor = _require_str(actor, 'actor')
        if not isinstance(cell_index, int) or isinstance(cell_index, bool):
            raise InvalidInput('cellIndex must be an integer')
        if not 0 <= cell_index < self.state.grid.size:
            raise InvalidInput(f'Cell index out of range [0, {self.state.grid.size})')
        annotation = clean_annotation(annotation)

        with self.state.lock:
            replay = self._replayed(payment_ref, cell_index, actor)
        if replay is not None:
            return replay

        with self.state.lock:
            decision = self.state.cooldowns.check(actor, self.now())
        if not decision.allowed:
            log.info(f"[paint-cooldown] actor={actor} remaining_ms={decision.remaining_ms}")
            raise CooldownActive(decision.remaining_ms)

        if self.captcha is not None and not self.captcha.verify(captcha_token):
            raise CaptchaFailed('Captcha failed')

        verdict = self.gateway.verify(payment_ref, cell_index, actor)
        if verdict.outcome == REJECTED:
            log.info(f"[paint-rejected] ref={payment_ref} reason={verdict.reason}")
            raise PaymentRejected(verdict.reason or 'Transaction failed on chain')
        if verdict.outcome == INDETERMINATE:
            raise PaymentIndeterminate()

        with self.state.lock:
            replay = self._replayed(payment_ref, cell_index, actor)
            if replay is not None:
                return replay
            cell = self.state.grid.paint(cell_index, actor, annotation)
            self.state.leaderboard.record_mutation(actor)
            self.state.cooldowns.commit(actor, self.now())
            self.state.record_payment(payment_ref, cell_index, actor)
            top = self.state.leaderboard.top_k(self.leaderboard_size)
            endgame = False
            if not self.state.endgame_fired and self.state.grid.painted_fraction() > self.endgame_threshold:
                self.state.endgame_fired = True
                endgame = True

        log.info(f"[paint] cell={cell_index} actor={actor} ref={payment_ref}")
        if self.saver is not None:
            self.saver.schedule_save()
        payload = {'index': cell.index, 'owner': cell.owner}
        if cell.annotation is not None:
            payload['annotation'] = cell.annotation
        self.broadcaster.tile_painted(payload)
        self.broadcaster.leaderboard(top)
        if endgame:
            log.info(f"[endgame] painted={self.state.grid.count_painted()}")
            self.broadcaster.endgame()
        return cell

    def _replayed(self, payment_ref: str, cell_index: int, actor: str) -> Optional[Cell]:
        used = self.state.payments.get(payment_ref)
        if used is None:
            return None
        if used != (cell_index, actor):
            raise PaymentRejected('Payment reference already used')
        return self.state.grid.cell(cell_index)

    def user_state(self, actor: str) -> dict:
        actor = _require_str(actor, 'actor')
        now = self.now()
        with self.state.lock:
            last = self.state.cooldowns.last_accepted(actor)
            decision = self.state.cooldowns.check(actor, now)
        return {
            'lastMutationTime': last,
            'serverTime': now,
            'cooldownMs': decision.remaining_ms,
        }

    def claim_airdrop(self, actor, airdrop_id) -> bool:
        actor = _require_str(actor, 'actor')
        airdrop_id = _require_str(airdrop_id, 'airdropId')
        if self.airdrops is None:
            return False
        return self.airdrops.claim(actor, airdrop_id)

    def cell(self, index: int) -> Cell:
        with self.state.lock:
            return self.state.grid.cell(index)

    def initial_events(self) -> List[Tuple[str, object]]:
        """Catch-up pushes for a freshly connected viewer."""
        with self.state.lock:
            events: List[Tuple[str, object]] = [
                ('init-grid', self.state.grid.grid()),
                ('init-annotations', {str(k): v for k, v in self.state.grid.annotations().items()}),
                ('leaderboard-update', self.state.leaderboard.top_k(self.leaderboard_size)),
            ]
            if self.state.airdrop is not None:
                events.append(('spawn-airdrop', self.state.airdrop.to_dict()))
        return events

    def summary(self) -> dict:
        with self.state.lock:
            painted = self.state.grid.count_painted()
            size = self.state.grid.size
            return {
                'gridSize': size,
                'painted': painted,
                'percentage': round(painted / size * 100, 2),
                'endgame': self.state.endgame_fired,
                'leaderboard': self.state.leaderboard.top_k(self.leaderboard_size),
                'airdrop': self.state.airdrop.to_dict() if self.state.airdrop else None,
            }
