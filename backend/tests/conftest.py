import os
import sys
import pytest

# Ensure the backend root (containing the `basecanvas` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from basecanvas import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    GRID_SIZE = 100
    COOLDOWN_SEC = 300
    ENDGAME_THRESHOLD = 0.99
    LEADERBOARD_SIZE = 10
    VERIFY_MAX_ATTEMPTS = 5
    VERIFY_RETRY_DELAY_SEC = 2
    VERIFY_TIMEOUT_SEC = 12
    SAVE_DEBOUNCE_SEC = 5
    AIRDROP_INTERVAL_SEC = 300
    AIRDROP_TTL_SEC = 60
    SOCKETIO_NAMESPACE = '/ws'


class FakeOracle:
    """Scripted receipt source. Each ref answers from a list, the last answer repeats."""

    def __init__(self):
        self.answers = {}
        self.transactions = {}
        self.calls = []

    def confirm(self, ref, **fields):
        receipt = {'status': '0x1'}
        receipt.update(fields)
        self.answers[ref] = [receipt]

    def fail(self, ref):
        self.answers[ref] = [{'status': '0x0'}]

    def script(self, ref, *answers):
        self.answers[ref] = list(answers)

    def get_receipt(self, ref):
        self.calls.append(ref)
        answers = self.answers.get(ref) or [None]
        answer = answers.pop(0) if len(answers) > 1 else answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer

    def get_transaction(self, ref):
        return self.transactions.get(ref)


class TaskRecorder:
    """Stands in for socketio.start_background_task; tasks run only on demand."""

    def __init__(self):
        self.tasks = []

    def __call__(self, fn, *args, **kwargs):
        self.tasks.append((fn, args, kwargs))

    def run_all(self):
        tasks, self.tasks = self.tasks, []
        for fn, args, kwargs in tasks:
            fn(*args, **kwargs)
        return len(tasks)


class SleepRecorder:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


class FakeBroadcaster:
    def __init__(self):
        self.events = []

    def tile_painted(self, payload):
        self.events.append(('tile-painted', payload))

    def leaderboard(self, entries):
        self.events.append(('leaderboard-update', entries))

    def endgame(self):
        self.events.append(('endgame-triggered', None))

    def airdrop_spawned(self, payload):
        self.events.append(('spawn-airdrop', payload))

    def airdrop_claimed(self, payload):
        self.events.append(('airdrop-claimed', payload))

    def airdrop_expired(self, payload):
        self.events.append(('airdrop-expired', payload))

    def names(self):
        return [name for name, _ in self.events]


@pytest.fixture()
def oracle():
    return FakeOracle()


@pytest.fixture()
def tasks():
    return TaskRecorder()


@pytest.fixture()
def sleeps():
    return SleepRecorder()


@pytest.fixture()
def broadcaster():
    return FakeBroadcaster()


@pytest.fixture()
def flask_app(oracle, tasks, sleeps):
    application = create_app(TestConfig, oracle=oracle, spawn=tasks, sleep=sleeps)
    with application.app_context():
        # Ensure models are imported so tables are created
        import basecanvas.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def service(flask_app):
    return flask_app.extensions['canvas']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
