from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def create_app(config_class=Config, oracle=None, spawn=None, sleep=None):
    """Build the Flask app and its single canvas service.

    ``oracle``, ``spawn`` and ``sleep`` replace the chain RPC reader and the
    Socket.IO background-task primitives; tests pass fakes for all three.
    """
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from basecanvas.api.canvas import canvas
    flask_app.register_blueprint(canvas, url_prefix='/api')

    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/ws')
    from basecanvas.socketio_events import Broadcaster, register_socketio_handlers
    register_socketio_handlers(socketio, namespace=namespace)

    from basecanvas.services.canvas.airdrop import AirdropScheduler
    from basecanvas.services.canvas.captcha import CaptchaGate
    from basecanvas.services.canvas.payments import PaymentGateway, RpcReceiptOracle
    from basecanvas.services.canvas.persistence import SnapshotSaver, load_snapshot
    from basecanvas.services.canvas.state import CanvasState, CanvasService

    spawn = spawn or socketio.start_background_task
    sleep = sleep or socketio.sleep
    cfg = flask_app.config

    state = CanvasState(
        int(cfg.get('GRID_SIZE', 40000)),
        int(cfg.get('COOLDOWN_SEC', 300)) * 1000,
        payment_ref_limit=int(cfg.get('PAYMENT_REF_LIMIT', 100_000)),
    )
    broadcaster = Broadcaster(socketio, namespace=namespace, logger=flask_app.logger)
    rpc_timeout = float(cfg.get('RPC_TIMEOUT_SEC', 5))
    gateway = PaymentGateway(
        oracle or RpcReceiptOracle(cfg.get('RPC_URL'), timeout=rpc_timeout),
        max_attempts=int(cfg.get('VERIFY_MAX_ATTEMPTS', 5)),
        retry_delay=float(cfg.get('VERIFY_RETRY_DELAY_SEC', 2)),
        timeout=float(cfg.get('VERIFY_TIMEOUT_SEC', 12)),
        call_timeout=rpc_timeout,
        expected_to=cfg.get('PAINT_CONTRACT_ADDRESS'),
        min_value_wei=cfg.get('PAINT_PRICE_WEI'),
        sleep=sleep,
    )
    captcha = CaptchaGate(cfg.get('RECAPTCHA_SECRET_KEY'), float(cfg.get('RECAPTCHA_MIN_SCORE', 0.5)))
    saver = SnapshotSaver(flask_app, state, float(cfg.get('SAVE_DEBOUNCE_SEC', 5)), spawn=spawn, sleep=sleep)
    airdrops = AirdropScheduler(
        state,
        broadcaster,
        interval=float(cfg.get('AIRDROP_INTERVAL_SEC', 300)),
        ttl=float(cfg.get('AIRDROP_TTL_SEC', 60)),
        spawn=spawn,
        sleep=sleep,
    )
    service = CanvasService(
        state,
        gateway,
        broadcaster,
        saver=saver,
        captcha=captcha,
        airdrops=airdrops,
        endgame_threshold=float(cfg.get('ENDGAME_THRESHOLD', 0.99)),
        leaderboard_size=int(cfg.get('LEADERBOARD_SIZE', 10)),
    )
    flask_app.extensions['canvas'] = service

    # Ensure the snapshot table exists before the one-time startup load
    from basecanvas import models  # noqa: F401
    with flask_app.app_context():
        db.create_all()
    load_snapshot(flask_app, state)

    if not cfg.get('TESTING') or cfg.get('ENABLE_SCHEDULER_IN_TESTS'):
        airdrops.start()

    @click.command('snapshot-reset')
    def snapshot_reset_command():
        """Drops and recreates the snapshot table."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
        state.reset()
        print('Canvas snapshot has been reset!')

    flask_app.cli.add_command(snapshot_reset_command)

    return flask_app
