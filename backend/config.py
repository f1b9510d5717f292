import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///basecanvas.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Canvas geometry
    GRID_SIZE = int(os.environ.get('GRID_SIZE', '40000'))
    ENDGAME_THRESHOLD = float(os.environ.get('ENDGAME_THRESHOLD', '0.99'))
    LEADERBOARD_SIZE = int(os.environ.get('LEADERBOARD_SIZE', '10'))
    # Per-actor cooldown between accepted paints (seconds)
    COOLDOWN_SEC = int(os.environ.get('COOLDOWN_SEC', '300'))
    # Payment verification against the chain RPC
    RPC_URL = os.environ.get('RPC_URL') or 'https://base-sepolia-rpc.publicnode.com'
    RPC_TIMEOUT_SEC = float(os.environ.get('RPC_TIMEOUT_SEC', '5'))
    VERIFY_MAX_ATTEMPTS = int(os.environ.get('VERIFY_MAX_ATTEMPTS', '5'))
    VERIFY_RETRY_DELAY_SEC = float(os.environ.get('VERIFY_RETRY_DELAY_SEC', '2'))
    # Total verification budget; keep under the client's request timeout
    VERIFY_TIMEOUT_SEC = float(os.environ.get('VERIFY_TIMEOUT_SEC', '12'))
    # Optional hardening: unset means any successful receipt is accepted
    PAINT_CONTRACT_ADDRESS = os.environ.get('PAINT_CONTRACT_ADDRESS') or None
    PAINT_PRICE_WEI = int(os.environ['PAINT_PRICE_WEI']) if os.environ.get('PAINT_PRICE_WEI') else None
    # How many accepted payment refs are remembered for replay checks
    PAYMENT_REF_LIMIT = int(os.environ.get('PAYMENT_REF_LIMIT', '100000'))
    # Optional captcha gate. Empty secret disables it.
    RECAPTCHA_SECRET_KEY = os.environ.get('RECAPTCHA_SECRET_KEY') or None
    RECAPTCHA_MIN_SCORE = float(os.environ.get('RECAPTCHA_MIN_SCORE', '0.5'))
    # Debounced snapshot writes (seconds)
    SAVE_DEBOUNCE_SEC = float(os.environ.get('SAVE_DEBOUNCE_SEC', '5'))
    # Airdrop timers (seconds)
    AIRDROP_INTERVAL_SEC = int(os.environ.get('AIRDROP_INTERVAL_SEC', '300'))
    AIRDROP_TTL_SEC = int(os.environ.get('AIRDROP_TTL_SEC', '60'))
    # Push channel namespace
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/ws')
