from basecanvas import db

SNAPSHOT_KEY = 'canvas'


class CanvasSnapshot(db.Model):
    """Latest persisted canvas document, stored as one JSON text row."""

    __tablename__ = 'canvas_snapshot'
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), unique=True, nullable=False, index=True)
    payload = db.Column(db.Text, nullable=True)  # JSON-encoded snapshot document
    saved_at = db.Column(db.Float, nullable=True)
