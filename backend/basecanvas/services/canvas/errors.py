from typing import Any, Dict


class CanvasError(Exception):
    """Base class for failures reported back to a client.

    ``code`` is a stable machine-readable token, ``message`` is safe to show
    to users and ``status`` is the HTTP status used by the API blueprint.
    """

    code = 'canvas_error'
    status = 400

    def __init__(self, message: str = '', **extra: Any) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        payload = {'success': False, 'error': self.code, 'message': self.message}
        payload.update(self.extra)
        return payload


class InvalidInput(CanvasError):
    code = 'invalid_input'
    status = 400


class CaptchaFailed(CanvasError):
    code = 'captcha_failed'
    status = 400


class CooldownActive(CanvasError):
    code = 'cooldown_active'
    status = 429

    def __init__(self, remaining_ms: int) -> None:
        super().__init__('Cooldown active', retry_after_ms=int(remaining_ms))
        self.remaining_ms = int(remaining_ms)


class PaymentRejected(CanvasError):
    """The chain gave a definitive negative answer; a new payment is needed."""

    code = 'payment_rejected'
    status = 402


class PaymentIndeterminate(CanvasError):
    """No definitive answer yet. The client should retry the same payment."""

    code = 'payment_indeterminate'
    status = 503

    def __init__(self, message: str = 'Payment not yet confirmed, retry shortly') -> None:
        super().__init__(message, retryable=True)
