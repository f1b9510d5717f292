import logging
from typing import Optional

import requests

log = logging.getLogger(__name__)

SITEVERIFY_URL = 'https://www.google.com/recaptcha/api/siteverify'


class CaptchaGate:
    """Optional reCAPTCHA v3 check. Without a secret every token passes."""

    def __init__(self, secret: Optional[str] = None, min_score: float = 0.5,
                 session: Optional[requests.Session] = None, timeout: float = 5.0) -> None:
        self.secret = secret
        self.min_score = min_score
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.secret)

    def verify(self, token: Optional[str]) -> bool:
        if not self.enabled:
            return True
        if not token:
            return False
        try:
            resp = self.session.post(
                SITEVERIFY_URL,
                data={'secret': self.secret, 'response': token},
                timeout=self.timeout,
            )
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            log.error(f"[captcha] verify error: {exc}")
            return False
        return bool(data.get('success')) and float(data.get('score', 0)) > self.min_score
