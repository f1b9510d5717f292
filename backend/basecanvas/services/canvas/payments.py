"""Payment verification against a chain RPC endpoint.

The gateway only reads receipts; it never initiates payments. A receipt
that cannot be found yet, or an RPC endpoint that is briefly unreachable,
is retried a bounded number of times. Running out of attempts yields an
INDETERMINATE verdict, which is reported to clients separately from a
definitive rejection so that nobody is told their payment was lost.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

log = logging.getLogger(__name__)

CONFIRMED = 'confirmed'
REJECTED = 'rejected'
INDETERMINATE = 'indeterminate'

RECEIPT_SUCCESS = '0x1'


class OracleUnavailable(Exception):
    """The RPC endpoint could not be reached or returned an error."""


@dataclass(frozen=True)
class Verdict:
    outcome: str
    reason: str = ''

    @property
    def confirmed(self) -> bool:
        return self.outcome == CONFIRMED


class RpcReceiptOracle:
    """Minimal JSON-RPC reader for transaction receipts."""

    def __init__(self, url: str, timeout: float = 5.0, session: Optional[requests.Session] = None) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self._id = 1

    def call(self, method: str, params: list) -> Any:
        payload = {'jsonrpc': '2.0', 'id': self._id, 'method': method, 'params': params}
        self._id += 1
        try:
            resp = self.session.post(self.url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise OracleUnavailable(f'{method} failed: {exc}') from exc
        if data.get('error'):
            raise OracleUnavailable(f"{method} error: {data['error']}")
        return data.get('result')

    def get_receipt(self, ref: str) -> Optional[Dict[str, Any]]:
        return self.call('eth_getTransactionReceipt', [ref])

    def get_transaction(self, ref: str) -> Optional[Dict[str, Any]]:
        return self.call('eth_getTransactionByHash', [ref])


class PaymentGateway:
    def __init__(
        self,
        oracle,
        max_attempts: int = 5,
        retry_delay: float = 2.0,
        timeout: float = 12.0,
        call_timeout: float = 0.0,
        expected_to: Optional[str] = None,
        min_value_wei: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.oracle = oracle
        self.max_attempts = max(1, int(max_attempts))
        self.retry_delay = float(retry_delay)
        self.timeout = float(timeout)
        # worst case for one attempt: the receipt read, plus the transaction
        # read when the price check is on
        calls = 2 if min_value_wei is not None else 1
        self.attempt_budget = float(call_timeout) * calls
        self.expected_to = expected_to.lower() if expected_to else None
        self.min_value_wei = min_value_wei
        self._sleep = sleep
        self._clock = clock

    def verify(self, payment_ref: str, cell_index: int, actor: str) -> Verdict:
        started = self._clock()
        for attempt in range(1, self.max_attempts + 1):
            try:
                receipt = self.oracle.get_receipt(payment_ref)
            except OracleUnavailable as exc:
                log.warning(f"[verify-retry] ref={payment_ref} attempt={attempt} oracle unavailable: {exc}")
                receipt = None
            else:
                if receipt is not None:
                    return self._judge(payment_ref, receipt)
                log.info(f"[verify-retry] ref={payment_ref} attempt={attempt} receipt not found")

            if attempt == self.max_attempts:
                break
            if self._clock() - started + self.retry_delay + self.attempt_budget > self.timeout:
                log.info(f"[verify-timeout] ref={payment_ref} budget {self.timeout}s exhausted")
                break
            self._sleep(self.retry_delay)

        log.info(f"[verify-indeterminate] ref={payment_ref} cell={cell_index} actor={actor}")
        return Verdict(INDETERMINATE, 'receipt not final')

    def _judge(self, payment_ref: str, receipt: Dict[str, Any]) -> Verdict:
        status = receipt.get('status')
        if status not in (RECEIPT_SUCCESS, 1, True, 'success'):
            return Verdict(REJECTED, 'Transaction failed on chain')

        if self.expected_to:
            to = (receipt.get('to') or '').lower()
            if to != self.expected_to:
                return Verdict(REJECTED, 'Transaction was not sent to the paint contract')

        if self.min_value_wei is not None:
            try:
                tx = self.oracle.get_transaction(payment_ref)
            except OracleUnavailable:
                return Verdict(INDETERMINATE, 'transaction lookup failed')
            if tx is None:
                return Verdict(INDETERMINATE, 'transaction not found')
            if _to_int(tx.get('value')) < self.min_value_wei:
                return Verdict(REJECTED, 'Payment amount below paint price')

        return Verdict(CONFIRMED)


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.startswith('0x') else int(value)
        except ValueError:
            return 0
    return 0
