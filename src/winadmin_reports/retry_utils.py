from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import requests

T = TypeVar("T")

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class RetryableHttpStatus(Exception):
    """Throttling or transient server error returned by a REST source."""

    def __init__(self, status_code: int, retry_after_s: Optional[float] = None) -> None:
        super().__init__(f"retryable http status: {status_code}")
        self.status_code = status_code
        self.retry_after_s = retry_after_s


@dataclass(frozen=True)
class RetryConfig:
    """Backoff for throttled / flaky directory calls.

    Delays are deterministic (no jitter). A server supplied Retry-After wins
    over the computed delay but is still capped at max_delay_s.
    """

    max_attempts: int = 3
    base_delay_s: float = 0.5
    max_delay_s: float = 30.0
    multiplier: float = 2.0

    def delay_for(self, attempt: int, exc: Exception) -> float:
        retry_after = getattr(exc, "retry_after_s", None)
        if retry_after is not None:
            return min(self.max_delay_s, float(retry_after))
        return min(self.max_delay_s, self.base_delay_s * (self.multiplier ** (attempt - 1)))


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        # HTTP-date form is not used by Graph
        return None


def is_transient(exc: Exception) -> bool:
    if isinstance(exc, RetryableHttpStatus):
        return True
    return isinstance(exc, (requests.Timeout, requests.ConnectionError))


def retry_call(
    fn: Callable[[], T],
    *,
    cfg: RetryConfig,
    should_retry: Callable[[Exception], bool] = is_transient,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
) -> T:
    """Call `fn` with retry + exponential backoff.

    on_retry receives (attempt_index, exc, delay_s); attempt_index is 1-based
    and refers to the attempt that *failed*. The last error is re-raised.
    """

    if cfg.max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except Exception as exc:
            if attempt >= cfg.max_attempts or not should_retry(exc):
                raise

            delay_s = cfg.delay_for(attempt, exc)
            if on_retry is not None:
                on_retry(attempt, exc, delay_s)
            time.sleep(delay_s)
