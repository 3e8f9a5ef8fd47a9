"""
Retrying JSON HTTP client shared by the CQS and workflow HTTP gateways.

  - Retry: max 2 retries, backoff 1 s → 4 s, on timeouts, network errors
    and 5xx responses. 4xx responses are final.
  - Timeout: per client, from config.
  - Structured GatewayResult returned; the client itself never raises.

Testability: pass a mock `session` (and ``backoff_seconds=[0, 0]``) in tests
instead of letting the client create a real requests.Session.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

logger = logging.getLogger(__name__)

# ── Retry constants ────────────────────────────────────────────────────────
_RETRY_MAX = 2
_RETRY_BACKOFF_SECONDS = [1, 4]    # sleep[0] after 1st fail, sleep[1] after 2nd

_DEFAULT_TIMEOUT = 10


class GatewayResult:
    """Structured return value from JsonHttpClient calls.

    Attributes:
        ok:           True if the call succeeded (HTTP 2xx + no exception).
        status_code:  HTTP status code (None if network-level failure).
        data:         Parsed JSON response body (dict or list), else None.
        error:        Human-readable error message or None.
        duration_ms:  Round-trip latency of the last attempt in milliseconds.
    """

    def __init__(
        self,
        ok: bool,
        status_code: int | None,
        data: dict | list | None,
        error: str | None,
        duration_ms: int,
    ) -> None:
        self.ok = ok
        self.status_code = status_code
        self.data = data
        self.error = error
        self.duration_ms = duration_ms

    def __repr__(self) -> str:
        return f"<GatewayResult ok={self.ok} status={self.status_code} error={self.error!r}>"


class JsonHttpClient:
    """JSON-over-HTTP client with timeout and retry."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: int = _DEFAULT_TIMEOUT,
        headers: dict | None = None,
        session: requests.Session | None = None,
        backoff_seconds: list[int] | None = None,
        name: str = "http",
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.headers = {"Accept": "application/json", **(headers or {})}
        self._session = session
        self._backoff = backoff_seconds if backoff_seconds is not None else _RETRY_BACKOFF_SECONDS
        self.name = name

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict | list | None = None,
        params: dict | None = None,
    ) -> GatewayResult:
        """Execute a request with retries. Always returns, never raises."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        kwargs: dict[str, Any] = {"headers": self.headers, "timeout": self.timeout}
        if json_body is not None:
            kwargs["json"] = json_body
        if params:
            kwargs["params"] = params

        last_error = "Unknown error"
        last_status: int | None = None
        duration_ms = 0

        for attempt in range(_RETRY_MAX + 1):
            try:
                t0 = time.perf_counter()
                resp = self.session.request(method, url, **kwargs)
                duration_ms = int((time.perf_counter() - t0) * 1000)
                last_status = resp.status_code

                if resp.ok:
                    try:
                        data = resp.json() if resp.content else {}
                    except ValueError:
                        data = {}
                    return GatewayResult(True, resp.status_code, data, None, duration_ms)

                last_error = f"HTTP {resp.status_code}: {resp.text[:500]}"
                if resp.status_code < 500:
                    return GatewayResult(False, resp.status_code, None, last_error, duration_ms)
                logger.warning(
                    "%s request failed attempt=%d/%d status=%d url=%s",
                    self.name, attempt + 1, _RETRY_MAX + 1, resp.status_code, url,
                )

            except requests.Timeout:
                duration_ms = int(self.timeout * 1000)
                last_error = f"Request timed out after {self.timeout}s"
                last_status = None
                logger.warning(
                    "%s request timed out attempt=%d/%d url=%s",
                    self.name, attempt + 1, _RETRY_MAX + 1, url,
                )

            except requests.RequestException as exc:
                last_error = str(exc)[:500]
                last_status = None
                logger.warning(
                    "%s network error attempt=%d/%d url=%s error=%s",
                    self.name, attempt + 1, _RETRY_MAX + 1, url, last_error,
                )

            if attempt < _RETRY_MAX:
                sleep_s = self._backoff[min(attempt, len(self._backoff) - 1)] if self._backoff else 0
                if sleep_s:
                    logger.info("Retrying %s request in %ss (attempt %d)", self.name, sleep_s, attempt + 2)
                    time.sleep(sleep_s)

        return GatewayResult(False, last_status, None, last_error, duration_ms)
