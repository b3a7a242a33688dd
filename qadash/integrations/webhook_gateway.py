"""
Outbound Webhook Gateway.

All outbound HTTP calls made by provider sync steps go through this class.
Direct `requests` calls in providers or services are FORBIDDEN.

Design:
  - JSON POST to an incoming-webhook URL (Slack and compatible services)
  - Retry: max 2 retries, backoff 1 s → 4 s
  - Timeout: 10 s (configurable per gateway and per call)
  - Structured result returned to the provider; the provider decides
    whether a failed result is a ProviderError

The blocking `requests` call runs in a worker thread via
`asyncio.to_thread`, so a slow webhook never stalls the event loop and
the sync coordinator's timeout can still fire.

Testability: pass a mock `session` to WebhookGateway() in tests instead of
letting it create a real requests.Session internally.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from typing import Any

import requests

logger = logging.getLogger(__name__)

# ── Retry constants ────────────────────────────────────────────────────────
_RETRY_MAX = 2
_RETRY_BACKOFF_SECONDS = (1, 4)    # sleep[0] after 1st fail, sleep[1] after 2nd

# ── Default request timeout ────────────────────────────────────────────────
_DEFAULT_TIMEOUT = 10


class GatewayResult:
    """Structured return value from WebhookGateway calls.

    Attributes:
        ok:             True if the call succeeded (HTTP 2xx + no exception).
        status_code:    HTTP status code (None if network-level failure).
        data:           Parsed JSON response body, raw text, or None.
        error:          Human-readable error message or None.
        duration_ms:    Latency of the last attempt in milliseconds.
        attempts:       Number of HTTP attempts made.
        payload_hash:   SHA-256 of the serialised request payload (hex).
    """

    def __init__(
        self,
        ok: bool,
        status_code: int | None,
        data: Any,
        error: str | None,
        duration_ms: int,
        attempts: int = 1,
        payload_hash: str | None = None,
    ) -> None:
        self.ok = ok
        self.status_code = status_code
        self.data = data
        self.error = error
        self.duration_ms = duration_ms
        self.attempts = attempts
        self.payload_hash = payload_hash

    def to_log_dict(self) -> dict:
        """Return fields suitable for a sync attempt's ``sync_data``."""
        return {
            "http_status_code": self.status_code,
            "error_message": self.error,
            "duration_ms": self.duration_ms,
            "attempts": self.attempts,
            "payload_hash": self.payload_hash,
        }


class WebhookGateway:
    """JSON webhook sender with retry and backoff.

    Construct once per application and hand it to the providers that need
    it. Pass a custom `session` in tests to intercept HTTP calls without
    making real network requests.

    Args:
        session: Optional pre-built ``requests.Session``.
        backoff_seconds: Sleep before each retry, indexed by attempt.
        timeout: Default per-request timeout in seconds.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        backoff_seconds: tuple[float, ...] = _RETRY_BACKOFF_SECONDS,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._session: requests.Session | None = session
        self.backoff_seconds = tuple(backoff_seconds)
        self.timeout = timeout

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _compute_payload_hash(self, payload: dict | list | None) -> str | None:
        """Return SHA-256 hex digest of the JSON-serialised payload."""
        if payload is None:
            return None
        raw = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(raw).hexdigest()

    def _backoff(self, attempt: int) -> float:
        if not self.backoff_seconds:
            return 0
        return self.backoff_seconds[min(attempt, len(self.backoff_seconds) - 1)]

    @staticmethod
    def _parse_body(resp: requests.Response) -> Any:
        # Slack answers plain "ok", most others JSON
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return resp.text

    # ── Core request dispatcher ───────────────────────────────────────────────

    async def post_json(
        self,
        url: str,
        payload: dict | list,
        *,
        timeout: float | None = None,
    ) -> GatewayResult:
        """POST ``payload`` as JSON to ``url`` with retries.

        Implements:
          1. Execute request; on 2xx → return success result.
          2. On failure (non-2xx or network error):
             - Retry up to _RETRY_MAX times with backoff.
             - If all retries exhausted → return error result.

        Returns:
            GatewayResult — always returns (never raises). Callers check .ok.
        """
        timeout = timeout or self.timeout
        payload_hash = self._compute_payload_hash(payload)
        last_error = "Unknown error"
        last_status: int | None = None
        duration_ms = 0

        for attempt in range(_RETRY_MAX + 1):  # 0, 1, 2
            t0 = time.perf_counter()
            try:
                resp = await asyncio.to_thread(
                    self.session.post,
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                    timeout=timeout,
                )
                duration_ms = int((time.perf_counter() - t0) * 1000)
                last_status = resp.status_code

                if resp.ok:
                    return GatewayResult(
                        ok=True,
                        status_code=resp.status_code,
                        data=self._parse_body(resp),
                        error=None,
                        duration_ms=duration_ms,
                        attempts=attempt + 1,
                        payload_hash=payload_hash,
                    )

                last_error = f"HTTP {resp.status_code}: {resp.text[:500]}"
                logger.warning(
                    "Webhook request failed attempt=%d/%d status=%d url=%s",
                    attempt + 1, _RETRY_MAX + 1, resp.status_code, url,
                )

            except requests.Timeout:
                duration_ms = int(timeout * 1000)
                last_error = f"Request timed out after {timeout}s"
                logger.warning(
                    "Webhook request timed out attempt=%d/%d url=%s",
                    attempt + 1, _RETRY_MAX + 1, url,
                )

            except requests.RequestException as exc:
                duration_ms = int((time.perf_counter() - t0) * 1000)
                last_error = str(exc)[:500]
                logger.warning(
                    "Webhook network error attempt=%d/%d url=%s error=%s",
                    attempt + 1, _RETRY_MAX + 1, url, last_error,
                )

            # Sleep before retry (except after last attempt)
            if attempt < _RETRY_MAX:
                sleep_s = self._backoff(attempt)
                logger.info("Retrying webhook request in %ss (attempt %d)", sleep_s, attempt + 2)
                await asyncio.sleep(sleep_s)

        return GatewayResult(
            ok=False,
            status_code=last_status,
            data=None,
            error=last_error,
            duration_ms=duration_ms,
            attempts=_RETRY_MAX + 1,
            payload_hash=payload_hash,
        )
