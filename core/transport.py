"""
HTTP Transport

Executes ``PreparedRequest`` objects over aiohttp and hands back the raw
status and decoded body. Retry policy lives here and nowhere else:

- 429 (rate limit), 418 (temporary IP ban), 503 (unavailable): retried
- timeouts and connection errors: retried for unsigned requests only; a
  signed request may already have reached the exchange, so it fails at once
- any other status: returned as-is so the exchange's error envelope can be
  interpreted by the caller

Retry delay: ``retry_backoff * (attempt + 1)`` seconds, skipped after the
last attempt.

Usage:
    async with HttpTransport(timeout=10) as transport:
        response = await transport.send(request)
"""

import asyncio
import json
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

import aiohttp
from yarl import URL

from core.errors import TransportError
from core.logging import get_logger, log_api_response
from core.request import PreparedRequest

logger = get_logger(__name__)

RETRY_STATUSES = (429, 418, 503)


@dataclass(frozen=True)
class RawResponse:
    """
    Attributes:
        status: HTTP status code
        data: Decoded JSON (floats as Decimal), or None if the body is not JSON
        text: Body as text
    """

    status: int
    data: Any
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def decode_body(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text, parse_float=Decimal)
    except ValueError:
        return None


class HttpTransport:
    """
    Async HTTP transport with retry logic.

    Args:
        timeout: Total request timeout in seconds
        max_retries: Attempts before giving up
        retry_backoff: Delay multiplier between attempts
        session: Existing aiohttp session to use (not closed by close())
        exchange: Name used in logs and errors
    """

    def __init__(
        self,
        timeout: float = 30,
        max_retries: int = 3,
        retry_backoff: float = 1.5,
        session: Optional[aiohttp.ClientSession] = None,
        exchange: Optional[str] = None,
    ):
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_backoff = retry_backoff
        self.exchange = exchange
        self.session = session
        self._owns_session = session is None

    # ============================================
    # Session Management
    # ============================================

    async def open(self) -> None:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self._owns_session = True
            logger.debug(f"{self.exchange} transport session created")

    async def close(self) -> None:
        if self.session and self._owns_session and not self.session.closed:
            await self.session.close()
            logger.debug(f"{self.exchange} transport session closed")
        if self._owns_session:
            self.session = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ============================================
    # Request Handler with Retry Logic
    # ============================================

    async def send(self, request: PreparedRequest) -> RawResponse:
        """
        Send a request, retrying transient failures.

        A signed request that times out or loses its connection is not sent
        again: the exchange may already have acted on it, and a resend would
        repeat its nonce.

        Raises:
            TransportError: Retries exhausted, a signed request failed in
                flight, or the session is unusable
        """
        if self.session is None:
            await self.open()

        headers = dict(request.headers)
        body = request.body if request.has_body else None
        if body is not None and request.content_type and "Content-Type" not in headers:
            headers["Content-Type"] = request.content_type

        # the query string is already encoded in the exact signed form
        url = URL(request.url, encoded=True)
        endpoint = request.path
        last_status: Optional[int] = None

        for attempt in range(self.max_retries):
            delay = self.retry_backoff * (attempt + 1)
            last_attempt = attempt + 1 >= self.max_retries
            started = time.monotonic()
            try:
                async with self.session.request(
                    request.method,
                    url,
                    data=body.encode("utf-8") if body is not None else None,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    text = await resp.text()
                    last_status = resp.status
                    log_api_response(self.exchange, endpoint, resp.status, time.monotonic() - started)

                    if resp.status in RETRY_STATUSES:
                        logger.warning(
                            f"Rate limited (HTTP {resp.status}) on {endpoint} "
                            f"(attempt {attempt + 1}/{self.max_retries})"
                        )
                        if not last_attempt:
                            await asyncio.sleep(delay)
                        continue

                    if resp.status >= 400:
                        logger.error(f"HTTP {resp.status} on {endpoint}: {text[:500]}")

                    return RawResponse(status=resp.status, data=decode_body(text), text=text)

            except asyncio.TimeoutError as e:
                logger.error(f"Timeout on {endpoint} (attempt {attempt + 1}/{self.max_retries})")
                self._raise_if_signed(request, "timed out", e)
                if not last_attempt:
                    await asyncio.sleep(delay)

            except aiohttp.ClientError as e:
                logger.error(f"Request failed on {endpoint}: {e} (attempt {attempt + 1}/{self.max_retries})")
                self._raise_if_signed(request, f"failed ({e})", e)
                if not last_attempt:
                    await asyncio.sleep(delay)

        raise TransportError(
            f"Failed to fetch {request.base_url}{endpoint} after {self.max_retries} attempts",
            self.exchange,
            status=last_status,
            url=f"{request.base_url}{endpoint}",
        )

    def _raise_if_signed(self, request: PreparedRequest, reason: str, cause: Exception) -> None:
        if not request.signed:
            return
        raise TransportError(
            f"Signed {request.method} {request.base_url}{request.path} {reason}; not retried",
            self.exchange,
            url=f"{request.base_url}{request.path}",
        ) from cause
