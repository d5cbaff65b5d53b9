import asyncio
import logging
import math
from typing import Any, Awaitable, Callable, Optional, Sequence

import aiohttp

from .errors import (
    ClientError,
    ConfigurationError,
    EndpointsExhausted,
    HttpStatusError,
    RateLimited,
    ServerError,
    TransportError,
)
from .jsonrpc import decode_body, extract_rpc_error
from .pacing import MethodIntervals, PacingGate

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
MAX_BACKOFF_SECONDS = 8.0


def backoff_seconds(attempt: int) -> float:
    return float(min(2 ** attempt, MAX_BACKOFF_SECONDS))


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a Retry-After header; HTTP-date values are ignored."""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds


def check_status(status: int, url: str, body: str) -> None:
    """Raise the typed error for a final, non-2xx HTTP status."""
    if 200 <= status < 300:
        return
    if status == 429:
        raise RateLimited(status, url, body)
    if status >= 500:
        raise ServerError(status, url, body)
    if 400 <= status < 500:
        raise ClientError(status, url, body, rpc_error=extract_rpc_error(body))
    raise HttpStatusError(status, url, body)


def checked_body(status: int, url: str, raw: bytes) -> str:
    """
    Text of a response body, raising the typed error for a non-2xx status.

    Error pages are decoded leniently so any proxy page can be reported;
    a 2xx body that is not UTF-8 is a ProtocolError.
    """
    if not 200 <= status < 300:
        check_status(status, url, raw.decode("utf-8", errors="replace"))
    return decode_body(raw)


class Dispatcher:
    """
    POSTs a JSON-RPC envelope with per-endpoint retries and cross-endpoint fallback.
    """

    def __init__(
        self,
        gate: PacingGate,
        intervals: MethodIntervals,
        timeout: float = 10.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.gate = gate
        self.intervals = intervals
        self.timeout = timeout
        self._sleep = sleep

    async def dispatch(self, endpoints: Sequence[str], envelope: dict[str, Any], method: str) -> str:
        """
        Send `envelope` to the first endpoint that accepts it and return the raw body.

        Raises:
            ConfigurationError: no endpoints are configured
            ClientError: an endpoint rejected the request (never retried elsewhere)
            EndpointsExhausted: every endpoint failed with a retryable error
        """
        if not endpoints:
            raise ConfigurationError("No block engine URLs configured")

        last_error: Optional[Exception] = None
        for url in endpoints:
            try:
                return await self._post_with_retry(url, envelope, method)
            except (TransportError, HttpStatusError) as e:
                if not e.retryable:
                    raise
                logger.warning("%s failed on %s, trying next endpoint: %s", method, url, e)
                last_error = e

        raise EndpointsExhausted(last_error) from last_error

    async def _post_with_retry(self, url: str, envelope: dict[str, Any], method: str) -> str:
        min_interval = self.intervals.interval_for(method)
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        for attempt in range(MAX_ATTEMPTS):
            last_attempt = attempt == MAX_ATTEMPTS - 1
            await self.gate.throttle(min_interval)
            logger.debug("%s attempt %d to %s", method, attempt + 1, url)

            try:
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    async with session.post(url, json=envelope) as response:
                        status = response.status
                        retry_after = parse_retry_after(response.headers.get("Retry-After"))
                        raw = await response.read()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if last_attempt:
                    raise TransportError(url, e) from e
                delay = backoff_seconds(attempt)
                logger.warning(
                    "%s attempt %d to %s failed, retrying in %.1fs (%r)",
                    method, attempt + 1, url, delay, e,
                )
                await self._sleep(delay)
                continue

            if (status == 429 or status >= 500) and not last_attempt:
                delay = retry_after if retry_after is not None else backoff_seconds(attempt)
                delay = min(delay, MAX_BACKOFF_SECONDS)
                logger.warning(
                    "%s got HTTP %d from %s, retrying in %.1fs",
                    method, status, url, delay,
                )
                await self._sleep(delay)
                continue

            return checked_body(status, url, raw)

        # This should never be reached, the last attempt returns or raises
        raise RuntimeError(f"Unexpected error posting {method} to {url}")
