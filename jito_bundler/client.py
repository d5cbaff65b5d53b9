import asyncio
import base64
import json
import logging
import time
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence, Union

import aiohttp
import base58

from .config import Settings
from .dispatcher import Dispatcher, checked_body
from .endpoints import normalize_endpoints
from .errors import (
    ClientError,
    ConfigurationError,
    DecodeRejected,
    InvalidBundle,
    ProtocolError,
    TransportError,
)
from .jsonrpc import BundleStatus, build_request, decode_bundle_statuses, parse_response
from .pacing import DEFAULT_GATE, MethodIntervals, PacingGate
from .rpc_fallback import RpcFallbackSender, Sender, schedule_fallback_send
from .tips import (
    DEFAULT_CACHE,
    TipAccountsCache,
    check_percentile,
    clamp,
    parse_tip_floor,
    sol_to_lamports,
    validate_tip_accounts,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.2
TIP_FLOOR_METHOD = "tipFloor"  # REST call, paced with the generic bucket


def _is_decode_rejection(error: Exception) -> bool:
    if isinstance(error, DecodeRejected):
        return True
    return isinstance(error, ClientError) and error.decode_rejected


class JitoBundleClient:
    """
    Block engine bundle client.

    `urls` can be full bundles JSON-RPC URLs (ending in /api/v1/bundles) or
    bare hosts like https://frankfurt.mainnet.block-engine.jito.wtf; the path
    is appended when missing. Order is fallback priority.
    """

    def __init__(
        self,
        urls: Iterable[str],
        *,
        timeout: float = 10.0,
        gate: Optional[PacingGate] = None,
        intervals: Optional[MethodIntervals] = None,
        tip_accounts_cache: Optional[TipAccountsCache] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._urls = normalize_endpoints(urls)
        self.timeout = timeout
        self.gate = gate or DEFAULT_GATE
        self.intervals = intervals or MethodIntervals()
        self.tip_accounts_cache = tip_accounts_cache or DEFAULT_CACHE
        self._sleep = sleep
        self._clock = clock
        self.dispatcher = Dispatcher(self.gate, self.intervals, timeout=timeout, sleep=sleep)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "JitoBundleClient":
        return cls(
            settings.block_engine_urls,
            timeout=settings.request_timeout,
            intervals=settings.intervals,
            **kwargs,
        )

    @property
    def urls(self) -> tuple[str, ...]:
        return self._urls

    async def _call(self, method: str, params: list) -> Any:
        body = await self.dispatcher.dispatch(self._urls, build_request(method, params), method)
        return parse_response(body)

    async def _send_encoded(self, encoded: list[str]) -> str:
        result = await self._call("sendBundle", [encoded])
        if not isinstance(result, str):
            raise ProtocolError(f"sendBundle returned a non-string bundle id: {result!r}")
        return result

    async def send_bundle(self, transactions: Sequence[Union[bytes, bytearray]]) -> str:
        """
        Submit a bundle of signed, serialized transactions.

        Args:
            transactions: Raw transaction bytes, in bundle order

        Returns:
            The bundle id assigned by the block engine

        Some block engines only accept base58. Base64 is tried first and the
        whole submission is repeated once with base58 if the engine reports that
        it could not decode the transactions.
        """
        if not transactions:
            raise InvalidBundle("A bundle needs at least one transaction")
        for tx in transactions:
            if not isinstance(tx, (bytes, bytearray)):
                raise InvalidBundle("Transactions must be bytes")

        encoded_base64 = [base64.b64encode(tx).decode("ascii") for tx in transactions]
        try:
            bundle_id = await self._send_encoded(encoded_base64)
        except (ClientError, DecodeRejected) as e:
            if not _is_decode_rejection(e):
                raise
            logger.info("Block engine could not decode base64 bundle, retrying with base58")
            encoded_base58 = [base58.b58encode(bytes(tx)).decode("ascii") for tx in transactions]
            bundle_id = await self._send_encoded(encoded_base58)

        logger.info("Submitted bundle of %d transactions, bundle_id=%s", len(transactions), bundle_id)
        return bundle_id

    async def get_bundle_statuses(self, bundle_ids: Sequence[str]) -> list[BundleStatus]:
        result = await self._call("getBundleStatuses", [list(bundle_ids)])
        return decode_bundle_statuses(result)

    async def wait_for_landed_signatures(self, bundle_id: str, timeout: float = 2.0) -> list[str]:
        """
        Poll bundle status until its transactions are reported as landed.

        Returns the landed signatures, or an empty list if none were seen
        within `timeout` seconds. Status query errors are raised, not retried.
        """
        start = self._clock()
        while self._clock() - start < timeout:
            for status in await self.get_bundle_statuses([bundle_id]):
                if status.bundle_id not in (None, bundle_id):
                    continue
                if status.landed_signatures:
                    return status.landed_signatures
            await self._sleep(POLL_INTERVAL)

        logger.debug("No landed signatures for bundle %s within %.1fs", bundle_id, timeout)
        return []

    async def get_tip_accounts(self, *, bypass_cache: bool = False) -> list[str]:
        """Tip accounts, fetched once per process unless `bypass_cache` is set."""
        if not bypass_cache:
            cached = self.tip_accounts_cache.get()
            if cached is not None:
                return cached

        accounts = validate_tip_accounts(await self._call("getTipAccounts", []))
        if bypass_cache:
            return accounts
        return self.tip_accounts_cache.store(accounts)

    async def get_tip_floor_lamports(
        self,
        tip_floor_url: str,
        percentile: int = 50,
        use_ema: bool = False,
        min_lamports: int = 0,
        max_lamports: int = 2**64 - 1,
    ) -> int:
        """
        Competitive tip in lamports from the published tip floor.

        Args:
            tip_floor_url: REST endpoint returning tip floor samples
            percentile: One of 25, 50, 75, 95, 99
            use_ema: Use the EMA-smoothed value (50th percentile only)
            min_lamports: Lower bound of the result
            max_lamports: Upper bound of the result
        """
        check_percentile(percentile)
        if min_lamports > max_lamports:
            raise ConfigurationError(f"Invalid tip bounds: min {min_lamports} > max {max_lamports}")

        await self.gate.throttle(self.intervals.interval_for(TIP_FLOOR_METHOD))
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.get(tip_floor_url) as response:
                    status = response.status
                    raw = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(tip_floor_url, e) from e

        body = checked_body(status, tip_floor_url, raw)
        try:
            payload = json.loads(body)
        except ValueError as e:
            raise ProtocolError(f"tip_floor JSON parse error: {e} (body={body})") from e

        sample = parse_tip_floor(payload)
        lamports = sol_to_lamports(sample.select_sol(percentile, use_ema))
        return clamp(lamports, min_lamports, max_lamports)

    def schedule_rpc_fallback(
        self,
        transaction: bytes,
        sender: Union[Sender, str],
        delay: float,
    ) -> Optional[asyncio.Task]:
        """Broadcast `transaction` through a plain RPC node after `delay` seconds, detached."""
        if isinstance(sender, str):
            sender = RpcFallbackSender(sender)
        return schedule_fallback_send(transaction, sender, delay)
