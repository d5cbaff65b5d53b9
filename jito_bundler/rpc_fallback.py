"""
Detached reliability fallback: broadcast a transaction through a plain Solana
RPC node some time after the bundle was submitted.

The task runs on its own; its outcome is only logged and never reaches the
code that scheduled it.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.types import TxOpts

logger = logging.getLogger(__name__)

Sender = Callable[[bytes], Awaitable[str]]

# Strong references keep pending tasks alive until they finish.
_background_tasks: set[asyncio.Task] = set()


class RpcFallbackSender:
    def __init__(self, rpc_url: str, skip_preflight: bool = True):
        self.rpc_url = rpc_url
        self.skip_preflight = skip_preflight

    async def __call__(self, transaction: bytes) -> str:
        return await self.send(transaction)

    async def send(self, transaction: bytes) -> str:
        """Submit signed transaction bytes without waiting for confirmation."""
        client = AsyncClient(self.rpc_url)
        try:
            result = await client.send_raw_transaction(
                transaction, opts=TxOpts(skip_preflight=self.skip_preflight)
            )
            return str(result.value)
        finally:
            await client.close()


async def _delayed_send(transaction: bytes, sender: Sender, delay: float) -> None:
    await asyncio.sleep(delay)
    try:
        signature = await sender(transaction)
    except Exception as e:
        # Usually the bundle already landed and the node answers "already processed".
        logger.debug("RPC fallback submit failed: %r", e)
        return
    logger.info("RPC fallback submitted transaction signature=%s", signature)


def schedule_fallback_send(transaction: bytes, sender: Sender, delay: float) -> Optional[asyncio.Task]:
    """
    Fire-and-forget: send `transaction` through `sender` after `delay` seconds.

    A non-positive delay disables the fallback. Must be called from a running
    event loop; the task outlives the calling coroutine.
    """
    if delay <= 0:
        return None

    task = asyncio.get_running_loop().create_task(_delayed_send(bytes(transaction), sender, delay))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    logger.debug("Scheduled RPC fallback send in %.3fs", delay)
    return task


def pending_fallbacks() -> int:
    return len(_background_tasks)
