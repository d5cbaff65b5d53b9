import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MethodIntervals:
    """Minimum spacing (seconds) enforced before each request, per method bucket."""

    send_bundle: float = 0.0    # also used by getBundleStatuses, both are on the critical path
    tip_accounts: float = 1.2
    other: float = 0.25

    def interval_for(self, method: str) -> float:
        if method in ("sendBundle", "getBundleStatuses"):
            return self.send_bundle
        if method == "getTipAccounts":
            return self.tip_accounts
        return self.other


class PacingGate:
    """
    One timestamp shared by every method and endpoint that uses this gate.

    `throttle` reserves the next dispatch slot under a lock, then waits for it
    outside the lock, so concurrent callers (threads or tasks) end up spaced at
    least `min_interval` apart without serializing the requests themselves.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last: Optional[float] = None

    @property
    def last_dispatch(self) -> Optional[float]:
        return self._last

    async def throttle(self, min_interval: float) -> None:
        if min_interval <= 0:
            return

        with self._lock:
            now = self._clock()
            ready_at = now
            if self._last is not None:
                ready_at = max(now, self._last + min_interval)
            self._last = ready_at

        delay = ready_at - now
        if delay > 0:
            logger.debug("Pacing gate: waiting %.3fs", delay)
            await self._sleep(delay)


# Process-wide gate shared by clients that are not handed one explicitly.
DEFAULT_GATE = PacingGate()
