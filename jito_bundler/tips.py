import logging
import threading
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from typing import Any, Optional

from solders.pubkey import Pubkey

from .errors import ConfigurationError, ProtocolError

logger = logging.getLogger(__name__)

DEFAULT_TIP_FLOOR_URL = "https://bundles.jito.wtf/api/v1/bundles/tip_floor"
LAMPORTS_PER_SOL = 1_000_000_000
SUPPORTED_PERCENTILES = (25, 50, 75, 95, 99)


@dataclass(frozen=True)
class TipFloorSample:
    """One entry of the tip_floor REST endpoint. Values are in SOL."""

    landed_tips_25th_percentile: float
    landed_tips_50th_percentile: float
    landed_tips_75th_percentile: float
    landed_tips_95th_percentile: float
    landed_tips_99th_percentile: float
    ema_landed_tips_50th_percentile: Optional[float] = None
    time: Optional[str] = None

    @classmethod
    def from_json(cls, obj: Any) -> "TipFloorSample":
        if not isinstance(obj, dict):
            raise ProtocolError(f"tip_floor sample must be an object, got {obj!r}")

        values = {}
        for p in SUPPORTED_PERCENTILES:
            field = f"landed_tips_{p}th_percentile"
            values[field] = _as_float(obj.get(field), field)

        ema = obj.get("ema_landed_tips_50th_percentile")
        if ema is not None:
            ema = _as_float(ema, "ema_landed_tips_50th_percentile")

        time = obj.get("time")
        return cls(
            ema_landed_tips_50th_percentile=ema,
            time=None if time is None else str(time),
            **values,
        )

    def percentile_sol(self, percentile: int) -> float:
        check_percentile(percentile)
        return getattr(self, f"landed_tips_{percentile}th_percentile")

    def select_sol(self, percentile: int, use_ema: bool) -> float:
        check_percentile(percentile)
        # Only the 50th percentile has an EMA-smoothed variant.
        if use_ema and percentile == 50 and self.ema_landed_tips_50th_percentile is not None:
            return self.ema_landed_tips_50th_percentile
        return self.percentile_sol(percentile)


def _as_float(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProtocolError(f"tip_floor field {field!r} missing or not a number: {value!r}")
    return float(value)


def check_percentile(percentile: int) -> None:
    valid = isinstance(percentile, int) and not isinstance(percentile, bool)
    if not valid or percentile not in SUPPORTED_PERCENTILES:
        raise ConfigurationError(
            f"Unsupported Jito tip percentile {percentile} (use 25,50,75,95,99)"
        )


def sol_to_lamports(sol: float) -> int:
    """Convert SOL to lamports, rounding up so a tip is never under-estimated."""
    lamports = Decimal(str(sol)) * LAMPORTS_PER_SOL
    return int(lamports.to_integral_value(rounding=ROUND_CEILING))


def clamp(value: int, lo: int, hi: int) -> int:
    if lo > hi:
        raise ConfigurationError(f"Invalid tip bounds: min {lo} > max {hi}")
    return max(lo, min(value, hi))


def parse_tip_floor(payload: Any) -> TipFloorSample:
    if not isinstance(payload, list):
        raise ProtocolError(f"tip_floor returned unexpected response: {payload!r}")
    if not payload:
        raise ProtocolError("tip_floor returned empty response")
    return TipFloorSample.from_json(payload[0])


def validate_tip_accounts(result: Any) -> list[str]:
    if not isinstance(result, list):
        raise ProtocolError(f"getTipAccounts returned unexpected result: {result!r}")

    accounts = []
    for account in result:
        try:
            Pubkey.from_string(account)
        except (TypeError, ValueError) as e:
            raise ProtocolError(f"Invalid tip account pubkey {account!r}: {e}") from e
        accounts.append(account)
    return accounts


class TipAccountsCache:
    """
    Holds the tip-account list once it has been fetched.

    Filled at most once and never refreshed; callers that need fresh data
    bypass the cache.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._accounts: Optional[list[str]] = None

    def get(self) -> Optional[list[str]]:
        with self._lock:
            return None if self._accounts is None else list(self._accounts)

    def store(self, accounts: list[str]) -> list[str]:
        # First store wins, a concurrent second fetch gets the stored list back.
        with self._lock:
            if self._accounts is None:
                self._accounts = list(accounts)
                logger.debug("Cached %d tip accounts", len(accounts))
            return list(self._accounts)


DEFAULT_CACHE = TipAccountsCache()
