import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .endpoints import parse_endpoint_list
from .pacing import MethodIntervals
from .tips import DEFAULT_TIP_FLOOR_URL

logger = logging.getLogger(__name__)


def _env_number(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number, using %s", name, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring %s=%r: negative, using %s", name, raw, default)
        return default
    return value


def _env_millis(env: Mapping[str, str], name: str, default_ms: float) -> float:
    return _env_number(env, name, default_ms) / 1000.0


@dataclass(frozen=True)
class Settings:
    block_engine_urls: tuple[str, ...] = ()
    intervals: MethodIntervals = field(default_factory=MethodIntervals)
    request_timeout: float = 10.0
    rpc_fallback_delay: float = 0.0      # seconds, 0 disables the fallback
    rpc_fallback_url: Optional[str] = None
    tip_floor_url: str = DEFAULT_TIP_FLOOR_URL
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Read settings from JITO_* environment variables."""
        env = os.environ if env is None else env

        intervals = MethodIntervals(
            send_bundle=_env_millis(env, "JITO_SEND_BUNDLE_MIN_INTERVAL_MS", 0),
            tip_accounts=_env_millis(env, "JITO_TIP_ACCOUNTS_MIN_INTERVAL_MS", 1200),
            other=_env_millis(env, "JITO_OTHER_MIN_INTERVAL_MS", 250),
        )
        return cls(
            block_engine_urls=parse_endpoint_list(env.get("JITO_BLOCK_ENGINE_URLS", "")),
            intervals=intervals,
            request_timeout=_env_number(env, "JITO_REQUEST_TIMEOUT_SECS", 10.0),
            rpc_fallback_delay=_env_millis(env, "JITO_RPC_FALLBACK_DELAY_MS", 0),
            rpc_fallback_url=env.get("JITO_RPC_FALLBACK_URL") or None,
            tip_floor_url=env.get("JITO_TIP_FLOOR_URL") or DEFAULT_TIP_FLOOR_URL,
            log_level=(env.get("JITO_LOG_LEVEL") or "INFO").upper(),
        )
