from dataclasses import dataclass
from typing import Iterable

from .errors import ConfigurationError

BUNDLES_PATH = "/api/v1/bundles"


@dataclass(frozen=True)
class Region:
    code: str       # "ny", "frankfurt", ...
    base_url: str   # Block engine host, without the bundles path


REGIONS: list[Region] = [
    Region(code="mainnet", base_url="https://mainnet.block-engine.jito.wtf"),
    Region(code="amsterdam", base_url="https://amsterdam.mainnet.block-engine.jito.wtf"),
    Region(code="frankfurt", base_url="https://frankfurt.mainnet.block-engine.jito.wtf"),
    Region(code="ny", base_url="https://ny.mainnet.block-engine.jito.wtf"),
    Region(code="tokyo", base_url="https://tokyo.mainnet.block-engine.jito.wtf"),
    Region(code="slc", base_url="https://slc.mainnet.block-engine.jito.wtf"),
]


def normalize_endpoint(raw: str) -> str:
    """Turn a host or a full bundles URL into the bundles JSON-RPC URL."""
    url = raw.strip().rstrip("/")
    if not url:
        return ""
    if not url.endswith(BUNDLES_PATH):
        url = f"{url}{BUNDLES_PATH}"
    return url


def normalize_endpoints(raws: Iterable[str]) -> tuple[str, ...]:
    # Order is fallback priority: first listed is tried first.
    return tuple(url for url in (normalize_endpoint(raw) for raw in raws) if url)


def parse_endpoint_list(value: str) -> tuple[str, ...]:
    return normalize_endpoints(value.split(","))


def endpoints_for_regions(codes: Iterable[str]) -> tuple[str, ...]:
    by_code = {region.code: region for region in REGIONS}
    urls = []
    for code in codes:
        region = by_code.get(code.strip().lower())
        if region is None:
            raise ConfigurationError(f"Unknown region code: {code}")
        urls.append(region.base_url)
    return normalize_endpoints(urls)
