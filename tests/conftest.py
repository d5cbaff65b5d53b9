import pytest
import os
import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from jito_bundler.client import JitoBundleClient
from jito_bundler.pacing import MethodIntervals, PacingGate
from jito_bundler.tips import TipAccountsCache

# Environment variables for testing
os.environ.setdefault("JITO_LOG_LEVEL", "DEBUG")

ENDPOINT_A = "https://a.block-engine.test/api/v1/bundles"
ENDPOINT_B = "https://b.block-engine.test/api/v1/bundles"
TIP_FLOOR_URL = "https://bundles.test/api/v1/bundles/tip_floor"

NO_PACING = MethodIntervals(send_bundle=0.0, tip_accounts=0.0, other=0.0)


class RecordingSleep:
    """Stands in for asyncio.sleep and remembers the requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def sleeps():
    return RecordingSleep()


@pytest.fixture
def make_client(sleeps):
    """Client with fresh shared state, no pacing and instant backoff."""

    def factory(urls=(ENDPOINT_A, ENDPOINT_B), **kwargs):
        kwargs.setdefault("gate", PacingGate())
        kwargs.setdefault("intervals", NO_PACING)
        kwargs.setdefault("tip_accounts_cache", TipAccountsCache())
        kwargs.setdefault("sleep", sleeps)
        return JitoBundleClient(urls, **kwargs)

    return factory


@pytest.fixture
def client(make_client):
    return make_client()
