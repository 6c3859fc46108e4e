import os

# Must be set before src.config.settings is imported
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_BOOKINGS_WEBHOOK_SECRET", "whsec_test")

import httpx
import pytest

from src.client.apiClient import ApiClient
from src.client.clientConfig import ClientConfig

from factories import Recorder


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def config():
    return ClientConfig(base_url="http://test/api/v1", token="t0k3n")


@pytest.fixture
async def api(recorder, config):
    client = ApiClient(config, transport=httpx.MockTransport(recorder))
    yield client
    await client.aclose()
