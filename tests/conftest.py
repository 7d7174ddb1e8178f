"""Test configuration and fixtures."""
import pytest

from airtable_source.config import PluginOptions
from airtable_source.services.airtable.client import AirtableClient

# ---------------------------------------------------------------------------
# Constants (shared with tests)
# ---------------------------------------------------------------------------
TEST_API_KEY = "patTEST.abc123"
TEST_BASE_ID = "appTEST123"
BASE_URL = "https://api.airtable.com"


def records_page(*field_maps, offset=None, start=0):
    """Build an Airtable list-records response body."""
    body = {
        "records": [
            {"id": f"rec{start + i:03d}", "createdTime": "2024-01-01T00:00:00.000Z", "fields": fields}
            for i, fields in enumerate(field_maps)
        ]
    }
    if offset:
        body["offset"] = offset
    return body


class LogCollector:
    """Stands in for the host's log/debug callbacks."""

    def __init__(self):
        self.messages = []

    def __call__(self, message, *args):
        self.messages.append(message % args if args else message)


# ---------------------------------------------------------------------------
# AirtableClient fixture
# ---------------------------------------------------------------------------


@pytest.fixture
async def api_client():
    """Async AirtableClient wired with test credentials and no retries."""
    async with AirtableClient(
        TEST_API_KEY, TEST_BASE_ID, api_url=BASE_URL, page_size=100, max_attempts=1
    ) as client:
        yield client


@pytest.fixture
def options():
    return PluginOptions(api_key=TEST_API_KEY, base_id=TEST_BASE_ID, tables=["poems", "words"])


@pytest.fixture
def log():
    return LogCollector()


@pytest.fixture
def debug():
    return LogCollector()


@pytest.fixture
def no_api_key_env(monkeypatch, tmp_path):
    """Hide any API key from the environment, .env and loaded settings."""
    from airtable_source import config

    monkeypatch.delenv(config.API_KEY_ENV, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config.settings, "airtable_api_key", None)
