from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ["USAGELENS_PROVIDER"] = "claude"
os.environ["USAGELENS_SESSION_COOKIE"] = ""
os.environ["USAGELENS_USAGE_REFRESH_ENABLED"] = "false"

from usagelens.main import create_app  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures"
REFERENCE_NOW = datetime(2025, 1, 1, 5, 0, tzinfo=timezone.utc)


@pytest.fixture
def load_fixture():
    def _load(name: str):
        return json.loads((FIXTURES_DIR / name).read_text(encoding="utf-8"))

    return _load


@pytest.fixture
def now() -> datetime:
    return REFERENCE_NOW


@pytest_asyncio.fixture
async def app_instance():
    return create_app()


@pytest_asyncio.fixture
async def async_client(app_instance):
    async with app_instance.router.lifespan_context(app_instance):
        transport = ASGITransport(app=app_instance)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client


@pytest.fixture(autouse=True)
def reset_settings_cache():
    from usagelens.core.config.settings import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
