"""
Pytest configuration and fixtures for earnings tracker tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncGenerator, Callable, Generator
from unittest.mock import patch

import httpx
import pytest

from et.config import Settings, clear_settings_cache
from et.data.fetch_client import RateLimitedFetchClient
from et.store.earnings_store import EarningsStore

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing.

    Sets up fake API keys and dispatch configuration.
    """
    env_vars = {
        "SEC_USER_AGENT": "Test User test@example.com",
        "POLYGON_API_KEY": "test-polygon-key",
        "ALPHA_VANTAGE_API_KEY": "test-av-key",
        "GITHUB_ACTIONS_TOKEN": "ghp_test_token_1234567890",
        "GITHUB_OWNER": "octo",
        "GITHUB_REPO": "earnings",
        "CACHE_BACKEND": "memory",
        "SEC_MIN_INTERVAL_MS": "0",
        "HTTP_MAX_RETRIES": "1",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str], temp_dir: Path) -> Generator[Settings, None, None]:
    """Provide a Settings instance with mock configuration.

    Uses temp_dir for the database file.
    """
    with patch.dict(os.environ, {"DATABASE_PATH": str(temp_dir / "db" / "earnings.db")}):
        clear_settings_cache()
        from et.config import get_settings

        settings = get_settings()
        settings.ensure_directories()
        yield settings
        clear_settings_cache()


@pytest.fixture
async def store(temp_dir: Path) -> AsyncGenerator[EarningsStore, None]:
    """Create an initialized earnings store for testing."""
    earnings_store = EarningsStore(temp_dir / "earnings.db")
    await earnings_store.init()
    yield earnings_store
    await earnings_store.close()


@pytest.fixture
def make_fetch_client() -> Callable[[Handler], RateLimitedFetchClient]:
    """Build fetch clients whose requests are answered by ``handler``.

    Retries are disabled so each logical call maps to one request.
    """
    def factory(handler: Handler) -> RateLimitedFetchClient:
        return RateLimitedFetchClient(
            user_agent="Test User test@example.com",
            max_retries=1,
            transport=httpx.MockTransport(handler),
        )

    return factory


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
