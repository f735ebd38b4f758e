"""
Pytest configuration and fixtures for testing.

This module provides:
- An isolated environment (no stray PORT/HOST/ENV, empty working directory)
- Development settings with short timeouts bound to a free local port
- Test clients for the FastAPI app
"""

import logging
from typing import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from api.server import create_app
from app_settings import Settings

RELAY_ENV_VARS = (
    "PORT",
    "HOST",
    "ENV",
    "ENVIRONMENT",
    "READ_TIMEOUT",
    "WRITE_TIMEOUT",
    "IDLE_TIMEOUT",
    "SHUTDOWN_TIMEOUT",
    "LOG_LEVEL",
    "LOG_JSON",
)


# =============================================================================
# ENVIRONMENT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Clear Relay variables and run from an empty directory (no .env)."""
    for name in RELAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield tmp_path


@pytest.fixture
def restore_logging():
    """Undo setup_logging() changes to the root logger."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


# =============================================================================
# SETTINGS FIXTURES
# =============================================================================


@pytest.fixture
def dev_settings() -> Settings:
    """Development settings on a free loopback port with short deadlines."""
    return Settings(
        port="127.0.0.1:0",
        host="localhost",
        environment="development",
        read_timeout=2.0,
        write_timeout=2.0,
        idle_timeout=2.0,
        shutdown_timeout=1.0,
    )


# =============================================================================
# TEST CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(dev_settings: Settings) -> FastAPI:
    return create_app(dev_settings)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Create a synchronous test client for the FastAPI app."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncClient:
    """Create an async test client for the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
