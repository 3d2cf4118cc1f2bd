"""
Pytest configuration and shared fixtures.

Contains common test fixtures and setup for all test modules.
"""

from pathlib import Path
from typing import Any, Dict, Generator

import pytest
from fastapi.testclient import TestClient

from src.simple_todo.config import (
    AuditSettings,
    SecuritySettings,
    Settings,
    SupabaseSettings,
)
from src.simple_todo.core.provider import MockAuthProvider
from src.simple_todo.main import create_app


VALID_TOKEN = "mock-access-token-1234567890"


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings for a development-style app with the mock provider."""
    return Settings(
        environment="test",
        json_logs=False,
        supabase=SupabaseSettings(mock=True),
        security=SecuritySettings(rate_limit_enabled=False, enforce_https=False),
        audit=AuditSettings(sink="console", file_path=tmp_path / "audit.log"),
    )


@pytest.fixture
def rate_limited_settings(tmp_path: Path) -> Settings:
    """Settings with small rate limits so tests can exhaust them quickly."""
    return Settings(
        environment="test",
        json_logs=False,
        supabase=SupabaseSettings(mock=True),
        security=SecuritySettings(
            rate_limit_enabled=True,
            enforce_https=False,
            auth_window_seconds=900,
            auth_max_requests=2,
            login_window_seconds=900,
            login_max_requests=2,
        ),
        audit=AuditSettings(sink="console", file_path=tmp_path / "audit.log"),
    )


@pytest.fixture
def production_settings(tmp_path: Path) -> Settings:
    """Production defaults (HTTPS enforcement, CSP, rate limiting) over the mock provider."""
    return Settings(
        environment="production",
        json_logs=False,
        frontend_url="https://todo.example.com",
        supabase=SupabaseSettings(mock=True),
        audit=AuditSettings(sink="console", file_path=tmp_path / "audit.log"),
    )


@pytest.fixture
def mock_provider() -> MockAuthProvider:
    return MockAuthProvider()


@pytest.fixture
def test_client(test_settings: Settings, mock_provider: MockAuthProvider) -> Generator[TestClient, None, None]:
    """FastAPI test client with test configuration."""
    app = create_app(test_settings, provider=mock_provider)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def rate_limited_client(
    rate_limited_settings: Settings, mock_provider: MockAuthProvider
) -> Generator[TestClient, None, None]:
    """Test client with rate limiting enabled."""
    app = create_app(rate_limited_settings, provider=mock_provider)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def production_client(
    production_settings: Settings, mock_provider: MockAuthProvider
) -> Generator[TestClient, None, None]:
    """Test client configured like a production deployment."""
    app = create_app(production_settings, provider=mock_provider)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def registration_payload() -> Dict[str, Any]:
    """Sample valid registration body."""
    return {
        "email": "Jane.Doe@Example.com",
        "password": "Str0ng!Pass",
        "name": "Jane Doe",
    }


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {VALID_TOKEN}"}
