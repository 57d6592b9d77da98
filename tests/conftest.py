"""Shared test fixtures for credsetup."""

from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeRemoteClient, RecordingBrowser

from credsetup.config import Config, DashboardConfig, SetupConfig


@pytest.fixture
def fake_client() -> FakeRemoteClient:
    return FakeRemoteClient()


@pytest.fixture
def browser() -> RecordingBrowser:
    return RecordingBrowser()


@pytest.fixture
def config() -> Config:
    """Test configuration with a short provider wait."""
    return Config(
        dashboard=DashboardConfig(
            base_url="https://dashboard.test/api",
            app_url="https://app.dashboard.test",
            access_key="test-key",
        ),
        setup=SetupConfig(provider_wait_seconds=0.2),
    )


@pytest.fixture
def no_local_aws(tmp_path: Path, monkeypatch) -> Path:
    """Remove any ambient AWS credentials; return a missing credentials path."""
    for name in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_PROFILE"):
        monkeypatch.delenv(name, raising=False)
    missing = tmp_path / "aws" / "credentials"
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(missing))
    return missing
