"""Fixtures for server module unit tests."""

from unittest.mock import MagicMock, patch

import pytest

TEST_SECRET_KEY = "test_secret_key"


@pytest.fixture
def mock_settings():
    """Create a mock settings object."""
    settings = MagicMock()
    settings.is_production = False
    settings.server = MagicMock()
    settings.server.SECRET_KEY = TEST_SECRET_KEY
    settings.server.ALGORITHM = "HS256"
    settings.broadcasts = MagicMock()
    settings.broadcasts.scheduler_enabled = False
    settings.broadcasts.scheduler_interval_minutes = 5
    settings.PREFIX = ""
    return settings


@pytest.fixture
def patched_settings(mock_settings):
    """Patch the settings provider used by server.utils."""
    with patch("server.utils.get_settings", return_value=mock_settings):
        yield mock_settings
