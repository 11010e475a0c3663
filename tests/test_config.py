"""
Tests for configuration.
"""
import pytest
from pydantic import ValidationError

from config import Settings


@pytest.mark.unit
class TestConfiguration:
    """Test configuration management."""

    def test_default_values(self):
        """Test default configuration values."""
        settings = Settings(_env_file=None)

        assert settings.report_page_size == 300
        assert settings.report_call_limit is None
        assert settings.match_by_name is True
        assert settings.max_retries == 3
        assert settings.zoom_api_base == "https://api.zoom.us/v2"

    def test_zoom_not_configured_without_credentials(self):
        settings = Settings(_env_file=None, zoom_client_id="id", zoom_client_secret=None, zoom_account_id="acct")
        assert settings.is_zoom_configured is False

    def test_zoom_configured_with_all_credentials(self):
        settings = Settings(
            _env_file=None,
            zoom_client_id="id",
            zoom_client_secret="secret",
            zoom_account_id="acct",
        )
        assert settings.is_zoom_configured is True

    def test_settings_read_from_environment(self, monkeypatch):
        monkeypatch.setenv("ZOOM_CLIENT_ID", "env-client")
        monkeypatch.setenv("REPORT_CALL_LIMIT", "25")
        monkeypatch.setenv("MATCH_BY_NAME", "false")

        settings = Settings(_env_file=None)

        assert settings.zoom_client_id == "env-client"
        assert settings.report_call_limit == 25
        assert settings.match_by_name is False

    @pytest.mark.parametrize("page_size", [0, 301])
    def test_invalid_page_size_fails(self, page_size):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, report_page_size=page_size)

    def test_zero_retries_fails(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, max_retries=0)

    def test_sqlite_detection(self):
        assert Settings(_env_file=None, database_url="sqlite+aiosqlite:///reports.db").is_sqlite is True
        assert Settings(_env_file=None).is_sqlite is False
