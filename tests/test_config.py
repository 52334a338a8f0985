"""Tests for runtime settings."""

import pytest

from kyoboscout.config import Settings
from kyoboscout.errors import ConfigurationError


class TestDefaults:
    """Tests for default settings."""

    def test_defaults(self):
        """Should match the documented defaults."""
        settings = Settings()
        assert settings.timeout == 10
        assert settings.retries == 3
        assert settings.min_request_interval == 1
        assert settings.max_results == 20
        assert settings.enable_detail_fetch is False
        assert settings.book_cache_size == 200
        assert settings.book_cache_ttl == 3600
        assert settings.search_cache_ttl == 1800

    def test_defaults_are_valid(self):
        """Should pass validation unchanged."""
        assert Settings().validate() == Settings()


class TestFromEnv:
    """Tests for Settings.from_env."""

    def test_reads_prefixed_variables(self):
        """Should coerce values to the field types."""
        settings = Settings.from_env(
            {
                "KYOBOSCOUT_TIMEOUT": "2.5",
                "KYOBOSCOUT_RETRIES": "5",
                "KYOBOSCOUT_ENABLE_DETAIL_FETCH": "yes",
                "KYOBOSCOUT_MAX_RESULTS": " 10 ",
                "UNRELATED": "1",
            }
        )
        assert settings.timeout == 2.5
        assert settings.retries == 5
        assert settings.enable_detail_fetch is True
        assert settings.max_results == 10

    def test_blank_values_are_ignored(self):
        """Should keep defaults for empty variables."""
        assert Settings.from_env({"KYOBOSCOUT_TIMEOUT": ""}).timeout == 10

    @pytest.mark.parametrize(
        "name,value",
        [
            ("KYOBOSCOUT_RETRIES", "many"),
            ("KYOBOSCOUT_ENABLE_DETAIL_FETCH", "maybe"),
            ("KYOBOSCOUT_TIMEOUT", "fast"),
        ],
    )
    def test_unparseable_values(self, name, value):
        """Should raise ConfigurationError for values of the wrong type."""
        with pytest.raises(ConfigurationError) as exc_info:
            Settings.from_env({name: value})
        assert exc_info.value.setting in name.lower()


class TestValidation:
    """Tests for range checks."""

    @pytest.mark.parametrize(
        "changes,setting",
        [
            ({"timeout": 0}, "timeout"),
            ({"retries": 0}, "retries"),
            ({"min_request_interval": -1}, "min_request_interval"),
            ({"max_results": 0}, "max_results"),
            ({"max_results": 1000}, "max_results"),
            ({"detail_concurrency": 0}, "detail_concurrency"),
            ({"book_cache_size": 0}, "book_cache_size"),
            ({"search_cache_ttl": 0}, "search_cache_ttl"),
        ],
    )
    def test_out_of_range(self, changes, setting):
        """Should name the offending setting."""
        with pytest.raises(ConfigurationError) as exc_info:
            Settings().with_overrides(**changes)
        assert exc_info.value.setting == setting

    def test_overrides_ignore_none(self):
        """Should only replace values that were given."""
        settings = Settings().with_overrides(timeout=3, retries=None)
        assert settings.timeout == 3
        assert settings.retries == 3

    def test_user_message_names_setting(self):
        """Should mention the setting in the user message."""
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(retries=0).validate()
        assert "retries" in exc_info.value.user_message
