"""
Tests for app/shared/core/config.py - Configuration management
"""
import pytest
from unittest.mock import patch
from pydantic import ValidationError

from app.shared.core.config import Settings, get_settings, reload_settings_from_environment


class TestSettingsDefaults:
    def test_defaults_match_reaper_pacing(self):
        with patch.dict("os.environ", {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.LIST_PAGE_SIZE == 500
        assert settings.LIST_TIMEOUT_SECONDS == 60
        assert settings.THROTTLE_SECONDS == 0.05
        assert settings.EXECUTION_TIMEOUT_SECONDS == 1200
        assert settings.EXECUTION_INTERVAL_SECONDS == 300
        assert settings.MAX_FAILED_EXECUTIONS == 10
        assert settings.RESOURCE_ALLOWLIST == []
        assert settings.FORCE_DELETE_ON_FAILURE is False
        assert not settings.is_dev

    def test_environment_overrides(self):
        env = {
            "ENVIRONMENT": "dev",
            "TTL_ANNOTATION": "example.com/ttl",
            "RESOURCE_ALLOWLIST": '["pods", "jobs"]',
            "FORCE_DELETE_ON_FAILURE": "true",
            "METRICS_PORT": "9090",
        }
        with patch.dict("os.environ", env, clear=True):
            settings = Settings(_env_file=None)

        assert settings.is_dev
        assert settings.TTL_ANNOTATION == "example.com/ttl"
        assert settings.RESOURCE_ALLOWLIST == ["pods", "jobs"]
        assert settings.FORCE_DELETE_ON_FAILURE is True
        assert settings.METRICS_PORT == 9090

    def test_empty_values_fall_back_to_defaults(self):
        with patch.dict("os.environ", {"METRICS_PORT": "", "LIST_PAGE_SIZE": ""}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.METRICS_PORT is None
        assert settings.LIST_PAGE_SIZE == 500


class TestSettingsValidation:
    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"LIST_PAGE_SIZE": 0}, "LIST_PAGE_SIZE"),
            ({"LIST_MAX_ATTEMPTS": 0}, "LIST_MAX_ATTEMPTS"),
            ({"LIST_RETRY_MIN_WAIT_SECONDS": 5, "LIST_RETRY_MAX_WAIT_SECONDS": 1}, "LIST_RETRY_MIN_WAIT_SECONDS"),
            ({"THROTTLE_SECONDS": -1}, "THROTTLE_SECONDS"),
            ({"EXECUTION_TIMEOUT_SECONDS": 0}, "EXECUTION_TIMEOUT_SECONDS"),
            ({"EXECUTION_INTERVAL_SECONDS": 0}, "EXECUTION_INTERVAL_SECONDS"),
            ({"MAX_FAILED_EXECUTIONS": -1}, "MAX_FAILED_EXECUTIONS"),
            ({"METRICS_PORT": 70000}, "METRICS_PORT"),
            ({"TTL_ANNOTATION": "  "}, "TTL_ANNOTATION"),
            ({"REFRESHED_AT_ANNOTATION": "a/ttl", "TTL_ANNOTATION": "a/ttl"}, "must be different"),
        ],
    )
    def test_invalid_values_rejected(self, overrides, message):
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ValidationError) as exc:
                Settings(_env_file=None, **overrides)
        assert message in str(exc.value)

    def test_zero_failure_budget_allowed(self):
        with patch.dict("os.environ", {}, clear=True):
            assert Settings(_env_file=None, MAX_FAILED_EXECUTIONS=0).MAX_FAILED_EXECUTIONS == 0


class TestSettingsCache:
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_reload_picks_up_environment(self):
        first = get_settings()
        with patch.dict("os.environ", {"LIST_PAGE_SIZE": "42"}):
            refreshed = reload_settings_from_environment()

        assert refreshed is not first
        assert refreshed.LIST_PAGE_SIZE == 42
        assert get_settings() is refreshed
