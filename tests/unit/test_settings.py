"""
Settings Tests
Level 1: Environment mapping -> ScreenerSettings.
"""

from __future__ import annotations

import pytest

from fii_screener.config.constants import CACHE_TTL_S, LISTING_URL
from fii_screener.config.settings import load_settings
from fii_screener.exceptions import ConfigurationError, EnvConfigError


@pytest.mark.schema
class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings({})
        assert settings.listing_url == LISTING_URL
        assert settings.cache_ttl_s == CACHE_TTL_S
        assert settings.max_concurrency == 4
        assert settings.log_level == "INFO"

    def test_overrides(self):
        settings = load_settings({
            "FII_LISTING_URL": "http://localhost/list",
            "FII_CACHE_TTL_HOURS": "0.5",
            "FII_MAX_CONCURRENCY": "8",
            "FII_FETCH_TIMEOUT_S": "5",
            "FII_LOG_LEVEL": "debug",
        })
        assert settings.listing_url == "http://localhost/list"
        assert settings.cache_ttl_s == 1800
        assert settings.max_concurrency == 8
        assert settings.fetch_timeout_s == 5.0
        assert settings.log_level == "DEBUG"

    def test_blank_values_ignored(self):
        assert load_settings({"FII_MAX_CONCURRENCY": ""}).max_concurrency == 4

    @pytest.mark.parametrize("env", [
        {"FII_MAX_CONCURRENCY": "many"},
        {"FII_MAX_CONCURRENCY": "0"},
        {"FII_CACHE_TTL_HOURS": "-1"},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(EnvConfigError) as exc_info:
            load_settings(env)
        assert isinstance(exc_info.value, ConfigurationError)
