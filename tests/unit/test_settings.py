"""Unit tests for settings validation."""

import pytest
from pydantic import ValidationError

from referral_engine.config.settings import Settings


def make_settings(**overrides):
    """Build Settings without reading .env."""
    values = {"database_url": "sqlite+aiosqlite:///:memory:", "environment": "test"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestEarningTypes:
    """Test earning type allow-list parsing."""

    def test_default_types(self):
        """Test default allow-list."""
        settings = make_settings()
        assert settings.get_earning_types() == {
            "badge_purchase",
            "badge_upgrade",
            "ad_mining",
            "subscription",
        }

    def test_whitespace_and_empty_items(self):
        """Test that items are stripped and blanks dropped."""
        settings = make_settings(commission_earning_types=" a , b,, ")
        assert settings.get_earning_types() == {"a", "b"}

    def test_empty(self):
        """Test that an empty allow-list allows nothing."""
        assert make_settings(commission_earning_types="").get_earning_types() == set()


class TestValidation:
    """Test field and model validators."""

    def test_log_level_normalized(self):
        """Test that log level is upper-cased."""
        assert make_settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        """Test that unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            make_settings(log_level="verbose")

    @pytest.mark.parametrize("depth", [0, 51])
    def test_tree_depth_range(self, depth):
        """Test that tree depth stays within 1..50."""
        with pytest.raises(ValidationError):
            make_settings(max_tree_depth=depth)

    @pytest.mark.parametrize("levels", [0, 51])
    def test_default_unlock_levels_range(self, levels):
        """Test that sponsors without badge always unlock at least level 1."""
        with pytest.raises(ValidationError):
            make_settings(default_unlock_levels=levels)

    def test_debug_forbidden_in_production(self):
        """Test that DEBUG cannot be enabled in production."""
        with pytest.raises(ValidationError):
            make_settings(environment="production", debug=True)
