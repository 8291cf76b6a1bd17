"""
Unit Tests for Service Configuration
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "student_services", "src"))

from student_services.config import PricingConfig, Settings, load_settings
from student_services.errors import ConfigurationError

ENV_KEYS = [
    "VAT_RATE", "SHIPPING_COST", "FREE_SHIPPING_THRESHOLD", "COUPON_CODE", "COUPON_RATE",
    "DEFAULT_HOURLY_RATE", "CHECKOUT_LATENCY_SECONDS",
    "SUPABASE_URL", "SUPABASE_SERVICE_KEY",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    # Point dotenv at an empty file so a developer .env does not leak in
    env_file = tmp_path / ".env"
    env_file.write_text("", encoding="utf-8")
    yield str(env_file)
    # Values loaded from the .env file bypass monkeypatch
    for key in ENV_KEYS:
        os.environ.pop(key, None)


class TestLoadSettings:
    """Test suite for load_settings."""

    def test_defaults(self, clean_env):
        settings = load_settings(clean_env)

        assert settings.pricing == PricingConfig()
        assert settings.default_hourly_rate == 150.0
        assert settings.checkout_latency_seconds == 2.0
        assert not settings.supabase_configured

    def test_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("VAT_RATE", "0.05")
        monkeypatch.setenv("COUPON_CODE", "WELCOME10")
        monkeypatch.setenv("DEFAULT_HOURLY_RATE", "220")
        monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
        monkeypatch.setenv("SUPABASE_SERVICE_KEY", "service-key")

        settings = load_settings(clean_env)

        assert settings.pricing.vat_rate == 0.05
        assert settings.pricing.coupon_code == "WELCOME10"
        assert settings.default_hourly_rate == 220.0
        assert settings.supabase_configured

    def test_env_file_values(self, clean_env):
        with open(clean_env, "w", encoding="utf-8") as f:
            f.write("SHIPPING_COST=45\nCHECKOUT_LATENCY_SECONDS=0\n")

        settings = load_settings(clean_env)

        assert settings.pricing.shipping_cost == 45.0
        assert settings.checkout_latency_seconds == 0.0

    def test_bad_number(self, clean_env, monkeypatch):
        monkeypatch.setenv("FREE_SHIPPING_THRESHOLD", "two hundred")

        with pytest.raises(ConfigurationError):
            load_settings(clean_env)

    def test_settings_are_frozen(self):
        settings = Settings()
        with pytest.raises(Exception):
            settings.default_hourly_rate = 10.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
