"""
Service Configuration

Loads runtime settings from environment variables (and `.env` files via
python-dotenv). Pricing constants, the consultant hourly-rate fallback and the
simulated checkout latency all live here so they can be tuned per deployment.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from student_services.errors import ConfigurationError


@dataclass(frozen=True)
class PricingConfig:
    """Constants consumed by the pricing derivation."""
    vat_rate: float = 0.15
    shipping_cost: float = 30.0
    free_shipping_threshold: float = 200.0
    coupon_code: str = "DISCOUNT20"
    coupon_rate: float = 0.20


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the student services backend."""
    pricing: PricingConfig = PricingConfig()
    # Fallback used for revenue when a consultant has no hourly rate of their own
    default_hourly_rate: float = 150.0
    checkout_latency_seconds: float = 2.0
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)


def _float_env(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}")


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_file: Optional explicit .env path (defaults to ./.env then ../.env)

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If a numeric variable cannot be parsed
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()
        load_dotenv('../.env')

    pricing = PricingConfig(
        vat_rate=_float_env("VAT_RATE", PricingConfig.vat_rate),
        shipping_cost=_float_env("SHIPPING_COST", PricingConfig.shipping_cost),
        free_shipping_threshold=_float_env("FREE_SHIPPING_THRESHOLD", PricingConfig.free_shipping_threshold),
        coupon_code=os.getenv("COUPON_CODE", PricingConfig.coupon_code),
        coupon_rate=_float_env("COUPON_RATE", PricingConfig.coupon_rate),
    )

    return Settings(
        pricing=pricing,
        default_hourly_rate=_float_env("DEFAULT_HOURLY_RATE", 150.0),
        checkout_latency_seconds=_float_env("CHECKOUT_LATENCY_SECONDS", 2.0),
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_service_key=os.getenv("SUPABASE_SERVICE_KEY"),
    )
