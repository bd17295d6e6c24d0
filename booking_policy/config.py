"""
Centralized configuration with environment variable overrides.

Policy defaults, provider timeouts, and notification settings are
configurable here. The tier table itself is data passed into the
evaluator; only its fallbacks live in config.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from booking_policy.logging_context import RequestIdFilter

load_dotenv()

logger = logging.getLogger(__name__)

SUPPORTED_LOCALES = ("th", "en")
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s [%(request_id)s]: %(message)s"


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag; accepts 1/0, true/false, yes/no."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class PolicyConfig:
    """Cancellation policy fallbacks and locale settings."""

    business_timezone: str = os.getenv("BUSINESS_TIMEZONE", "Asia/Bangkok")
    locale: str = os.getenv("POLICY_LOCALE", "th")
    max_reschedules_per_booking: int = _safe_int("MAX_RESCHEDULES_PER_BOOKING", "2")
    refund_processing_days: int = _safe_int("REFUND_PROCESSING_DAYS", "5")


@dataclass(frozen=True)
class PaymentConfig:
    """Payment provider settings."""

    currency: str = os.getenv("PAYMENT_CURRENCY", "THB")
    provider_timeout_sec: float = _safe_float("PAYMENT_PROVIDER_TIMEOUT_SEC", "15.0")


@dataclass(frozen=True)
class NotificationConfig:
    """Notification fan-out settings."""

    channel_timeout_sec: float = _safe_float("NOTIFICATION_CHANNEL_TIMEOUT_SEC", "10.0")
    notify_admin: bool = _safe_bool("NOTIFY_ADMIN", "true")
    support_email: str = os.getenv("SUPPORT_EMAIL", "support@theblissathome.com")
    support_phone: str = os.getenv("SUPPORT_PHONE", "02-000-0000")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    policy: PolicyConfig = field(default_factory=PolicyConfig)
    payment: PaymentConfig = field(default_factory=PaymentConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "booking-policy-engine")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.policy.locale not in SUPPORTED_LOCALES:
        raise ValueError(
            f"POLICY_LOCALE must be one of {SUPPORTED_LOCALES}, got {config.policy.locale!r}"
        )
    if not 0 <= config.policy.max_reschedules_per_booking <= 10:
        raise ValueError(
            "MAX_RESCHEDULES_PER_BOOKING must be between 0 and 10, "
            f"got {config.policy.max_reschedules_per_booking}"
        )
    if not 1 <= config.policy.refund_processing_days <= 60:
        raise ValueError(
            "REFUND_PROCESSING_DAYS must be between 1 and 60, "
            f"got {config.policy.refund_processing_days}"
        )
    if config.payment.provider_timeout_sec <= 0:
        raise ValueError(
            "PAYMENT_PROVIDER_TIMEOUT_SEC must be > 0, "
            f"got {config.payment.provider_timeout_sec}"
        )
    if config.notifications.channel_timeout_sec <= 0:
        raise ValueError(
            "NOTIFICATION_CHANNEL_TIMEOUT_SEC must be > 0, "
            f"got {config.notifications.channel_timeout_sec}"
        )
    if len(config.payment.currency) != 3:
        raise ValueError(
            f"PAYMENT_CURRENCY must be an ISO 4217 code, got {config.payment.currency!r}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
    )
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
