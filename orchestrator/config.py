"""
Orchestrator - Configuration.

============================================================
RESPONSIBILITY
============================================================
Process-wide settings loaded from the environment (and an
optional .env file).

- Each subsystem keeps its own config dataclass
- NotifierConfig aggregates them and validates cross-field rules
- Misconfiguration is reported before any loop starts

============================================================
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from dotenv import find_dotenv, load_dotenv

from core.exceptions import ConfigurationError, InvalidConfigError
from delivery.config import DeliveryConfig
from ingestion.config import IngestionConfig
from monitoring.metrics_cache import DEFAULT_REFRESH_HOURS
from monitoring.sources import DEFAULT_SOURCES, MetricsSource, parse_sources
from telegram_api.client import DEFAULT_API_URL


class RecipientMode(Enum):
    """Where broadcast recipients come from."""
    DYNAMIC = "dynamic"  # persisted subscribers
    FIXED = "fixed"      # one configured chat


LOG_FORMATS = ("text", "json")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() not in ("false", "0", "no", "off")


def _parse_hours(value: str) -> Tuple[int, ...]:
    try:
        hours = tuple(int(part) for part in value.split(",") if part.strip())
    except ValueError:
        raise InvalidConfigError("METRICS_REFRESH_HOURS", value, "expected comma-separated hours")
    return hours


@dataclass
class NotifierConfig:
    """
    Complete notifier configuration.
    """

    # Transport
    telegram_enabled: bool = True
    bot_token: Optional[str] = None
    app_token: Optional[str] = None
    api_url: str = DEFAULT_API_URL

    # Recipients
    recipient_mode: RecipientMode = RecipientMode.DYNAMIC
    fixed_chat_id: Optional[str] = None
    database_url: Optional[str] = None

    # Deployment
    app_env: str = "development"

    # HTTP surface
    http_host: str = "0.0.0.0"
    http_port: int = 3000

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"
    log_dir: Optional[str] = None

    # Metrics
    metrics_sources: List[MetricsSource] = field(default_factory=lambda: list(DEFAULT_SOURCES))
    metrics_refresh_hours: Tuple[int, ...] = DEFAULT_REFRESH_HOURS

    # Subsystems
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "NotifierConfig":
        """
        Load configuration from environment variables.

        Raises:
            ConfigurationError: if a value cannot be parsed
        """
        load_dotenv(env_file or find_dotenv(usecwd=True))

        mode_value = os.getenv("RECIPIENT_MODE", RecipientMode.DYNAMIC.value).strip().lower()
        try:
            mode = RecipientMode(mode_value)
        except ValueError:
            raise InvalidConfigError("RECIPIENT_MODE", mode_value, "expected dynamic or fixed")

        port_value = os.getenv("PORT", "3000")
        try:
            port = int(port_value)
        except ValueError:
            raise InvalidConfigError("PORT", port_value, "expected an integer")

        try:
            sources = parse_sources(os.getenv("METRICS_SOURCES", ""))
        except ValueError as e:
            raise InvalidConfigError("METRICS_SOURCES", os.getenv("METRICS_SOURCES"), str(e))

        try:
            delivery = DeliveryConfig.from_env()
            ingestion = IngestionConfig.from_env()
        except ValueError as e:
            raise InvalidConfigError("DELIVERY/POLL", None, str(e))

        return cls(
            telegram_enabled=_env_bool("TELEGRAM_ENABLED", True),
            bot_token=os.getenv("TELEGRAM_BOT_TOKEN") or None,
            app_token=os.getenv("TELEGRAM_APP_TOKEN") or None,
            api_url=os.getenv("TELEGRAM_API_URL", DEFAULT_API_URL),
            recipient_mode=mode,
            fixed_chat_id=os.getenv("TELEGRAM_CHAT_ID") or None,
            database_url=os.getenv("DATABASE_URL") or None,
            app_env=os.getenv("APP_ENV", "development"),
            http_host=os.getenv("HTTP_HOST", "0.0.0.0"),
            http_port=port,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", "text").lower(),
            log_dir=os.getenv("LOG_DIR") or None,
            metrics_sources=sources,
            metrics_refresh_hours=_parse_hours(
                os.getenv("METRICS_REFRESH_HOURS", ",".join(str(h) for h in DEFAULT_REFRESH_HOURS))
            ),
            delivery=delivery,
            ingestion=ingestion,
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.telegram_enabled and not self.bot_token:
            errors.append("TELEGRAM_BOT_TOKEN is required when TELEGRAM_ENABLED is true")

        if self.recipient_mode == RecipientMode.DYNAMIC and not self.app_token:
            errors.append("TELEGRAM_APP_TOKEN is required in dynamic recipient mode")

        if self.recipient_mode == RecipientMode.FIXED and not self.fixed_chat_id:
            errors.append("TELEGRAM_CHAT_ID is required in fixed recipient mode")

        if not 0 < self.http_port < 65536:
            errors.append("PORT must be between 1 and 65535")

        if self.log_format not in LOG_FORMATS:
            errors.append(f"LOG_FORMAT must be one of {', '.join(LOG_FORMATS)}")

        if not self.metrics_refresh_hours:
            errors.append("METRICS_REFRESH_HOURS must name at least one hour")
        elif any(not 0 <= hour <= 23 for hour in self.metrics_refresh_hours):
            errors.append("METRICS_REFRESH_HOURS must be between 0 and 23")

        errors.extend(f"delivery: {e}" for e in self.delivery.validate())
        errors.extend(f"ingestion: {e}" for e in self.ingestion.validate())

        return errors

    def ensure_valid(self) -> None:
        """
        Raise if any configuration rule is violated.

        Raises:
            ConfigurationError: listing every violation
        """
        errors = self.validate()
        if errors:
            raise ConfigurationError(
                f"Invalid configuration: {'; '.join(errors)}",
                context={"errors": errors},
            )
