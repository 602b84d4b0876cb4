"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Product constants (lookahead window, match window) are tunable, not hardcoded
"""

import logging
import os
from functools import lru_cache
from typing import Literal, cast

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from vitalvision.domain.ranges import DEFAULT_VITAL_RANGES, VitalRangeTable, load_range_table

# Load environment variables from .env file
load_dotenv()


class ReminderConfig(BaseModel):
    """Reminder scheduling configuration."""

    tick_interval_seconds: float = Field(
        default=60.0, gt=0.0, description="Interval between scheduler ticks"
    )
    appointment_lookahead_minutes: float = Field(
        default=60.0, gt=0.0, description="Window before an appointment in which to remind"
    )
    medication_match_window_minutes: int = Field(
        default=1,
        ge=1,
        le=60,
        description="Minutes after a dose time during which the reminder may fire",
    )


class VitalsConfig(BaseModel):
    """Vital-sign alerting configuration."""

    ranges_path: str | None = Field(
        default=None, description="JSON file overriding the default normal ranges"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    reminders: ReminderConfig = Field(default_factory=ReminderConfig)
    vitals: VitalsConfig = Field(default_factory=VitalsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    reminder_config = ReminderConfig(
        tick_interval_seconds=float(os.getenv("REMINDER_TICK_INTERVAL_SECONDS", "60.0")),
        appointment_lookahead_minutes=float(os.getenv("APPOINTMENT_LOOKAHEAD_MINUTES", "60")),
        medication_match_window_minutes=int(os.getenv("MEDICATION_MATCH_WINDOW_MINUTES", "1")),
    )

    vitals_config = VitalsConfig(ranges_path=os.getenv("VITAL_RANGES_PATH") or None)

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        reminders=reminder_config,
        vitals=vitals_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


@lru_cache
def get_vital_ranges() -> VitalRangeTable:
    """Resolve the active vital range table once per process."""
    path = get_config().vitals.ranges_path
    if path is None:
        return DEFAULT_VITAL_RANGES
    return load_range_table(path)


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Install the structlog processor chain for the configured format."""
    config = config or get_config().logging
    logging.basicConfig(format="%(message)s", level=getattr(logging, config.level))

    renderer = (
        structlog.dev.ConsoleRenderer()
        if config.format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\nCONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\nREMINDERS")
    print(f"Tick Interval: {config.reminders.tick_interval_seconds}s")
    print(f"Appointment Lookahead: {config.reminders.appointment_lookahead_minutes}m")
    print(f"Medication Match Window: {config.reminders.medication_match_window_minutes}m")

    print("\nVITAL RANGES")
    for kind, vital_range in get_vital_ranges().items():
        print(f"{vital_range.display_name} ({kind.value}): {vital_range.describe()}")


if __name__ == "__main__":
    configure_logging()
    print_config_summary()
