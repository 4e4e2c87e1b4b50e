"""Configuration management - Centralized configuration for AuthSentry.

Provides environment-aware configuration with sensible defaults.
All configuration is loaded from environment variables with fallbacks.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from authsentry.common.constants import (
    MonitoringConstants,
    StoreConstants,
    SweepConstants,
)


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AlertSinkType(str, Enum):
    """Alert sink backends."""
    LOG = "log"
    JSONL = "jsonl"
    SNS = "sns"


def _get_project_root() -> Path:
    """Get the project root directory."""
    # settings.py -> config -> common -> authsentry -> src -> project_root
    current = Path(__file__).resolve()
    return current.parent.parent.parent.parent.parent


@dataclass
class Config:
    """Central configuration object for AuthSentry.

    All settings can be overridden via environment variables prefixed with
    AUTHSENTRY_.

    Example:
        AUTHSENTRY_ENVIRONMENT=production
        AUTHSENTRY_LOG_LEVEL=INFO
        AUTHSENTRY_STORE_TIMEOUT_SECONDS=1.5
    """

    # Core settings
    environment: Environment = field(
        default_factory=lambda: Environment(
            os.getenv("AUTHSENTRY_ENVIRONMENT", "development")
        )
    )
    debug: bool = field(
        default_factory=lambda: os.getenv("AUTHSENTRY_DEBUG", "false").lower() == "true"
    )
    log_level: LogLevel = field(
        default_factory=lambda: LogLevel(os.getenv("AUTHSENTRY_LOG_LEVEL", "INFO"))
    )

    # Paths
    project_root: Path = field(default_factory=_get_project_root)
    rules_file: Optional[Path] = field(
        default_factory=lambda: (
            Path(os.environ["AUTHSENTRY_RULES_FILE"])
            if os.getenv("AUTHSENTRY_RULES_FILE") else None
        )
    )

    # Store access
    store_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv(
            "AUTHSENTRY_STORE_TIMEOUT_SECONDS", str(StoreConstants.DEFAULT_TIMEOUT_SECONDS)
        ))
    )

    # Sweep settings
    sweep_window_minutes: int = field(
        default_factory=lambda: int(os.getenv(
            "AUTHSENTRY_SWEEP_WINDOW_MINUTES", str(SweepConstants.DEFAULT_WINDOW_MINUTES)
        ))
    )
    sweep_interval_seconds: float = field(
        default_factory=lambda: float(os.getenv(
            "AUTHSENTRY_SWEEP_INTERVAL_SECONDS", str(SweepConstants.DEFAULT_INTERVAL_SECONDS)
        ))
    )
    sweep_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv(
            "AUTHSENTRY_SWEEP_TIMEOUT_SECONDS", str(SweepConstants.DEFAULT_TIMEOUT_SECONDS)
        ))
    )
    sweep_scheduler_enabled: bool = field(
        default_factory=lambda: os.getenv(
            "AUTHSENTRY_SWEEP_SCHEDULER_ENABLED", "false"
        ).lower() == "true"
    )

    # Alerting
    alert_sink: AlertSinkType = field(
        default_factory=lambda: AlertSinkType(os.getenv("AUTHSENTRY_ALERT_SINK", "log"))
    )
    alert_log_path: Path = field(
        default_factory=lambda: Path(
            os.getenv("AUTHSENTRY_ALERT_LOG_PATH", "./logs/alerts.jsonl")
        )
    )
    alert_sns_topic_arn: Optional[str] = field(
        default_factory=lambda: os.getenv("AUTHSENTRY_ALERT_SNS_TOPIC_ARN")
    )

    # AWS settings (for SNS/CloudWatch)
    aws_region: str = field(
        default_factory=lambda: os.getenv("AWS_DEFAULT_REGION", "us-east-1")
    )

    # Monitoring
    metrics_enabled: bool = field(
        default_factory=lambda: os.getenv("AUTHSENTRY_METRICS_ENABLED", "false").lower() == "true"
    )
    metrics_namespace: str = field(
        default_factory=lambda: os.getenv("AUTHSENTRY_METRICS_NAMESPACE", "AuthSentry")
    )
    metrics_batch_size: int = MonitoringConstants.DEFAULT_BATCH_SIZE

    # API settings
    api_host: str = field(
        default_factory=lambda: os.getenv("AUTHSENTRY_API_HOST", "0.0.0.0")
    )
    api_port: int = field(
        default_factory=lambda: int(os.getenv("AUTHSENTRY_API_PORT", "8000"))
    )

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.store_timeout_seconds <= 0:
            raise ValueError("AUTHSENTRY_STORE_TIMEOUT_SECONDS must be positive")

        if self.sweep_window_minutes <= 0:
            raise ValueError("AUTHSENTRY_SWEEP_WINDOW_MINUTES must be positive")

        if self.alert_sink == AlertSinkType.SNS and not self.alert_sns_topic_arn:
            raise ValueError(
                "AUTHSENTRY_ALERT_SNS_TOPIC_ARN must be set when using the SNS alert sink"
            )

        # Warn about debug in production
        if self.environment == Environment.PRODUCTION and self.debug:
            import warnings
            warnings.warn(
                "Debug mode is enabled in production environment",
                RuntimeWarning,
                stacklevel=2
            )

    @property
    def config_dir(self) -> Path:
        """Get the config directory path."""
        return self.project_root / "config"

    @property
    def default_rules_file(self) -> Path:
        """Rule table shipped with the project."""
        return self.config_dir / "risk_rules.yaml"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT


# Singleton instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        Config: The global configuration singleton.
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
