"""
Configuration Module
====================

Application settings and configuration management using Pydantic.

Settings here describe *where* the engine keeps its state and how it is
wired. The SLA thresholds themselves are user-editable at runtime and live
in the persisted SLAConfig record (see sla.domain.value_objects).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All variables use the ``SLA_ALERTS_`` prefix, e.g.
    ``SLA_ALERTS_WEBHOOK_URL``.
    """

    # ========== Application ==========
    app_name: str = Field(default="sla-alerts", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Root logging level")

    # ========== Persistence ==========
    sla_config_path: Path = Field(
        default=Path(".sla_alerts/config.yaml"),
        description="Path to the persisted SLA alert configuration (YAML)"
    )
    acknowledged_alerts_path: Path = Field(
        default=Path(".sla_alerts/acknowledged.json"),
        description="Path to the persisted acknowledged alert ids (JSON)"
    )
    acknowledged_retention: Optional[int] = Field(
        default=None,
        description="Keep only the most recent N acknowledged ids (None = keep all)",
        ge=1
    )
    watch_config: bool = Field(
        default=False,
        description="Reload the SLA config when the file changes on disk"
    )

    # ========== Engine ==========
    start_enabled: bool = Field(
        default=True,
        description="Start the polling timer as soon as the engine is built"
    )

    # ========== Webhook Notifications ==========
    webhook_url: Optional[str] = Field(
        default=None,
        description="Incoming webhook URL for system notifications"
    )
    webhook_channel: str = Field(
        default="#sla-alerts",
        description="Channel named in webhook notification payloads"
    )
    webhook_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for webhook calls",
        ge=0.1,
        le=30
    )

    model_config = SettingsConfigDict(
        env_prefix="SLA_ALERTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the logging level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

class TicketStatus(str):
    """Ticket lifecycle statuses known to the engine (the set is open)."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    PENDING_CUSTOMER = "pending_customer"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Priority(str):
    """Ticket priority levels."""
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertLevelName(str):
    """SLA urgency level names, in escalation order."""
    OK = "ok"
    WARNING = "warning"
    DANGER = "danger"
    BREACHED = "breached"


# ========== Lists for validation ==========

TERMINAL_STATUSES = [TicketStatus.RESOLVED, TicketStatus.CLOSED]
ALERT_LEVEL_NAMES = [
    AlertLevelName.OK, AlertLevelName.WARNING,
    AlertLevelName.DANGER, AlertLevelName.BREACHED
]
