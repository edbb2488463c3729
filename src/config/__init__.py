"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="helpdesk-service", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Identity ==========
    jwt_secret: str = Field(
        default="change-me",
        description="Secret used to verify bearer tokens"
    )
    jwt_algorithm: str = Field(default="HS256", description="Bearer token signing algorithm")

    # ========== SLA ==========
    sla_defaults_path: Path = Field(
        default=Path("sla_defaults.yaml"),
        description="Path to YAML with default SLA thresholds for new organizations"
    )
    sla_sweep_interval_seconds: int = Field(
        default=60,
        description="Seconds between SLA breach sweeps (below the floor disables the scheduler)"
    )

    # ========== Notifications ==========
    notification_webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook URL of the notification channel"
    )
    notification_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for notification channel calls",
        ge=0.1,
        le=30
    )
    notification_stagger_seconds: float = Field(
        default=1.0,
        description="Delay between owner and agent assignment notifications",
        ge=0
    )

    # ========== Background Tasks ==========
    background_workers: int = Field(default=4, description="Fire-and-forget worker count", ge=1)
    background_queue_size: int = Field(default=1000, description="Pending side-effect limit", ge=1)

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

SLA_SWEEP_MIN_INTERVAL_SECONDS = 15
SLA_MIN_HOURS = 1
SLA_MAX_HOURS = 720


class Role(str, Enum):
    """User roles."""
    USER = "USER"
    AGENT = "AGENT"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class Priority(str, Enum):
    """Ticket priority levels."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class ActivityAction(str, Enum):
    """Audit trail actions."""
    STATUS_CHANGED = "STATUS_CHANGED"
    PRIORITY_CHANGED = "PRIORITY_CHANGED"
    ASSIGNED = "ASSIGNED"
    UNASSIGNED = "UNASSIGNED"
    DUE_DATE_SET = "DUE_DATE_SET"
    COMMENTED = "COMMENTED"
    SLA_BREACHED = "SLA_BREACHED"


class NotificationKind(str, Enum):
    """Templates understood by the notification channel."""
    STATUS_CHANGED = "status_changed"
    TICKET_ASSIGNED = "ticket_assigned"
    AGENT_ASSIGNED = "agent_assigned"
    SLA_BREACHED = "sla_breached"


# ========== Lists for validation ==========

VALID_ROLES = [Role.USER, Role.AGENT, Role.ADMIN, Role.SUPER_ADMIN]
VALID_PRIORITIES = [Priority.LOW, Priority.MEDIUM, Priority.HIGH]
VALID_STATUSES = [
    TicketStatus.OPEN, TicketStatus.IN_PROGRESS,
    TicketStatus.RESOLVED, TicketStatus.CLOSED
]
OPEN_TICKET_STATUSES = [TicketStatus.OPEN, TicketStatus.IN_PROGRESS]
