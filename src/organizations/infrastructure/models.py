"""
Organization Infrastructure Models
===================================

SQLAlchemy ORM models for organizations and their users.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.config import Role
from src.infrastructure.database import Base
from src.infrastructure.database.types import UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrganizationModel(Base):
    """
    Database model for a tenant.

    Maps to the 'organizations' table.
    """
    __tablename__ = "organizations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # SLA thresholds in hours
    sla_low_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=72)
    sla_medium_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=24)
    sla_high_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=4)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


class UserModel(Base):
    """
    Database model for a user.

    Maps to the 'users' table. organization_id is null only for SUPER_ADMIN.
    """
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.USER.value)

    organization_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("organizations.id"), nullable=True, index=True
    )

    # Password reset (written by the identity service)
    reset_token_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reset_token_expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
