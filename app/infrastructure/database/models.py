"""
Database models for the CoolCare security core.

Users are owned by the account-management side of the platform; only the
columns the security core reads are mapped here.
"""
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.domain.schemas.security import IncidentSeverity, IncidentType
from app.domain.schemas.user import Role
from app.infrastructure.database.base import Base, UTCDateTime


class User(Base):
    """Platform user account."""
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255))
    role = Column(Enum(Role, native_enum=False, length=20), default=Role.CLIENT, nullable=False)
    created_at = Column(UTCDateTime, nullable=False)

    account_lock = relationship(
        "AccountLock",
        back_populates="user",
        foreign_keys="AccountLock.user_id",
        uselist=False,
        cascade="all, delete-orphan",
    )


class AccountLock(Base):
    """
    Active lock for a user account.

    At most one row per user; a new lock replaces the previous one and
    unlocking deletes it. A NULL expires_at means the lock never lapses on
    its own.
    """
    __tablename__ = "account_lock"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, unique=True)
    locked_at = Column(UTCDateTime, nullable=False)
    expires_at = Column(UTCDateTime, nullable=True, index=True)
    reason = Column(Text, nullable=False)
    locked_by = Column(Uuid, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)

    user = relationship("User", back_populates="account_lock", foreign_keys=[user_id])


class SecurityIncident(Base):
    """Durable, severity-classified security record. Never hard-deleted."""
    __tablename__ = "security_incident"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(Enum(IncidentType, native_enum=False, length=50), nullable=False, index=True)
    severity = Column(
        Enum(IncidentSeverity, native_enum=False, length=20),
        nullable=False,
        default=IncidentSeverity.MEDIUM,
        index=True,
    )
    description = Column(Text, nullable=False)
    incident_metadata = Column("metadata", JSON, nullable=True)

    user_id = Column(Uuid, ForeignKey("user.id", ondelete="SET NULL"), nullable=True, index=True)
    related_user_ids = Column(JSON, nullable=True)
    username = Column(String(100))
    ip_address = Column(String(64))
    user_agent = Column(String(500))

    resolved = Column(Boolean, nullable=False, default=False, index=True)
    resolved_at = Column(UTCDateTime, nullable=True)
    resolved_by = Column(Uuid, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(UTCDateTime, nullable=False, index=True)

    __table_args__ = (
        Index("idx_incident_filter", "type", "severity", "resolved", "created_at"),
    )


class SecurityEvent(Base):
    """Append-only security event stream."""
    __tablename__ = "security_event"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String(100), nullable=False, index=True)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime, nullable=False, index=True)
