"""
Database Models

SQLAlchemy ORM models for the chat scheduler: owners, their patients,
appointments, availability blocks and the message audit log.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint,
    Enum as SQLEnum, text
)
from sqlalchemy.dialects.postgresql import UUID, JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"


class BlockType(str, Enum):
    """Availability block kind."""
    PERSONAL = "personal"
    VACATION = "vacation"
    OTHER = "other"


class Owner(Base, TimestampMixin):
    """
    Owner model (the practitioner whose calendar is managed).

    The owner is identified by the normalized chat number they message from.
    """

    __tablename__ = "owners"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    identity: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    working_hours: Mapped[dict] = mapped_column(JSON, default=dict)
    session_duration_minutes: Mapped[int] = mapped_column(Integer, default=50)

    # Relationships
    patients: Mapped[List["Patient"]] = relationship(
        "Patient",
        back_populates="owner"
    )
    appointments: Mapped[List["Appointment"]] = relationship(
        "Appointment",
        back_populates="owner"
    )

    def __repr__(self) -> str:
        return f"<Owner(id={self.id}, name='{self.full_name}')>"


class Patient(Base, TimestampMixin):
    """Patient model. Names are unique per owner."""

    __tablename__ = "patients"
    __table_args__ = (
        UniqueConstraint("owner_id", "full_name", name="uq_patient_owner_name"),
        Index("idx_patient_owner", "owner_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("owners.id", ondelete="CASCADE"),
        nullable=False
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    owner: Mapped["Owner"] = relationship("Owner", back_populates="patients")
    appointments: Mapped[List["Appointment"]] = relationship(
        "Appointment",
        back_populates="patient"
    )

    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, name='{self.full_name}')>"


class Appointment(Base, TimestampMixin):
    """
    Appointment model.

    A timed session between the owner and one patient. Cancellation flips
    the status, rows are never deleted.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointment_owner_date", "owner_id", "scheduled_at"),
        Index("idx_appointment_patient", "patient_id"),
        Index("idx_appointment_status", "owner_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("owners.id", ondelete="CASCADE"),
        nullable=False
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False
    )
    scheduled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=50)
    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(AppointmentStatus),
        default=AppointmentStatus.SCHEDULED
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )

    # Relationships
    owner: Mapped["Owner"] = relationship("Owner", back_populates="appointments")
    patient: Mapped["Patient"] = relationship("Patient", back_populates="appointments")

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, patient_id={self.patient_id}, "
            f"start={self.scheduled_at}, status={self.status.value})>"
        )


class AvailabilityBlock(Base, TimestampMixin):
    """A span of time the owner marked as unavailable."""

    __tablename__ = "availability_blocks"
    __table_args__ = (
        Index("idx_block_owner_start", "owner_id", "start_time"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("owners.id", ondelete="CASCADE"),
        nullable=False
    )
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    block_type: Mapped[BlockType] = mapped_column(
        SQLEnum(BlockType),
        default=BlockType.PERSONAL
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AvailabilityBlock(id={self.id}, start={self.start_time}, "
            f"end={self.end_time})>"
        )


class MessageLog(Base):
    """
    Message audit log.

    One row per inbound message and per outbound response-intent.
    """

    __tablename__ = "message_logs"
    __table_args__ = (
        Index("idx_message_log_owner", "owner_id", "processed_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    owner_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("owners.id", ondelete="SET NULL"),
        nullable=True
    )
    message_type: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<MessageLog(id={self.id}, type='{self.message_type}')>"
