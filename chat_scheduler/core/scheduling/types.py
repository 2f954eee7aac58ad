"""Domain records and validation results for scheduling."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional


class ValidationError(str, Enum):
    """Reasons a command cannot proceed."""

    # Structural
    PATIENT_REQUIRED = "patient_required"
    DATETIME_REQUIRED = "datetime_required"
    DATE_REQUIRED = "date_required"
    INVALID_DATE = "invalid_date"
    INVALID_TIME_RANGE = "invalid_time_range"

    # Business rules
    OUTSIDE_WORKING_HOURS = "outside_working_hours"
    IN_THE_PAST = "in_the_past"

    # Not found
    OWNER_NOT_FOUND = "owner_not_found"
    PATIENT_NOT_FOUND = "patient_not_found"
    NO_SESSION_FOUND = "no_session_found"


@dataclass
class OwnerConfig:
    """Scheduling configuration of an owner."""

    id: str
    full_name: str = ""
    working_hours: dict = field(default_factory=dict)
    default_duration_minutes: int = 50


@dataclass
class PatientRecord:
    id: str
    owner_id: str
    full_name: str


@dataclass
class AppointmentRecord:
    """A scheduled appointment, read with its patient's name."""

    id: str
    owner_id: str
    patient_id: str
    scheduled_at: datetime
    duration_minutes: int
    patient_name: str = ""
    status: str = "scheduled"

    @property
    def ends_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "patient_name": self.patient_name,
            "start": self.scheduled_at.isoformat(),
            "end": self.ends_at.isoformat(),
            "duration_minutes": self.duration_minutes,
            "status": self.status,
        }


@dataclass
class AvailabilityBlockRecord:
    id: str
    owner_id: str
    start_time: datetime
    end_time: datetime
    reason: Optional[str] = None

    def covers(self, start: datetime, end: datetime) -> bool:
        """Check if the block fully contains [start, end)."""
        return self.start_time <= start and end <= self.end_time

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start": self.start_time.isoformat(),
            "end": self.end_time.isoformat(),
            "reason": self.reason,
        }


@dataclass
class AvailableSlot:
    """A free interval offered as an alternative."""

    start: datetime
    end: datetime

    @property
    def formatted(self) -> str:
        return f"{self.start:%H:%M} - {self.end:%H:%M}"

    def to_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "formatted": self.formatted,
        }


@dataclass
class ConflictingSession:
    patient_name: str
    start: datetime
    end: datetime

    def to_dict(self) -> dict:
        return {
            "patient_name": self.patient_name,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


@dataclass
class ConflictInfo:
    """Outcome of the double-booking and availability check."""

    has_conflict: bool = False
    conflicting_session: Optional[ConflictingSession] = None
    conflicting_block: Optional[AvailabilityBlockRecord] = None
    available_slots: list[AvailableSlot] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "has_conflict": self.has_conflict,
            "conflicting_session": (
                self.conflicting_session.to_dict() if self.conflicting_session else None
            ),
            "conflicting_block": (
                self.conflicting_block.to_dict() if self.conflicting_block else None
            ),
            "available_slots": [slot.to_dict() for slot in self.available_slots],
        }


@dataclass
class ScheduleValidation:
    """Result of validating a schedule command."""

    is_valid: bool
    conflicts: ConflictInfo = field(default_factory=ConflictInfo)
    patient: Optional[PatientRecord] = None
    errors: list[ValidationError] = field(default_factory=list)
    duration_minutes: int = 50


@dataclass
class CancelValidation:
    """Result of validating a cancel command."""

    is_valid: bool
    appointment: Optional[AppointmentRecord] = None
    patient: Optional[PatientRecord] = None
    errors: list[ValidationError] = field(default_factory=list)
