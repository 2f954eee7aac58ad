"""
Response intents.

The core never produces chat text. Every outcome is a ResponseIntent: a
kind plus the data a renderer needs to phrase it in the owner's language.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from chat_scheduler.core.intelligence.command.types import Action, Timeframe
from .types import (
    AppointmentRecord,
    AvailabilityBlockRecord,
    ConflictInfo,
    ValidationError,
)

logger = logging.getLogger(__name__)


class ResponseKind(str, Enum):
    """What the reply is about."""

    # Direct replies
    NOT_REGISTERED = "not_registered"
    HELP = "help"
    UNKNOWN_COMMAND = "unknown_command"
    AGENDA = "agenda"
    BLOCKED = "blocked"

    # Validation
    VALIDATION_ERRORS = "validation_errors"
    SCHEDULE_CONFLICT = "schedule_conflict"

    # Questions
    CONFIRM_SCHEDULE = "confirm_schedule"
    CONFIRM_CANCEL = "confirm_cancel"
    CONFIRM_NEW_PATIENT = "confirm_new_patient"
    PATIENT_REGISTERED = "patient_registered"

    # Outcomes
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    OPERATION_CANCELLED = "operation_cancelled"
    REGISTRATION_CANCELLED = "registration_cancelled"

    # Failure
    INTERNAL_ERROR = "internal_error"


@dataclass
class ResponseIntent:
    """Structured reply handed to the outbound renderer."""

    kind: ResponseKind
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        result = {"kind": self.kind.value}
        if self.data:
            result["data"] = self.data
        return result


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ResponseGenerator:
    """Builds ResponseIntents for each conversational outcome."""

    def not_registered(self, identity: str) -> ResponseIntent:
        return ResponseIntent(ResponseKind.NOT_REGISTERED, {"identity": identity})

    def help(self) -> ResponseIntent:
        """List of supported commands."""
        return ResponseIntent(
            ResponseKind.HELP,
            {"commands": [action.value for action in Action if action != Action.UNKNOWN]},
        )

    def unknown_command(self, text: str) -> ResponseIntent:
        return ResponseIntent(ResponseKind.UNKNOWN_COMMAND, {"text": text})

    def validation_errors(self, errors: list[ValidationError]) -> ResponseIntent:
        """Command rejected for structural, business or not-found reasons.

        Args:
            errors: Error codes in the order they were detected

        Returns:
            validation_errors intent
        """
        return ResponseIntent(
            ResponseKind.VALIDATION_ERRORS,
            {"errors": [error.value for error in errors]},
        )

    def conflict(
        self,
        conflicts: ConflictInfo,
        patient_name: Optional[str],
        proposed: datetime,
    ) -> ResponseIntent:
        """Requested time is taken; carries the alternatives."""
        data = conflicts.to_dict()
        data["patient_name"] = patient_name
        data["proposed_datetime"] = proposed.isoformat()
        return ResponseIntent(ResponseKind.SCHEDULE_CONFLICT, data)

    def confirm_schedule(
        self,
        patient_name: str,
        start: datetime,
        duration_minutes: int,
    ) -> ResponseIntent:
        return ResponseIntent(
            ResponseKind.CONFIRM_SCHEDULE,
            {
                "patient_name": patient_name,
                "start": start.isoformat(),
                "duration_minutes": duration_minutes,
            },
        )

    def confirm_cancel(self, appointment: AppointmentRecord) -> ResponseIntent:
        return ResponseIntent(ResponseKind.CONFIRM_CANCEL, appointment.to_dict())

    def confirm_new_patient(self, patient_name: str, proposed: datetime) -> ResponseIntent:
        """Typed name matched no patient; ask whether to register it."""
        return ResponseIntent(
            ResponseKind.CONFIRM_NEW_PATIENT,
            {"patient_name": patient_name, "proposed_datetime": proposed.isoformat()},
        )

    def patient_registered(
        self,
        patient_name: str,
        start: Optional[datetime],
        duration_minutes: Optional[int],
    ) -> ResponseIntent:
        """Patient created; the pending appointment now awaits confirmation."""
        return ResponseIntent(
            ResponseKind.PATIENT_REGISTERED,
            {
                "patient_name": patient_name,
                "start": _iso(start),
                "duration_minutes": duration_minutes,
            },
        )

    def scheduled(
        self,
        appointment_id: str,
        patient_name: str,
        start: datetime,
        duration_minutes: int,
    ) -> ResponseIntent:
        return ResponseIntent(
            ResponseKind.SCHEDULED,
            {
                "appointment_id": appointment_id,
                "patient_name": patient_name,
                "start": start.isoformat(),
                "duration_minutes": duration_minutes,
            },
        )

    def cancelled(
        self,
        appointment_id: str,
        patient_name: Optional[str],
        start: Optional[datetime],
    ) -> ResponseIntent:
        return ResponseIntent(
            ResponseKind.CANCELLED,
            {
                "appointment_id": appointment_id,
                "patient_name": patient_name,
                "start": _iso(start),
            },
        )

    def operation_cancelled(self) -> ResponseIntent:
        return ResponseIntent(ResponseKind.OPERATION_CANCELLED)

    def registration_cancelled(self, patient_name: Optional[str]) -> ResponseIntent:
        return ResponseIntent(
            ResponseKind.REGISTRATION_CANCELLED,
            {"patient_name": patient_name},
        )

    def agenda(
        self,
        appointments: list[AppointmentRecord],
        timeframe: Timeframe,
        start: datetime,
        end: datetime,
    ) -> ResponseIntent:
        """Appointments in a date range, ordered by start."""
        return ResponseIntent(
            ResponseKind.AGENDA,
            {
                "timeframe": timeframe.value,
                "start": start.isoformat(),
                "end": end.isoformat(),
                "appointments": [a.to_dict() for a in appointments],
            },
        )

    def blocked(self, block: AvailabilityBlockRecord) -> ResponseIntent:
        return ResponseIntent(ResponseKind.BLOCKED, block.to_dict())

    def internal_error(self) -> ResponseIntent:
        return ResponseIntent(ResponseKind.INTERNAL_ERROR)


# Singleton
_generator: Optional[ResponseGenerator] = None


def get_response_generator() -> ResponseGenerator:
    """Get singleton ResponseGenerator."""
    global _generator
    if _generator is None:
        _generator = ResponseGenerator()
    return _generator
