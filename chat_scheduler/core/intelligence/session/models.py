"""
Conversation state models.

A conversation is in exactly one of three steps. Each step is its own
dataclass so the fields a step needs are checked when the state is built,
and the orchestrator can dispatch with ``match`` over the variants.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import ClassVar, Optional, Union

from chat_scheduler.core.clock import utcnow
from .state import ConversationStep, PendingCommand


class InvalidStateError(ValueError):
    """Raised when a state is missing the payload its step requires."""
    pass


@dataclass
class _BaseState:
    """Fields shared by every step."""

    step: ClassVar[ConversationStep]

    owner_id: str
    # Slot-filling bag: patient_name, patient_id, proposed_datetime (ISO),
    # appointment_id, duration_minutes
    pending_data: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    expires_at: Optional[datetime] = None

    @property
    def patient_name(self) -> Optional[str]:
        return self.pending_data.get("patient_name")

    @property
    def patient_id(self) -> Optional[str]:
        return self.pending_data.get("patient_id")

    @property
    def appointment_id(self) -> Optional[str]:
        return self.pending_data.get("appointment_id")

    @property
    def proposed_datetime(self) -> Optional[datetime]:
        value = self.pending_data.get("proposed_datetime")
        return datetime.fromisoformat(value) if value else None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if the state outlived its expiry timestamp."""
        if self.expires_at is None:
            return False
        return (now or utcnow()) > self.expires_at

    def touch(self, ttl_seconds: int) -> None:
        """Push expiry forward from now."""
        self.expires_at = utcnow() + timedelta(seconds=ttl_seconds)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        data = {
            "step": self.step.value,
            "owner_id": self.owner_id,
            "pending_data": self.pending_data,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
        return data

    def to_json(self) -> str:
        """Convert to JSON string for Redis storage."""
        return json.dumps(self.to_dict())


@dataclass
class ParsingState(_BaseState):
    """Waiting for a command."""

    step: ClassVar[ConversationStep] = ConversationStep.PARSING


@dataclass(kw_only=True)
class AwaitingConfirmationState(_BaseState):
    """A schedule or cancel is waiting for a yes/no."""

    step: ClassVar[ConversationStep] = ConversationStep.AWAITING_CONFIRMATION

    pending_command: PendingCommand

    def __post_init__(self):
        try:
            self.pending_command = PendingCommand(self.pending_command)
        except ValueError as e:
            raise InvalidStateError(f"Unknown pending command: {self.pending_command}") from e

        if self.pending_command == PendingCommand.SCHEDULE:
            required = ("patient_name", "proposed_datetime")
        else:
            required = ("appointment_id",)
        missing = [key for key in required if not self.pending_data.get(key)]
        if missing:
            raise InvalidStateError(
                f"{self.pending_command.value} confirmation missing {', '.join(missing)}"
            )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["pending_command"] = self.pending_command.value
        return data


@dataclass
class AwaitingPatientRegistrationState(_BaseState):
    """An unknown patient name is waiting for a yes/no to be registered."""

    step: ClassVar[ConversationStep] = ConversationStep.AWAITING_PATIENT_REGISTRATION

    def __post_init__(self):
        if not self.pending_data.get("patient_name"):
            raise InvalidStateError("patient registration requires patient_name")


ConversationState = Union[
    ParsingState,
    AwaitingConfirmationState,
    AwaitingPatientRegistrationState,
]

_STATE_CLASSES = {
    ConversationStep.PARSING: ParsingState,
    ConversationStep.AWAITING_CONFIRMATION: AwaitingConfirmationState,
    ConversationStep.AWAITING_PATIENT_REGISTRATION: AwaitingPatientRegistrationState,
}


def state_from_dict(data: dict) -> ConversationState:
    """
    Rebuild a state from its dictionary form.

    Raises:
        InvalidStateError: unknown step or missing step payload
    """
    try:
        step = ConversationStep(data["step"])
    except (KeyError, ValueError) as e:
        raise InvalidStateError(f"Unknown conversation step: {data.get('step')}") from e

    kwargs = {
        "owner_id": data["owner_id"],
        "pending_data": data.get("pending_data") or {},
        "created_at": datetime.fromisoformat(data["created_at"]),
        "expires_at": (
            datetime.fromisoformat(data["expires_at"]) if data.get("expires_at") else None
        ),
    }
    if step == ConversationStep.AWAITING_CONFIRMATION:
        kwargs["pending_command"] = data.get("pending_command")
        if kwargs["pending_command"] is None:
            raise InvalidStateError("awaiting_confirmation requires pending_command")

    return _STATE_CLASSES[step](**kwargs)


def state_from_json(json_str: str) -> ConversationState:
    """Create a state from its JSON string."""
    return state_from_dict(json.loads(json_str))
