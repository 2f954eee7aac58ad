"""
Conversation Flow Manager.

Decides state transitions: given the current state and what just happened
(a validated command or a yes/no reply), returns the next state and the
response intent. Side effects are left to the engine.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from chat_scheduler.core.text import fold
from chat_scheduler.core.intelligence.command.types import ParsedCommand
from chat_scheduler.core.intelligence.session.models import (
    AwaitingConfirmationState,
    AwaitingPatientRegistrationState,
    ConversationState,
    ParsingState,
)
from chat_scheduler.core.intelligence.session.state import PendingCommand
from .response import ResponseGenerator, ResponseIntent, get_response_generator
from .types import CancelValidation, PatientRecord, ScheduleValidation

logger = logging.getLogger(__name__)


# Matched as substrings of the folded reply
POSITIVE_KEYWORDS = ("sim", "s", "yes", "y", "ok", "confirmar", "confirmo", "confirma")


def is_positive_response(text: str) -> bool:
    """Check if a reply confirms the pending question."""
    folded = fold(text)
    return any(keyword in folded for keyword in POSITIVE_KEYWORDS)


@dataclass
class FlowAction:
    """Action determined by flow manager."""

    action_type: str  # respond, confirm, register, execute, register_patient, abort
    next_state: Optional[ConversationState] = None  # None with should_clear ends it
    response: Optional[ResponseIntent] = None  # Engine fills it in for execute
    should_execute: bool = False  # Run the pending schedule/cancel
    should_register_patient: bool = False  # Create the pending patient
    should_clear: bool = False  # Delete the conversation state


class ConversationFlow:
    """
    State machine for owner conversations.

    parsing -> awaiting_patient_registration -> awaiting_confirmation -> cleared
    """

    def __init__(self, response_generator: Optional[ResponseGenerator] = None):
        self._responses = response_generator or get_response_generator()

    def respond(self, state: ConversationState, response: ResponseIntent) -> FlowAction:
        """Reply without changing step."""
        return FlowAction(action_type="respond", next_state=state, response=response)

    def on_schedule_validated(
        self,
        state: ParsingState,
        command: ParsedCommand,
        validation: ScheduleValidation,
    ) -> FlowAction:
        """Route a validated schedule command.

        Args:
            state: Current parsing state
            command: Parsed schedule command
            validation: Result from the validator

        Returns:
            Stay in parsing on failure, otherwise ask for registration or
            confirmation
        """
        if not validation.is_valid:
            if validation.conflicts.has_conflict:
                response = self._responses.conflict(
                    validation.conflicts,
                    command.patient_name_raw,
                    command.proposed_datetime,
                )
            else:
                response = self._responses.validation_errors(validation.errors)
            return self.respond(state, response)

        proposed = command.proposed_datetime

        if validation.patient is None:
            logger.debug(f"Unknown patient {command.patient_name_raw!r}, asking to register")
            return FlowAction(
                action_type="register",
                next_state=AwaitingPatientRegistrationState(
                    owner_id=state.owner_id,
                    pending_data={
                        "patient_name": command.patient_name_raw,
                        "proposed_datetime": proposed.isoformat(),
                        "duration_minutes": validation.duration_minutes,
                    },
                ),
                response=self._responses.confirm_new_patient(command.patient_name_raw, proposed),
            )

        patient = validation.patient
        return FlowAction(
            action_type="confirm",
            next_state=AwaitingConfirmationState(
                owner_id=state.owner_id,
                pending_command=PendingCommand.SCHEDULE,
                pending_data={
                    "patient_name": patient.full_name,
                    "patient_id": patient.id,
                    "proposed_datetime": proposed.isoformat(),
                    "duration_minutes": validation.duration_minutes,
                },
            ),
            response=self._responses.confirm_schedule(
                patient.full_name, proposed, validation.duration_minutes
            ),
        )

    def on_cancel_validated(
        self,
        state: ParsingState,
        validation: CancelValidation,
    ) -> FlowAction:
        """Route a validated cancel command."""
        if not validation.is_valid:
            return self.respond(state, self._responses.validation_errors(validation.errors))

        appointment = validation.appointment
        return FlowAction(
            action_type="confirm",
            next_state=AwaitingConfirmationState(
                owner_id=state.owner_id,
                pending_command=PendingCommand.CANCEL,
                pending_data={
                    "appointment_id": appointment.id,
                    "patient_name": appointment.patient_name,
                    "patient_id": appointment.patient_id,
                    "proposed_datetime": appointment.scheduled_at.isoformat(),
                },
            ),
            response=self._responses.confirm_cancel(appointment),
        )

    def on_confirmation_reply(
        self,
        state: AwaitingConfirmationState,
        text: str,
    ) -> FlowAction:
        """Yes executes the pending mutation, anything else drops it."""
        if is_positive_response(text):
            return FlowAction(action_type="execute", should_execute=True, should_clear=True)

        logger.debug(f"Pending {state.pending_command.value} declined")
        return FlowAction(
            action_type="abort",
            response=self._responses.operation_cancelled(),
            should_clear=True,
        )

    def on_registration_reply(
        self,
        state: AwaitingPatientRegistrationState,
        text: str,
    ) -> FlowAction:
        """Yes registers the patient, anything else drops the request."""
        if is_positive_response(text):
            return FlowAction(action_type="register_patient", should_register_patient=True)

        return FlowAction(
            action_type="abort",
            response=self._responses.registration_cancelled(state.patient_name),
            should_clear=True,
        )

    def after_registration(
        self,
        state: AwaitingPatientRegistrationState,
        patient: PatientRecord,
    ) -> FlowAction:
        """Move the freshly registered patient's appointment to confirmation."""
        pending_data = dict(state.pending_data)
        pending_data["patient_name"] = patient.full_name
        pending_data["patient_id"] = patient.id

        return FlowAction(
            action_type="confirm",
            next_state=AwaitingConfirmationState(
                owner_id=state.owner_id,
                pending_command=PendingCommand.SCHEDULE,
                pending_data=pending_data,
                created_at=state.created_at,
            ),
            response=self._responses.patient_registered(
                patient.full_name,
                state.proposed_datetime,
                pending_data.get("duration_minutes"),
            ),
        )


# Singleton
_flow: Optional[ConversationFlow] = None


def get_conversation_flow() -> ConversationFlow:
    """Get singleton ConversationFlow."""
    global _flow
    if _flow is None:
        _flow = ConversationFlow()
    return _flow
