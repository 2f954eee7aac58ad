"""Conversation state machine."""

from enum import Enum
from typing import Set


class ConversationStep(str, Enum):
    """Steps of a conversation. Absence of state is the terminal step."""

    PARSING = "parsing"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    AWAITING_PATIENT_REGISTRATION = "awaiting_patient_registration"


class PendingCommand(str, Enum):
    """Mutation waiting for a yes/no answer."""

    SCHEDULE = "schedule"
    CANCEL = "cancel"


# Valid step transitions (clearing the state is always allowed)
VALID_TRANSITIONS: dict[ConversationStep, Set[ConversationStep]] = {
    ConversationStep.PARSING: {
        ConversationStep.PARSING,
        ConversationStep.AWAITING_CONFIRMATION,
        ConversationStep.AWAITING_PATIENT_REGISTRATION,
    },
    ConversationStep.AWAITING_PATIENT_REGISTRATION: {
        ConversationStep.AWAITING_CONFIRMATION,
    },
    ConversationStep.AWAITING_CONFIRMATION: set(),
}


def can_transition(from_step: ConversationStep, to_step: ConversationStep) -> bool:
    """Check if a step transition is valid."""
    return to_step in VALID_TRANSITIONS.get(from_step, set())
