"""
Conversation state module.

One state per conversation key, stored with a TTL. The state is a tagged
union of three step variants; absence of state means the conversation is
finished.
"""

from .state import ConversationStep, PendingCommand, can_transition
from .models import (
    AwaitingConfirmationState,
    AwaitingPatientRegistrationState,
    ConversationState,
    InvalidStateError,
    ParsingState,
    state_from_dict,
    state_from_json,
)
from .manager import (
    ConversationStateStore,
    RedisConversationStateStore,
    get_conversation_store,
)

__all__ = [
    # Steps
    "ConversationStep",
    "PendingCommand",
    "can_transition",
    # Models
    "AwaitingConfirmationState",
    "AwaitingPatientRegistrationState",
    "ConversationState",
    "InvalidStateError",
    "ParsingState",
    "state_from_dict",
    "state_from_json",
    # Store
    "ConversationStateStore",
    "RedisConversationStateStore",
    "get_conversation_store",
]
