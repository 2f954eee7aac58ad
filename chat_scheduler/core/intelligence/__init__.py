"""
Intelligence Layer Module

Command parsing and conversation state for the scheduling assistant.

Usage:
    from chat_scheduler.core.intelligence import (
        parse_command,
        get_conversation_store,
    )

    command = parse_command("agendar Ana quinta 14h")
    print(command.action)  # Action.SCHEDULE

    store = await get_conversation_store()
    state = await store.get("5511999999999")
"""

# Command Parsing
from chat_scheduler.core.intelligence.command.types import Action, ParsedCommand, Timeframe
from chat_scheduler.core.intelligence.command.parser import (
    CommandParser,
    get_command_parser,
    parse_command,
)

# Conversation State
from chat_scheduler.core.intelligence.session.state import ConversationStep, PendingCommand
from chat_scheduler.core.intelligence.session.models import (
    AwaitingConfirmationState,
    AwaitingPatientRegistrationState,
    ConversationState,
    ParsingState,
)
from chat_scheduler.core.intelligence.session.manager import (
    ConversationStateStore,
    RedisConversationStateStore,
    get_conversation_store,
)

__all__ = [
    # Commands
    "Action",
    "ParsedCommand",
    "Timeframe",
    "CommandParser",
    "get_command_parser",
    "parse_command",
    # Conversation State
    "ConversationStep",
    "PendingCommand",
    "AwaitingConfirmationState",
    "AwaitingPatientRegistrationState",
    "ConversationState",
    "ParsingState",
    "ConversationStateStore",
    "RedisConversationStateStore",
    "get_conversation_store",
]
