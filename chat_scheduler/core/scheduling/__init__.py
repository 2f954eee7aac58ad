"""
Scheduling Module

Validation, conversation flow, response intents and the orchestrating
engine for the chat scheduler.

Usage:
    from chat_scheduler.core.scheduling import process_message

    result = await process_message(
        conversation_key="5511999999999",
        text="agendar Ana quinta 14h",
    )
    print(result.response.kind)  # ResponseKind.CONFIRM_SCHEDULE
    print(result.next_state.step)  # ConversationStep.AWAITING_CONFIRMATION
"""

# Domain Types
from chat_scheduler.core.scheduling.types import (
    AppointmentRecord,
    AvailabilityBlockRecord,
    AvailableSlot,
    CancelValidation,
    ConflictInfo,
    ConflictingSession,
    OwnerConfig,
    PatientRecord,
    ScheduleValidation,
    ValidationError,
)

# Store Interfaces
from chat_scheduler.core.scheduling.stores import (
    AppointmentStore,
    AuditLogSink,
    AvailabilityBlockStore,
    OwnerStore,
    PatientStore,
)

# Validation
from chat_scheduler.core.scheduling.validation import ScheduleValidator

# Response Intents
from chat_scheduler.core.scheduling.response import (
    ResponseGenerator,
    ResponseIntent,
    ResponseKind,
    get_response_generator,
)

# Conversation Flow
from chat_scheduler.core.scheduling.flow import (
    ConversationFlow,
    FlowAction,
    get_conversation_flow,
    is_positive_response,
)

# Scheduling Engine (main orchestrator)
from chat_scheduler.core.scheduling.engine import (
    ProcessingResult,
    SchedulingEngine,
    get_scheduling_engine,
    process_message,
)

__all__ = [
    # Types
    "AppointmentRecord",
    "AvailabilityBlockRecord",
    "AvailableSlot",
    "CancelValidation",
    "ConflictInfo",
    "ConflictingSession",
    "OwnerConfig",
    "PatientRecord",
    "ScheduleValidation",
    "ValidationError",
    # Stores
    "AppointmentStore",
    "AuditLogSink",
    "AvailabilityBlockStore",
    "OwnerStore",
    "PatientStore",
    # Validation
    "ScheduleValidator",
    # Responses
    "ResponseGenerator",
    "ResponseIntent",
    "ResponseKind",
    "get_response_generator",
    # Flow
    "ConversationFlow",
    "FlowAction",
    "get_conversation_flow",
    "is_positive_response",
    # Engine
    "ProcessingResult",
    "SchedulingEngine",
    "get_scheduling_engine",
    "process_message",
]
