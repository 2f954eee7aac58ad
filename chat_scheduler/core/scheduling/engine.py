"""
Scheduling Engine - Main Orchestrator.

Runs one request/response cycle per inbound message: load or create the
conversation state, dispatch on its step, perform the resulting mutation,
persist or clear the state and return a response intent.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Optional

from chat_scheduler.core.clock import local_now
from chat_scheduler.core.identity import normalize_and_resolve
from chat_scheduler.core.intelligence import (
    Action,
    AwaitingConfirmationState,
    AwaitingPatientRegistrationState,
    CommandParser,
    ConversationState,
    ConversationStateStore,
    ParsedCommand,
    ParsingState,
    PendingCommand,
    Timeframe,
    get_command_parser,
    get_conversation_store,
)
from chat_scheduler.core.intelligence.session.state import can_transition
from chat_scheduler.core.scheduling.flow import (
    ConversationFlow,
    FlowAction,
    get_conversation_flow,
)
from chat_scheduler.core.scheduling.response import (
    ResponseGenerator,
    ResponseIntent,
    get_response_generator,
)
from chat_scheduler.core.scheduling.stores import (
    AppointmentStore,
    AuditLogSink,
    AvailabilityBlockStore,
    OwnerStore,
    PatientStore,
)
from chat_scheduler.core.scheduling.types import ValidationError
from chat_scheduler.core.scheduling.validation import ScheduleValidator

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    """Outcome of handling one inbound message."""

    success: bool
    response: ResponseIntent
    next_state: Optional[ConversationState] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        result = {
            "success": self.success,
            "response": self.response.to_dict(),
            "next_state": self.next_state.to_dict() if self.next_state else None,
        }
        if self.error:
            result["error"] = self.error
        return result


def agenda_range(timeframe: Timeframe, now: datetime) -> tuple[datetime, datetime]:
    """
    Date range of an agenda view.

    Day is today, week runs Monday to Sunday, month is the calendar month.
    The end is exclusive.
    """
    today = datetime.combine(now.date(), time())

    if timeframe == Timeframe.DAY:
        return today, today + timedelta(days=1)

    if timeframe == Timeframe.MONTH:
        start = today.replace(day=1)
        if start.month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=start.month + 1)
        return start, end

    start = today - timedelta(days=today.weekday())
    return start, start + timedelta(days=7)


class SchedulingEngine:
    """
    Main orchestrator for owner conversations.

    Coordinates:
    - Owner resolution
    - Conversation state
    - Command parsing
    - Validation
    - Mutations (appointments, patients, blocks)
    - Audit logging
    """

    def __init__(
        self,
        appointments: Optional[AppointmentStore] = None,
        patients: Optional[PatientStore] = None,
        owners: Optional[OwnerStore] = None,
        blocks: Optional[AvailabilityBlockStore] = None,
        audit_log: Optional[AuditLogSink] = None,
        state_store: Optional[ConversationStateStore] = None,
        parser: Optional[CommandParser] = None,
        flow_manager: Optional[ConversationFlow] = None,
        response_generator: Optional[ResponseGenerator] = None,
    ):
        """Initialize engine with optional dependencies.

        Stores left as None are backed by the SQL implementations, the state
        store by Redis.
        """
        if None in (appointments, patients, owners, blocks, audit_log):
            from chat_scheduler.infra.stores import get_sql_stores

            defaults = get_sql_stores()
            appointments = appointments or defaults.appointments
            patients = patients or defaults.patients
            owners = owners or defaults.owners
            blocks = blocks or defaults.blocks
            audit_log = audit_log or defaults.audit_log

        self.appointments = appointments
        self.patients = patients
        self.owners = owners
        self.blocks = blocks
        self.audit_log = audit_log
        self._state_store = state_store
        self._parser = parser
        self._flow_manager = flow_manager
        self._response_generator = response_generator
        self.validator = ScheduleValidator(appointments, patients, owners, blocks)

    async def _get_state_store(self) -> ConversationStateStore:
        """Get conversation state store."""
        if self._state_store is None:
            self._state_store = await get_conversation_store()
        return self._state_store

    def _get_parser(self) -> CommandParser:
        """Get command parser."""
        if self._parser is None:
            self._parser = get_command_parser()
        return self._parser

    def _get_flow_manager(self) -> ConversationFlow:
        """Get flow manager."""
        if self._flow_manager is None:
            self._flow_manager = get_conversation_flow()
        return self._flow_manager

    def _get_response_generator(self) -> ResponseGenerator:
        """Get response generator."""
        if self._response_generator is None:
            self._response_generator = get_response_generator()
        return self._response_generator

    async def handle(
        self,
        conversation_key: str,
        owner_identity: str,
        text: str,
        now: Optional[datetime] = None,
    ) -> ProcessingResult:
        """Process an inbound message.

        Args:
            conversation_key: Key the conversation state is stored under
            owner_identity: Sender identity used to resolve the owner
            text: Message text
            now: Local reference time (defaults to the calendar clock)

        Returns:
            ProcessingResult; never raises
        """
        now = now or local_now()
        responses = self._get_response_generator()
        stored: Optional[ConversationState] = None
        owner_id: Optional[str] = None

        try:
            store = await self._get_state_store()
            stored = await store.get(conversation_key)
            state = stored

            if state is None:
                owner_id = await normalize_and_resolve(owner_identity, self.owners)
                if owner_id is None:
                    result = ProcessingResult(
                        success=True,
                        response=responses.not_registered(owner_identity),
                    )
                    await self._record_exchange(None, conversation_key, text, result)
                    return result

                # Persisted by _apply once the message is handled
                state = ParsingState(owner_id=owner_id)
                logger.debug(f"Conversation started: {conversation_key}")

            owner_id = state.owner_id
            action = await self._dispatch(state, text, now)
            next_state = await self._apply(store, conversation_key, state, action)

            result = ProcessingResult(
                success=True,
                response=action.response,
                next_state=next_state,
            )

        except Exception as e:
            logger.error(
                f"Error processing message for {conversation_key}: {e}",
                exc_info=True,
            )
            result = ProcessingResult(
                success=False,
                response=responses.internal_error(),
                next_state=stored,
                error=str(e),
            )

        await self._record_exchange(owner_id, conversation_key, text, result)
        return result

    async def get_state(self, conversation_key: str) -> Optional[ConversationState]:
        """Current conversation state, if any."""
        store = await self._get_state_store()
        return await store.get(conversation_key)

    async def reset_state(self, conversation_key: str) -> bool:
        """Drop a conversation."""
        store = await self._get_state_store()
        return await store.delete(conversation_key)

    async def _dispatch(
        self,
        state: ConversationState,
        text: str,
        now: datetime,
    ) -> FlowAction:
        """Route a message by conversation step."""
        flow = self._get_flow_manager()

        match state:
            case ParsingState():
                command = self._get_parser().parse(text, now=now)
                return await self._handle_command(state, command, now)

            case AwaitingConfirmationState():
                action = flow.on_confirmation_reply(state, text)
                if action.should_execute:
                    action.response = await self._execute_pending(state)
                return action

            case AwaitingPatientRegistrationState():
                action = flow.on_registration_reply(state, text)
                if action.should_register_patient:
                    patient = await self.patients.find_by_exact_name(
                        state.owner_id, state.patient_name
                    )
                    if patient is None:
                        patient = await self.patients.create(state.owner_id, state.patient_name)
                        logger.info(f"Patient registered: {patient.id}")
                    return flow.after_registration(state, patient)
                return action

            case _:
                raise TypeError(f"Unhandled conversation state: {type(state).__name__}")

    async def _handle_command(
        self,
        state: ParsingState,
        command: ParsedCommand,
        now: datetime,
    ) -> FlowAction:
        """Act on a parsed command while in the parsing step."""
        flow = self._get_flow_manager()
        responses = self._get_response_generator()

        if command.action == Action.SCHEDULE:
            validation = await self.validator.validate_schedule(command, state.owner_id, now)
            return flow.on_schedule_validated(state, command, validation)

        if command.action == Action.CANCEL:
            validation = await self.validator.validate_cancel(command, state.owner_id)
            return flow.on_cancel_validated(state, validation)

        if command.action == Action.VIEW:
            timeframe = command.timeframe or Timeframe.WEEK
            start, end = agenda_range(timeframe, now)
            appointments = await self.appointments.list_appointments(state.owner_id, start, end)
            appointments = [a for a in appointments if a.scheduled_at < end]
            appointments.sort(key=lambda a: a.scheduled_at)
            return flow.respond(state, responses.agenda(appointments, timeframe, start, end))

        if command.action == Action.BLOCK:
            return await self._handle_block(state, command)

        if command.action == Action.HELP:
            return flow.respond(state, responses.help())

        return flow.respond(state, responses.unknown_command(command.raw_text))

    async def _handle_block(self, state: ParsingState, command: ParsedCommand) -> FlowAction:
        """Create an availability block straight away."""
        flow = self._get_flow_manager()
        responses = self._get_response_generator()

        if command.proposed_datetime is None or command.block_end is None:
            error = (
                ValidationError.INVALID_DATE if command.invalid_date
                else ValidationError.DATETIME_REQUIRED
            )
            return flow.respond(state, responses.validation_errors([error]))

        if command.block_end <= command.proposed_datetime:
            return flow.respond(
                state, responses.validation_errors([ValidationError.INVALID_TIME_RANGE])
            )

        block = await self.blocks.create_block(
            state.owner_id,
            command.proposed_datetime,
            command.block_end,
            reason=command.raw_text,
        )
        logger.info(f"Availability block created: {block.id}")
        return flow.respond(state, responses.blocked(block))

    async def _execute_pending(self, state: AwaitingConfirmationState) -> ResponseIntent:
        """Run the confirmed schedule or cancel."""
        responses = self._get_response_generator()

        if state.pending_command == PendingCommand.CANCEL:
            await self.appointments.cancel_appointment(state.appointment_id)
            logger.info(f"Appointment cancelled: {state.appointment_id}")
            return responses.cancelled(
                state.appointment_id, state.patient_name, state.proposed_datetime
            )

        patient_id = state.patient_id
        if patient_id is None:
            patient = await self.validator.find_patient_by_name(
                state.patient_name, state.owner_id
            )
            if patient is None:
                return responses.validation_errors([ValidationError.PATIENT_NOT_FOUND])
            patient_id = patient.id

        duration = state.pending_data.get("duration_minutes")
        if duration is None:
            owner = await self.owners.get_owner(state.owner_id)
            if owner is None:
                return responses.validation_errors([ValidationError.OWNER_NOT_FOUND])
            duration = owner.default_duration_minutes

        start = state.proposed_datetime
        appointment_id = await self.appointments.create_appointment(
            state.owner_id, patient_id, start, duration
        )
        logger.info(f"Appointment scheduled: {appointment_id}")
        return responses.scheduled(appointment_id, state.patient_name, start, duration)

    async def _apply(
        self,
        store: ConversationStateStore,
        conversation_key: str,
        current: ConversationState,
        action: FlowAction,
    ) -> Optional[ConversationState]:
        """Persist the transition. Every write restarts the TTL."""
        if action.should_clear or action.next_state is None:
            await store.delete(conversation_key)
            logger.debug(f"Conversation cleared: {conversation_key}")
            return None

        if action.next_state.step != current.step and not can_transition(
            current.step, action.next_state.step
        ):
            logger.warning(
                f"Unexpected transition: {current.step.value} -> "
                f"{action.next_state.step.value}"
            )

        await store.set(conversation_key, action.next_state)
        return action.next_state

    async def _record_exchange(
        self,
        owner_id: Optional[str],
        conversation_key: str,
        text: str,
        result: ProcessingResult,
    ) -> None:
        """Audit the inbound message and the reply; failures only log."""
        details = {"conversation_key": conversation_key}
        try:
            await self.audit_log.append(owner_id, "incoming", text, details)
            await self.audit_log.append(
                owner_id,
                "response",
                result.response.kind.value,
                {**details, "response": result.response.to_dict(), "success": result.success},
            )
        except Exception as e:
            logger.warning(f"Failed to write audit log for {conversation_key}: {e}")


# Singleton
_engine: Optional[SchedulingEngine] = None


def get_scheduling_engine() -> SchedulingEngine:
    """Get singleton SchedulingEngine."""
    global _engine
    if _engine is None:
        _engine = SchedulingEngine()
    return _engine


async def process_message(
    conversation_key: str,
    text: str,
    owner_identity: Optional[str] = None,
) -> ProcessingResult:
    """
    Convenience function to process a message.

    Usage:
        result = await process_message(
            conversation_key="5511999999999",
            text="agendar Ana quinta 14h",
        )
        print(result.response.kind)  # ResponseKind.CONFIRM_SCHEDULE
    """
    engine = get_scheduling_engine()
    return await engine.handle(
        conversation_key,
        owner_identity or conversation_key,
        text,
    )
