"""Tests for conversation flow transitions."""

import pytest
from datetime import datetime

from chat_scheduler.core.intelligence.command.types import Action, ParsedCommand
from chat_scheduler.core.intelligence.session.models import (
    AwaitingConfirmationState,
    AwaitingPatientRegistrationState,
    ParsingState,
)
from chat_scheduler.core.intelligence.session.state import PendingCommand
from chat_scheduler.core.scheduling.flow import ConversationFlow, is_positive_response
from chat_scheduler.core.scheduling.response import ResponseKind
from chat_scheduler.core.scheduling.types import (
    AppointmentRecord,
    AvailableSlot,
    CancelValidation,
    ConflictInfo,
    ConflictingSession,
    PatientRecord,
    ScheduleValidation,
    ValidationError,
)

THURSDAY_2PM = datetime(2024, 1, 18, 14, 0)


@pytest.fixture
def flow():
    return ConversationFlow()


@pytest.fixture
def parsing():
    return ParsingState(owner_id="owner-1")


@pytest.fixture
def command():
    return ParsedCommand(
        action=Action.SCHEDULE,
        confidence=0.9,
        patient_name_raw="Ana",
        proposed_datetime=THURSDAY_2PM,
        has_time=True,
    )


class TestPositiveResponse:
    """Test yes/no detection."""

    @pytest.mark.parametrize("text", ["sim", "SIM!", "s", "ok", "Confirmo", "yes", "pode sim"])
    def test_positive(self, text):
        assert is_positive_response(text) is True

    @pytest.mark.parametrize("text", ["não", "nao", "cancela", "nope", ""])
    def test_negative(self, text):
        assert is_positive_response(text) is False


class TestScheduleValidated:
    """Test routing after schedule validation."""

    def test_known_patient_asks_confirmation(self, flow, parsing, command):
        validation = ScheduleValidation(
            is_valid=True,
            patient=PatientRecord(id="patient-1", owner_id="owner-1", full_name="Ana Souza"),
            duration_minutes=50,
        )

        action = flow.on_schedule_validated(parsing, command, validation)

        assert action.action_type == "confirm"
        state = action.next_state
        assert isinstance(state, AwaitingConfirmationState)
        assert state.pending_command == PendingCommand.SCHEDULE
        assert state.patient_name == "Ana Souza"
        assert state.patient_id == "patient-1"
        assert state.proposed_datetime == THURSDAY_2PM
        assert state.pending_data["duration_minutes"] == 50
        assert action.response.kind == ResponseKind.CONFIRM_SCHEDULE
        assert action.should_execute is False

    def test_unknown_patient_asks_registration(self, flow, parsing, command):
        validation = ScheduleValidation(is_valid=True, patient=None, duration_minutes=50)

        action = flow.on_schedule_validated(parsing, command, validation)

        assert action.action_type == "register"
        assert isinstance(action.next_state, AwaitingPatientRegistrationState)
        assert action.next_state.patient_name == "Ana"
        assert action.next_state.proposed_datetime == THURSDAY_2PM
        assert action.response.kind == ResponseKind.CONFIRM_NEW_PATIENT

    def test_conflict_stays_in_parsing(self, flow, parsing, command):
        validation = ScheduleValidation(
            is_valid=False,
            conflicts=ConflictInfo(
                has_conflict=True,
                conflicting_session=ConflictingSession(
                    patient_name="Beto",
                    start=THURSDAY_2PM,
                    end=datetime(2024, 1, 18, 14, 50),
                ),
                available_slots=[
                    AvailableSlot(
                        start=datetime(2024, 1, 18, 15, 0),
                        end=datetime(2024, 1, 18, 15, 50),
                    )
                ],
            ),
        )

        action = flow.on_schedule_validated(parsing, command, validation)

        assert action.next_state is parsing
        assert action.response.kind == ResponseKind.SCHEDULE_CONFLICT
        data = action.response.data
        assert data["conflicting_session"]["patient_name"] == "Beto"
        assert data["available_slots"][0]["formatted"] == "15:00 - 15:50"
        assert data["patient_name"] == "Ana"

    def test_errors_stay_in_parsing(self, flow, parsing, command):
        validation = ScheduleValidation(
            is_valid=False,
            errors=[ValidationError.OUTSIDE_WORKING_HOURS],
        )

        action = flow.on_schedule_validated(parsing, command, validation)

        assert action.next_state is parsing
        assert action.response.kind == ResponseKind.VALIDATION_ERRORS
        assert action.response.data["errors"] == ["outside_working_hours"]


class TestCancelValidated:
    """Test routing after cancel validation."""

    def test_valid_asks_confirmation(self, flow, parsing):
        appointment = AppointmentRecord(
            id="appt-1",
            owner_id="owner-1",
            patient_id="patient-1",
            scheduled_at=THURSDAY_2PM,
            duration_minutes=50,
            patient_name="Ana",
        )

        action = flow.on_cancel_validated(
            parsing, CancelValidation(is_valid=True, appointment=appointment)
        )

        state = action.next_state
        assert state.pending_command == PendingCommand.CANCEL
        assert state.appointment_id == "appt-1"
        assert state.proposed_datetime == THURSDAY_2PM
        assert action.response.kind == ResponseKind.CONFIRM_CANCEL
        assert action.response.data["id"] == "appt-1"

    def test_invalid_responds(self, flow, parsing):
        action = flow.on_cancel_validated(
            parsing,
            CancelValidation(is_valid=False, errors=[ValidationError.NO_SESSION_FOUND]),
        )

        assert action.next_state is parsing
        assert action.response.data["errors"] == ["no_session_found"]


class TestReplies:
    """Test yes/no replies to pending questions."""

    @pytest.fixture
    def confirmation(self):
        return AwaitingConfirmationState(
            owner_id="owner-1",
            pending_command=PendingCommand.CANCEL,
            pending_data={"appointment_id": "appt-1"},
        )

    @pytest.fixture
    def registration(self):
        return AwaitingPatientRegistrationState(
            owner_id="owner-1",
            pending_data={
                "patient_name": "Ana",
                "proposed_datetime": THURSDAY_2PM.isoformat(),
                "duration_minutes": 50,
            },
        )

    def test_confirmation_yes(self, flow, confirmation):
        action = flow.on_confirmation_reply(confirmation, "sim")

        assert action.should_execute is True
        assert action.should_clear is True
        assert action.response is None

    def test_confirmation_no(self, flow, confirmation):
        action = flow.on_confirmation_reply(confirmation, "não")

        assert action.should_execute is False
        assert action.should_clear is True
        assert action.response.kind == ResponseKind.OPERATION_CANCELLED

    def test_registration_yes(self, flow, registration):
        action = flow.on_registration_reply(registration, "ok")

        assert action.should_register_patient is True
        assert action.should_clear is False

    def test_registration_no(self, flow, registration):
        action = flow.on_registration_reply(registration, "nao")

        assert action.should_clear is True
        assert action.response.kind == ResponseKind.REGISTRATION_CANCELLED
        assert action.response.data["patient_name"] == "Ana"

    def test_after_registration(self, flow, registration):
        patient = PatientRecord(id="patient-9", owner_id="owner-1", full_name="Ana")

        action = flow.after_registration(registration, patient)

        state = action.next_state
        assert isinstance(state, AwaitingConfirmationState)
        assert state.pending_command == PendingCommand.SCHEDULE
        assert state.patient_id == "patient-9"
        assert state.proposed_datetime == THURSDAY_2PM
        assert state.created_at == registration.created_at
        assert action.response.kind == ResponseKind.PATIENT_REGISTERED
        assert action.response.data["duration_minutes"] == 50
