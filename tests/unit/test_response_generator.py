"""Tests for response intents."""

from datetime import datetime

from chat_scheduler.core.intelligence.command.types import Timeframe
from chat_scheduler.core.scheduling.response import (
    ResponseGenerator,
    ResponseIntent,
    ResponseKind,
    get_response_generator,
)
from chat_scheduler.core.scheduling.types import (
    AppointmentRecord,
    AvailabilityBlockRecord,
    ValidationError,
)


class TestResponseIntent:
    """Test serialization."""

    def test_to_dict_without_data(self):
        assert ResponseIntent(ResponseKind.OPERATION_CANCELLED).to_dict() == {
            "kind": "operation_cancelled"
        }

    def test_to_dict_with_data(self):
        intent = ResponseIntent(ResponseKind.UNKNOWN_COMMAND, {"text": "oi"})

        assert intent.to_dict() == {"kind": "unknown_command", "data": {"text": "oi"}}


class TestResponseGenerator:
    """Test builders."""

    def setup_method(self):
        self.generator = ResponseGenerator()

    def test_help_lists_commands(self):
        intent = self.generator.help()

        assert intent.kind == ResponseKind.HELP
        assert intent.data["commands"] == ["schedule", "cancel", "view", "block", "help"]

    def test_validation_errors_keep_order(self):
        intent = self.generator.validation_errors(
            [ValidationError.OUTSIDE_WORKING_HOURS, ValidationError.IN_THE_PAST]
        )

        assert intent.data == {"errors": ["outside_working_hours", "in_the_past"]}

    def test_agenda(self):
        appointment = AppointmentRecord(
            id="appt-1",
            owner_id="owner-1",
            patient_id="patient-1",
            scheduled_at=datetime(2024, 1, 18, 14, 0),
            duration_minutes=50,
            patient_name="Ana",
        )

        intent = self.generator.agenda(
            [appointment],
            Timeframe.WEEK,
            datetime(2024, 1, 15),
            datetime(2024, 1, 22),
        )

        assert intent.kind == ResponseKind.AGENDA
        assert intent.data["timeframe"] == "week"
        assert intent.data["appointments"][0]["end"] == "2024-01-18T14:50:00"

    def test_blocked(self):
        block = AvailabilityBlockRecord(
            id="block-1",
            owner_id="owner-1",
            start_time=datetime(2024, 1, 18, 12, 0),
            end_time=datetime(2024, 1, 18, 18, 0),
            reason="bloquear quinta tarde",
        )

        intent = self.generator.blocked(block)

        assert intent.kind == ResponseKind.BLOCKED
        assert intent.data["start"] == "2024-01-18T12:00:00"
        assert intent.data["reason"] == "bloquear quinta tarde"

    def test_cancelled_without_start(self):
        intent = self.generator.cancelled("appt-1", "Ana", None)

        assert intent.data == {"appointment_id": "appt-1", "patient_name": "Ana", "start": None}

    def test_singleton(self):
        assert get_response_generator() is get_response_generator()
