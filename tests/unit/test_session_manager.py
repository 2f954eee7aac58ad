"""Tests for conversation state models and storage."""

import pytest
from unittest.mock import AsyncMock, patch
from datetime import datetime, timedelta, timezone

from chat_scheduler.core.intelligence.session.manager import (
    STATE_PREFIX,
    RedisConversationStateStore,
)
from chat_scheduler.core.intelligence.session.models import (
    AwaitingConfirmationState,
    AwaitingPatientRegistrationState,
    InvalidStateError,
    ParsingState,
    state_from_dict,
    state_from_json,
)
from chat_scheduler.core.intelligence.session.state import (
    ConversationStep,
    PendingCommand,
    can_transition,
)

MANAGER = "chat_scheduler.core.intelligence.session.manager.get_redis"


def _confirmation() -> AwaitingConfirmationState:
    return AwaitingConfirmationState(
        owner_id="owner-1",
        pending_command=PendingCommand.SCHEDULE,
        pending_data={
            "patient_name": "Ana",
            "patient_id": "patient-1",
            "proposed_datetime": "2024-01-18T14:00:00",
            "duration_minutes": 50,
        },
    )


class TestConversationStates:
    """Test per-step payload rules."""

    def test_parsing_state(self):
        state = ParsingState(owner_id="owner-1")

        assert state.step == ConversationStep.PARSING
        assert state.pending_data == {}
        assert state.expires_at is None

    def test_schedule_confirmation_requires_name_and_datetime(self):
        with pytest.raises(InvalidStateError):
            AwaitingConfirmationState(
                owner_id="owner-1",
                pending_command=PendingCommand.SCHEDULE,
                pending_data={"patient_name": "Ana"},
            )

    def test_cancel_confirmation_requires_appointment(self):
        with pytest.raises(InvalidStateError):
            AwaitingConfirmationState(
                owner_id="owner-1",
                pending_command=PendingCommand.CANCEL,
                pending_data={"patient_name": "Ana"},
            )

    def test_unknown_pending_command(self):
        with pytest.raises(InvalidStateError):
            AwaitingConfirmationState(
                owner_id="owner-1",
                pending_command="reschedule",
                pending_data={"appointment_id": "appt-1"},
            )

    def test_registration_requires_name(self):
        with pytest.raises(InvalidStateError):
            AwaitingPatientRegistrationState(owner_id="owner-1")

    def test_accessors(self):
        state = _confirmation()

        assert state.patient_name == "Ana"
        assert state.patient_id == "patient-1"
        assert state.proposed_datetime == datetime(2024, 1, 18, 14, 0)
        assert state.appointment_id is None

    def test_json_roundtrip_keeps_variant(self):
        state = _confirmation()
        state.touch(300)

        restored = state_from_json(state.to_json())

        assert isinstance(restored, AwaitingConfirmationState)
        assert restored.pending_command == PendingCommand.SCHEDULE
        assert restored.pending_data == state.pending_data
        assert restored.expires_at == state.expires_at

    def test_from_dict_unknown_step(self):
        with pytest.raises(InvalidStateError):
            state_from_dict({"step": "idle", "owner_id": "owner-1"})

    def test_from_dict_confirmation_without_command(self):
        data = _confirmation().to_dict()
        del data["pending_command"]

        with pytest.raises(InvalidStateError):
            state_from_dict(data)

    def test_expiry(self):
        state = ParsingState(owner_id="owner-1")
        state.touch(300)

        assert state.is_expired() is False
        assert state.is_expired(datetime.now(timezone.utc) + timedelta(seconds=301)) is True


class TestStepTransitions:
    """Test the step graph."""

    def test_parsing_can_go_anywhere(self):
        for step in ConversationStep:
            assert can_transition(ConversationStep.PARSING, step)

    def test_registration_leads_to_confirmation(self):
        assert can_transition(
            ConversationStep.AWAITING_PATIENT_REGISTRATION,
            ConversationStep.AWAITING_CONFIRMATION,
        )
        assert not can_transition(
            ConversationStep.AWAITING_PATIENT_REGISTRATION,
            ConversationStep.PARSING,
        )

    def test_confirmation_only_clears(self):
        for step in ConversationStep:
            assert not can_transition(ConversationStep.AWAITING_CONFIRMATION, step)


class TestRedisConversationStateStore:
    """Test Redis-backed conversation storage."""

    @pytest.fixture
    def mock_redis(self):
        """Create mock Redis client."""
        mock = AsyncMock()
        mock.get = AsyncMock(return_value=None)
        mock.setex = AsyncMock()
        mock.delete = AsyncMock(return_value=1)
        return mock

    @pytest.fixture
    def store(self):
        """Create state store."""
        return RedisConversationStateStore(ttl_seconds=300)

    @pytest.mark.asyncio
    async def test_set_writes_with_ttl(self, store, mock_redis):
        """Test saving restarts the TTL."""
        state = ParsingState(owner_id="owner-1")

        with patch(MANAGER, return_value=mock_redis):
            await store.set("chat-1", state)

        mock_redis.setex.assert_called_once()
        key, ttl, payload = mock_redis.setex.call_args.args
        assert key == f"{STATE_PREFIX}chat-1"
        assert ttl == 300
        assert state_from_json(payload).owner_id == "owner-1"
        assert state.expires_at is not None

    @pytest.mark.asyncio
    async def test_get_existing(self, store, mock_redis):
        """Test reading a stored state."""
        state = _confirmation()
        state.touch(300)
        mock_redis.get = AsyncMock(return_value=state.to_json())

        with patch(MANAGER, return_value=mock_redis):
            loaded = await store.get("chat-1")

        assert isinstance(loaded, AwaitingConfirmationState)
        assert loaded.patient_name == "Ana"

    @pytest.mark.asyncio
    async def test_get_nonexistent(self, store, mock_redis):
        """Test reading a missing key."""
        with patch(MANAGER, return_value=mock_redis):
            assert await store.get("chat-1") is None

    @pytest.mark.asyncio
    async def test_get_expired(self, store, mock_redis):
        """Test an expired state reads as absent and is removed."""
        state = ParsingState(owner_id="owner-1")
        state.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
        mock_redis.get = AsyncMock(return_value=state.to_json())

        with patch(MANAGER, return_value=mock_redis):
            assert await store.get("chat-1") is None

        mock_redis.delete.assert_called_once_with(f"{STATE_PREFIX}chat-1")

    @pytest.mark.asyncio
    async def test_get_unreadable(self, store, mock_redis):
        """Test a corrupt payload is discarded."""
        mock_redis.get = AsyncMock(return_value='{"step": "nope", "owner_id": "x"}')

        with patch(MANAGER, return_value=mock_redis):
            assert await store.get("chat-1") is None

        mock_redis.delete.assert_called_once()

    @pytest.mark.asyncio
    async def test_delete(self, store, mock_redis):
        """Test clearing a conversation."""
        with patch(MANAGER, return_value=mock_redis):
            assert await store.delete("chat-1") is True

        mock_redis.delete.assert_called_once_with(f"{STATE_PREFIX}chat-1")

    @pytest.mark.asyncio
    async def test_fallback_roundtrip(self, store):
        """Test in-memory fallback with Redis unavailable."""
        state = ParsingState(owner_id="owner-1")

        with patch(MANAGER, return_value=None):
            await store.set("chat-1", state)
            assert "chat-1" in store._in_memory_fallback

            loaded = await store.get("chat-1")
            assert loaded is state

            assert await store.delete("chat-1") is True
            assert await store.get("chat-1") is None
            assert await store.delete("chat-1") is False

    @pytest.mark.asyncio
    async def test_fallback_expiry(self, store):
        """Test fallback honours expiry."""
        state = ParsingState(owner_id="owner-1")

        with patch(MANAGER, return_value=None):
            await store.set("chat-1", state)
            state.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)

            assert await store.get("chat-1") is None
            assert "chat-1" not in store._in_memory_fallback
