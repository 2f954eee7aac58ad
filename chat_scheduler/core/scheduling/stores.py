"""
Store interfaces the scheduling core depends on.

The orchestrator and validator only see these abstractions; the SQL
implementations live in ``chat_scheduler.infra.stores``.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from .types import (
    AppointmentRecord,
    AvailabilityBlockRecord,
    OwnerConfig,
    PatientRecord,
)


class AppointmentStore(ABC):

    @abstractmethod
    async def create_appointment(
        self,
        owner_id: str,
        patient_id: str,
        scheduled_at: datetime,
        duration_minutes: int,
    ) -> str:
        """Insert a scheduled appointment and return its id."""

    @abstractmethod
    async def list_appointments(
        self,
        owner_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[AppointmentRecord]:
        """Scheduled appointments starting in [start, end], ordered by start."""

    @abstractmethod
    async def cancel_appointment(self, appointment_id: str) -> None:
        """Mark an appointment cancelled."""

    @abstractmethod
    async def find_conflicting(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
    ) -> Optional[AppointmentRecord]:
        """First scheduled appointment overlapping [start, end), if any."""


class PatientStore(ABC):

    @abstractmethod
    async def find_by_exact_name(self, owner_id: str, name: str) -> Optional[PatientRecord]:
        """Case-insensitive exact name lookup."""

    @abstractmethod
    async def list_all(self, owner_id: str) -> list[PatientRecord]:
        """All patients of an owner."""

    @abstractmethod
    async def create(self, owner_id: str, full_name: str) -> PatientRecord:
        """Register a patient."""


class OwnerStore(ABC):

    @abstractmethod
    async def get_owner(self, owner_id: str) -> Optional[OwnerConfig]:
        """Scheduling configuration of an owner."""

    @abstractmethod
    async def find_owner_by_identity(self, identity: str) -> Optional[str]:
        """Owner id registered under a normalized chat identity."""


class AvailabilityBlockStore(ABC):

    @abstractmethod
    async def list_blocks(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
    ) -> list[AvailabilityBlockRecord]:
        """Blocks intersecting [start, end)."""

    @abstractmethod
    async def find_covering(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
    ) -> Optional[AvailabilityBlockRecord]:
        """A block fully containing [start, end), if any."""

    @abstractmethod
    async def create_block(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
        reason: Optional[str] = None,
    ) -> AvailabilityBlockRecord:
        """Mark [start, end) unavailable."""


class AuditLogSink(ABC):

    @abstractmethod
    async def append(
        self,
        owner_id: Optional[str],
        message_type: str,
        content: str,
        details: Optional[dict] = None,
    ) -> None:
        """Record one inbound or outbound message."""
