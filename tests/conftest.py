"""Shared fixtures: in-memory stores and a fixed clock."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

import pytest

from chat_scheduler.core.intelligence.session.manager import ConversationStateStore
from chat_scheduler.core.intelligence.session.models import ConversationState
from chat_scheduler.core.scheduling.engine import SchedulingEngine
from chat_scheduler.core.scheduling.stores import (
    AppointmentStore,
    AuditLogSink,
    AvailabilityBlockStore,
    OwnerStore,
    PatientStore,
)
from chat_scheduler.core.scheduling.types import (
    AppointmentRecord,
    AvailabilityBlockRecord,
    OwnerConfig,
    PatientRecord,
)
from chat_scheduler.core.scheduling.validation import ScheduleValidator, overlaps

# Monday
NOW = datetime(2024, 1, 15, 10, 0)
OWNER_ID = "owner-1"
OWNER_IDENTITY = "5511999999999"

WORKING_HOURS = {
    "seg": "09:00-18:00",
    "ter": "09:00-18:00",
    "qua": "09:00-18:00",
    "qui": "09:00-18:00",
    "sex": "09:00-18:00",
    "sab": "closed",
    "dom": "closed",
}


class InMemoryPatientStore(PatientStore):

    def __init__(self):
        self.patients: dict[str, PatientRecord] = {}

    def add(self, full_name: str, owner_id: str = OWNER_ID) -> PatientRecord:
        patient = PatientRecord(
            id=f"patient-{len(self.patients) + 1}",
            owner_id=owner_id,
            full_name=full_name,
        )
        self.patients[patient.id] = patient
        return patient

    async def find_by_exact_name(self, owner_id, name):
        for patient in self.patients.values():
            if patient.owner_id == owner_id and patient.full_name.lower() == name.strip().lower():
                return patient
        return None

    async def list_all(self, owner_id):
        return [p for p in self.patients.values() if p.owner_id == owner_id]

    async def create(self, owner_id, full_name):
        return self.add(full_name, owner_id)


class InMemoryAppointmentStore(AppointmentStore):

    def __init__(self, patients: InMemoryPatientStore):
        self.appointments: dict[str, AppointmentRecord] = {}
        self._patients = patients

    def add(
        self,
        patient: PatientRecord,
        scheduled_at: datetime,
        duration_minutes: int = 50,
    ) -> AppointmentRecord:
        appointment = AppointmentRecord(
            id=f"appt-{len(self.appointments) + 1}",
            owner_id=patient.owner_id,
            patient_id=patient.id,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            patient_name=patient.full_name,
        )
        self.appointments[appointment.id] = appointment
        return appointment

    def scheduled(self) -> list[AppointmentRecord]:
        return [a for a in self.appointments.values() if a.status == "scheduled"]

    async def create_appointment(self, owner_id, patient_id, scheduled_at, duration_minutes):
        patient = self._patients.patients[patient_id]
        return self.add(patient, scheduled_at, duration_minutes).id

    async def list_appointments(self, owner_id, start=None, end=None):
        found = [
            a for a in self.scheduled()
            if a.owner_id == owner_id
            and (start is None or a.scheduled_at >= start)
            and (end is None or a.scheduled_at <= end)
        ]
        return sorted(found, key=lambda a: a.scheduled_at)

    async def cancel_appointment(self, appointment_id):
        self.appointments[appointment_id].status = "cancelled"

    async def find_conflicting(self, owner_id, start, end):
        for appointment in await self.list_appointments(owner_id):
            if overlaps(start, end, appointment.scheduled_at, appointment.ends_at):
                return appointment
        return None


class InMemoryOwnerStore(OwnerStore):

    def __init__(self):
        self.owners: dict[str, OwnerConfig] = {}
        self.identities: dict[str, str] = {}

    def add(self, owner: OwnerConfig, identity: str) -> None:
        self.owners[owner.id] = owner
        self.identities[identity] = owner.id

    async def get_owner(self, owner_id):
        return self.owners.get(owner_id)

    async def find_owner_by_identity(self, identity):
        return self.identities.get(identity)


class InMemoryBlockStore(AvailabilityBlockStore):

    def __init__(self):
        self.blocks: list[AvailabilityBlockRecord] = []

    async def list_blocks(self, owner_id, start, end):
        return [
            b for b in self.blocks
            if b.owner_id == owner_id and overlaps(start, end, b.start_time, b.end_time)
        ]

    async def find_covering(self, owner_id, start, end):
        for block in self.blocks:
            if block.owner_id == owner_id and block.covers(start, end):
                return block
        return None

    async def create_block(self, owner_id, start, end, reason=None):
        block = AvailabilityBlockRecord(
            id=f"block-{len(self.blocks) + 1}",
            owner_id=owner_id,
            start_time=start,
            end_time=end,
            reason=reason,
        )
        self.blocks.append(block)
        return block


class InMemoryAuditLog(AuditLogSink):

    def __init__(self):
        self.entries: list[dict] = []

    async def append(self, owner_id, message_type, content, details=None):
        self.entries.append({
            "owner_id": owner_id,
            "message_type": message_type,
            "content": content,
            "details": details,
        })


class InMemoryStateStore(ConversationStateStore):

    def __init__(self, ttl_seconds: int = 300):
        self.ttl_seconds = ttl_seconds
        self.states: dict[str, ConversationState] = {}

    async def get(self, key):
        state = self.states.get(key)
        if state is None:
            return None
        if state.is_expired():
            del self.states[key]
            return None
        return state

    async def set(self, key, state, ttl_seconds: Optional[int] = None):
        state.touch(ttl_seconds or self.ttl_seconds)
        self.states[key] = state

    async def delete(self, key):
        return self.states.pop(key, None) is not None


@dataclass
class Stores:
    patients: InMemoryPatientStore = field(default_factory=InMemoryPatientStore)
    owners: InMemoryOwnerStore = field(default_factory=InMemoryOwnerStore)
    blocks: InMemoryBlockStore = field(default_factory=InMemoryBlockStore)
    audit_log: InMemoryAuditLog = field(default_factory=InMemoryAuditLog)
    states: InMemoryStateStore = field(default_factory=InMemoryStateStore)
    appointments: Optional[InMemoryAppointmentStore] = None

    def __post_init__(self):
        if self.appointments is None:
            self.appointments = InMemoryAppointmentStore(self.patients)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def thursday() -> datetime:
    return NOW + timedelta(days=3)


@pytest.fixture
def owner() -> OwnerConfig:
    return OwnerConfig(
        id=OWNER_ID,
        full_name="Dra. Helena",
        working_hours=dict(WORKING_HOURS),
        default_duration_minutes=50,
    )


@pytest.fixture
def stores(owner) -> Stores:
    stores = Stores()
    stores.owners.add(owner, OWNER_IDENTITY)
    return stores


@pytest.fixture
def validator(stores) -> ScheduleValidator:
    return ScheduleValidator(
        stores.appointments,
        stores.patients,
        stores.owners,
        stores.blocks,
        slot_step_minutes=30,
        max_slots=6,
        search_days=7,
        match_threshold=0.7,
    )


@pytest.fixture
def engine(stores, validator) -> SchedulingEngine:
    engine = SchedulingEngine(
        appointments=stores.appointments,
        patients=stores.patients,
        owners=stores.owners,
        blocks=stores.blocks,
        audit_log=stores.audit_log,
        state_store=stores.states,
    )
    engine.validator = validator
    return engine
