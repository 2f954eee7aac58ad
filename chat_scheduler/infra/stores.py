"""
SQL-backed stores.

SQLAlchemy implementations of the scheduling store interfaces. Each call
runs in its own unit of work via ``get_db_context``.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, func, select, update

from chat_scheduler.config import settings
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
from chat_scheduler.infra.database import get_db_context
from chat_scheduler.models.database import (
    Appointment,
    AppointmentStatus,
    AvailabilityBlock,
    MessageLog,
    Owner,
    Patient,
)

logger = logging.getLogger(__name__)


def _uuid(value: str | uuid.UUID) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _appointment_record(appointment: Appointment, patient_name: str) -> AppointmentRecord:
    return AppointmentRecord(
        id=str(appointment.id),
        owner_id=str(appointment.owner_id),
        patient_id=str(appointment.patient_id),
        scheduled_at=appointment.scheduled_at,
        duration_minutes=appointment.duration_minutes,
        patient_name=patient_name,
        status=appointment.status.value,
    )


def _block_record(block: AvailabilityBlock) -> AvailabilityBlockRecord:
    return AvailabilityBlockRecord(
        id=str(block.id),
        owner_id=str(block.owner_id),
        start_time=block.start_time,
        end_time=block.end_time,
        reason=block.reason,
    )


def _patient_record(patient: Patient) -> PatientRecord:
    return PatientRecord(
        id=str(patient.id),
        owner_id=str(patient.owner_id),
        full_name=patient.full_name,
    )


class SqlAppointmentStore(AppointmentStore):

    async def create_appointment(
        self,
        owner_id: str,
        patient_id: str,
        scheduled_at: datetime,
        duration_minutes: int,
    ) -> str:
        async with get_db_context() as db:
            appointment = Appointment(
                owner_id=_uuid(owner_id),
                patient_id=_uuid(patient_id),
                scheduled_at=scheduled_at,
                duration_minutes=duration_minutes,
                status=AppointmentStatus.SCHEDULED,
            )
            db.add(appointment)
            await db.flush()
            return str(appointment.id)

    async def list_appointments(
        self,
        owner_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[AppointmentRecord]:
        query = (
            select(Appointment, Patient.full_name)
            .join(Patient, Appointment.patient_id == Patient.id)
            .where(
                Appointment.owner_id == _uuid(owner_id),
                Appointment.status == AppointmentStatus.SCHEDULED,
            )
            .order_by(Appointment.scheduled_at)
        )
        if start is not None:
            query = query.where(Appointment.scheduled_at >= start)
        if end is not None:
            query = query.where(Appointment.scheduled_at <= end)

        async with get_db_context() as db:
            rows = (await db.execute(query)).all()
            return [_appointment_record(appointment, name) for appointment, name in rows]

    async def cancel_appointment(self, appointment_id: str) -> None:
        async with get_db_context() as db:
            await db.execute(
                update(Appointment)
                .where(Appointment.id == _uuid(appointment_id))
                .values(status=AppointmentStatus.CANCELLED, cancelled_at=func.now())
            )

    async def find_conflicting(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
    ) -> Optional[AppointmentRecord]:
        # Candidates start before the new end; overlap is confirmed per row
        # since the stored end is start + duration.
        lookback = start - timedelta(hours=24)
        query = (
            select(Appointment, Patient.full_name)
            .join(Patient, Appointment.patient_id == Patient.id)
            .where(
                Appointment.owner_id == _uuid(owner_id),
                Appointment.status == AppointmentStatus.SCHEDULED,
                Appointment.scheduled_at < end,
                Appointment.scheduled_at >= lookback,
            )
            .order_by(Appointment.scheduled_at)
        )

        async with get_db_context() as db:
            for appointment, name in (await db.execute(query)).all():
                record = _appointment_record(appointment, name)
                if record.ends_at > start:
                    return record
        return None


class SqlPatientStore(PatientStore):

    async def find_by_exact_name(self, owner_id: str, name: str) -> Optional[PatientRecord]:
        query = select(Patient).where(
            Patient.owner_id == _uuid(owner_id),
            func.lower(Patient.full_name) == name.strip().lower(),
        )
        async with get_db_context() as db:
            patient = (await db.execute(query)).scalars().first()
            return _patient_record(patient) if patient else None

    async def list_all(self, owner_id: str) -> list[PatientRecord]:
        query = (
            select(Patient)
            .where(Patient.owner_id == _uuid(owner_id))
            .order_by(Patient.full_name)
        )
        async with get_db_context() as db:
            return [_patient_record(p) for p in (await db.execute(query)).scalars()]

    async def create(self, owner_id: str, full_name: str) -> PatientRecord:
        async with get_db_context() as db:
            patient = Patient(owner_id=_uuid(owner_id), full_name=full_name)
            db.add(patient)
            await db.flush()
            return _patient_record(patient)


class SqlOwnerStore(OwnerStore):

    async def get_owner(self, owner_id: str) -> Optional[OwnerConfig]:
        async with get_db_context() as db:
            owner = await db.get(Owner, _uuid(owner_id))
            if owner is None:
                return None
            return OwnerConfig(
                id=str(owner.id),
                full_name=owner.full_name,
                working_hours=owner.working_hours or {},
                default_duration_minutes=(
                    owner.session_duration_minutes or settings.default_session_duration
                ),
            )

    async def find_owner_by_identity(self, identity: str) -> Optional[str]:
        async with get_db_context() as db:
            owner_id = (
                await db.execute(select(Owner.id).where(Owner.identity == identity))
            ).scalar_one_or_none()
            return str(owner_id) if owner_id else None


class SqlAvailabilityBlockStore(AvailabilityBlockStore):

    async def list_blocks(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
    ) -> list[AvailabilityBlockRecord]:
        query = (
            select(AvailabilityBlock)
            .where(
                AvailabilityBlock.owner_id == _uuid(owner_id),
                AvailabilityBlock.start_time < end,
                AvailabilityBlock.end_time > start,
            )
            .order_by(AvailabilityBlock.start_time)
        )
        async with get_db_context() as db:
            return [_block_record(b) for b in (await db.execute(query)).scalars()]

    async def find_covering(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
    ) -> Optional[AvailabilityBlockRecord]:
        query = select(AvailabilityBlock).where(
            and_(
                AvailabilityBlock.owner_id == _uuid(owner_id),
                AvailabilityBlock.start_time <= start,
                AvailabilityBlock.end_time >= end,
            )
        )
        async with get_db_context() as db:
            block = (await db.execute(query)).scalars().first()
            return _block_record(block) if block else None

    async def create_block(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
        reason: Optional[str] = None,
    ) -> AvailabilityBlockRecord:
        async with get_db_context() as db:
            block = AvailabilityBlock(
                owner_id=_uuid(owner_id),
                start_time=start,
                end_time=end,
                reason=reason,
            )
            db.add(block)
            await db.flush()
            return _block_record(block)


class SqlAuditLog(AuditLogSink):

    async def append(
        self,
        owner_id: Optional[str],
        message_type: str,
        content: str,
        details: Optional[dict] = None,
    ) -> None:
        async with get_db_context() as db:
            db.add(MessageLog(
                owner_id=_uuid(owner_id) if owner_id else None,
                message_type=message_type,
                content=content,
                details=details,
            ))


@dataclass
class SqlStores:
    appointments: SqlAppointmentStore
    patients: SqlPatientStore
    owners: SqlOwnerStore
    blocks: SqlAvailabilityBlockStore
    audit_log: SqlAuditLog


# Singleton
_stores: Optional[SqlStores] = None


def get_sql_stores() -> SqlStores:
    """Get singleton set of SQL stores."""
    global _stores
    if _stores is None:
        _stores = SqlStores(
            appointments=SqlAppointmentStore(),
            patients=SqlPatientStore(),
            owners=SqlOwnerStore(),
            blocks=SqlAvailabilityBlockStore(),
            audit_log=SqlAuditLog(),
        )
    return _stores
