"""
Scheduling validation and conflict detection.

Checks a parsed schedule or cancel command against the owner's working
hours, the clock, existing appointments and availability blocks, resolves
the patient by name, and proposes free slots when the requested time is
taken.
"""

import logging
from datetime import datetime, time, timedelta
from typing import Optional

from chat_scheduler.config import settings
from chat_scheduler.core.clock import local_now
from chat_scheduler.core.intelligence.command.types import ParsedCommand
from .hours import day_window, fits_working_hours
from .matching import best_match
from .stores import AppointmentStore, AvailabilityBlockStore, OwnerStore, PatientStore
from .types import (
    AvailableSlot,
    CancelValidation,
    ConflictInfo,
    ConflictingSession,
    OwnerConfig,
    PatientRecord,
    ScheduleValidation,
    ValidationError,
)

logger = logging.getLogger(__name__)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval intersection; touching endpoints do not overlap."""
    return a_start < b_end and b_start < a_end


def round_up(moment: datetime, step_minutes: int) -> datetime:
    """Next step boundary strictly after a moment that is not on one."""
    base = moment.replace(second=0, microsecond=0)
    remainder = base.minute % step_minutes
    if remainder == 0 and base == moment:
        return base
    return base + timedelta(minutes=step_minutes - remainder)


def _day_bounds(day: datetime) -> tuple[datetime, datetime]:
    start = datetime.combine(day.date(), time())
    return start, start + timedelta(days=1)


class ScheduleValidator:
    """
    Validates schedule and cancel commands for one owner.

    Read-only: it never writes to any store.
    """

    def __init__(
        self,
        appointments: AppointmentStore,
        patients: PatientStore,
        owners: OwnerStore,
        blocks: AvailabilityBlockStore,
        slot_step_minutes: Optional[int] = None,
        max_slots: Optional[int] = None,
        search_days: Optional[int] = None,
        match_threshold: Optional[float] = None,
    ):
        self.appointments = appointments
        self.patients = patients
        self.owners = owners
        self.blocks = blocks
        self.slot_step_minutes = slot_step_minutes or settings.slot_step_minutes
        self.max_slots = max_slots or settings.max_suggested_slots
        self.search_days = search_days or settings.slot_search_days
        self.match_threshold = (
            match_threshold if match_threshold is not None else settings.patient_match_threshold
        )

    async def validate_schedule(
        self,
        command: ParsedCommand,
        owner_id: str,
        now: Optional[datetime] = None,
    ) -> ScheduleValidation:
        """
        Validate a schedule command.

        Structural problems return immediately. Working hours and the past
        are checked next; conflicts and alternative slots are only computed
        when those pass.

        Args:
            command: Parsed schedule command
            owner_id: Owner whose calendar is checked
            now: Local reference time

        Returns:
            ScheduleValidation with errors, conflicts and the resolved patient
        """
        now = now or local_now()
        errors: list[ValidationError] = []

        if not command.patient_name_raw:
            errors.append(ValidationError.PATIENT_REQUIRED)
        if command.proposed_datetime is None:
            errors.append(
                ValidationError.INVALID_DATE if command.invalid_date
                else ValidationError.DATETIME_REQUIRED
            )
        elif not command.has_time:
            errors.append(ValidationError.DATETIME_REQUIRED)

        if errors:
            return ScheduleValidation(is_valid=False, errors=errors)

        owner = await self.owners.get_owner(owner_id)
        if owner is None:
            logger.warning(f"Owner not found during validation: {owner_id}")
            return ScheduleValidation(is_valid=False, errors=[ValidationError.OWNER_NOT_FOUND])

        start = command.proposed_datetime
        duration = owner.default_duration_minutes or settings.default_session_duration

        if not fits_working_hours(start, duration, owner.working_hours):
            errors.append(ValidationError.OUTSIDE_WORKING_HOURS)
        if start < now:
            errors.append(ValidationError.IN_THE_PAST)

        patient = await self.find_patient_by_name(command.patient_name_raw, owner_id)

        conflicts = ConflictInfo()
        if not errors:
            conflicts = await self.check_conflicts(owner, start, duration, now)

        return ScheduleValidation(
            is_valid=not errors and not conflicts.has_conflict,
            conflicts=conflicts,
            patient=patient,
            errors=errors,
            duration_minutes=duration,
        )

    async def validate_cancel(
        self,
        command: ParsedCommand,
        owner_id: str,
    ) -> CancelValidation:
        """
        Validate a cancel command.

        Finds the patient, then that patient's scheduled appointment on the
        requested day. When a time was typed, the appointment at that time
        is preferred.
        """
        errors: list[ValidationError] = []

        if not command.patient_name_raw:
            errors.append(ValidationError.PATIENT_REQUIRED)
        if command.proposed_datetime is None:
            errors.append(
                ValidationError.INVALID_DATE if command.invalid_date
                else ValidationError.DATE_REQUIRED
            )

        if errors:
            return CancelValidation(is_valid=False, errors=errors)

        patient = await self.find_patient_by_name(command.patient_name_raw, owner_id)
        if patient is None:
            return CancelValidation(is_valid=False, errors=[ValidationError.PATIENT_NOT_FOUND])

        day_start, day_end = _day_bounds(command.proposed_datetime)
        appointments = await self.appointments.list_appointments(owner_id, day_start, day_end)
        candidates = [
            a for a in appointments
            if a.patient_id == patient.id and a.scheduled_at < day_end
        ]

        if command.has_time:
            exact = [a for a in candidates if a.scheduled_at == command.proposed_datetime]
            if exact:
                candidates = exact

        if not candidates:
            return CancelValidation(
                is_valid=False,
                patient=patient,
                errors=[ValidationError.NO_SESSION_FOUND],
            )

        return CancelValidation(is_valid=True, appointment=candidates[0], patient=patient)

    async def check_conflicts(
        self,
        owner: OwnerConfig,
        start: datetime,
        duration_minutes: int,
        now: Optional[datetime] = None,
    ) -> ConflictInfo:
        """
        Check a candidate interval against appointments and blocks.

        Returns:
            ConflictInfo, with alternative slots when there is a conflict
        """
        end = start + timedelta(minutes=duration_minutes)

        existing = await self.appointments.find_conflicting(owner.id, start, end)
        block = None
        if existing is None:
            block = await self.blocks.find_covering(owner.id, start, end)

        if existing is None and block is None:
            return ConflictInfo()

        logger.debug(f"Conflict at {start.isoformat()} for owner {owner.id}")
        slots = await self.find_available_slots(start, duration_minutes, owner, now)

        return ConflictInfo(
            has_conflict=True,
            conflicting_session=(
                ConflictingSession(
                    patient_name=existing.patient_name,
                    start=existing.scheduled_at,
                    end=existing.ends_at,
                )
                if existing else None
            ),
            conflicting_block=block,
            available_slots=slots,
        )

    async def find_available_slots(
        self,
        preferred: datetime,
        duration_minutes: int,
        owner: OwnerConfig,
        now: Optional[datetime] = None,
        days: Optional[int] = None,
    ) -> list[AvailableSlot]:
        """
        Free slots from the preferred day forward.

        Scans each open day in ``slot_step_minutes`` steps from opening time
        (or from now, rounded up, on the current day) and keeps slots that
        end by closing time, overlap no appointment and sit in no block.
        """
        now = now or local_now()
        days = days or self.search_days
        step = timedelta(minutes=self.slot_step_minutes)
        duration = timedelta(minutes=duration_minutes)
        slots: list[AvailableSlot] = []

        for offset in range(days):
            day = preferred.date() + timedelta(days=offset)
            if day < now.date():
                continue

            window = day_window(owner.working_hours, day)
            if window is None:
                continue

            opens, closes = window
            cursor = opens
            if day == now.date() and cursor < now:
                cursor = round_up(now, self.slot_step_minutes)

            day_start, day_end = _day_bounds(opens)
            booked = await self.appointments.list_appointments(owner.id, day_start, day_end)
            blocked = await self.blocks.list_blocks(owner.id, day_start, day_end)

            while cursor + duration <= closes:
                slot_end = cursor + duration
                taken = any(
                    overlaps(cursor, slot_end, a.scheduled_at, a.ends_at) for a in booked
                )
                if not taken and not any(b.covers(cursor, slot_end) for b in blocked):
                    slots.append(AvailableSlot(start=cursor, end=slot_end))
                    if len(slots) >= self.max_slots:
                        return slots
                cursor += step

        return slots

    async def find_patient_by_name(
        self,
        name: str,
        owner_id: str,
    ) -> Optional[PatientRecord]:
        """
        Resolve a typed name to a patient.

        Exact case-insensitive match first, then the closest fuzzy match
        above the similarity threshold.
        """
        patient = await self.patients.find_by_exact_name(owner_id, name)
        if patient is not None:
            return patient

        candidates = await self.patients.list_all(owner_id)
        match = best_match(name, candidates, self.match_threshold)
        if match is not None:
            logger.debug(f"Fuzzy matched {name!r} to {match.full_name!r}")
        return match
