import logging
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from typing import Iterator

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_scheduler.core.errors import BookingConflictError, require
from clinic_scheduler.database import Database
from clinic_scheduler.domain.appointments import Appointment, AppointmentOutcomeRecord, AppointmentStatus
from clinic_scheduler.domain.participants import Doctor, Patient
from clinic_scheduler.models.appointment import Appointment as AppointmentRow

logger = logging.getLogger(__name__)

APPOINTMENT_ID_PREFIX = 'A'
APPOINTMENT_ID_DIGITS = 5


def _to_row(appointment: Appointment) -> AppointmentRow:
    return AppointmentRow(
        id=appointment.id,
        patient_id=appointment.patient.id,
        patient_name=appointment.patient.name,
        provider_id=appointment.provider.id,
        provider_name=appointment.provider.name,
        provider_specialization=appointment.provider.specialization or None,
        scheduled_at=appointment.scheduled_at,
        status=appointment.status.value,
        outcome=appointment.outcome.model_dump(mode='json') if appointment.outcome else None,
    )


def _to_appointment(row: AppointmentRow) -> Appointment:
    return Appointment(
        id=row.id,
        patient=Patient(id=row.patient_id, name=row.patient_name),
        provider=Doctor(
            id=row.provider_id,
            name=row.provider_name,
            specialization=row.provider_specialization or '',
        ),
        scheduled_at=row.scheduled_at,
        status=AppointmentStatus(row.status),
        outcome=AppointmentOutcomeRecord.model_validate(row.outcome) if row.outcome else None,
    )


def _day_bounds(start: date, end: date | None = None) -> tuple[datetime, datetime]:
    end = end or start
    return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)


class AppointmentRegistry:
    """Appointment store with sequential ``A00001``-style identifiers.

    Reads return copies; callers never hold a reference into the store.
    ``claim`` is the only write that checks for a competing live appointment,
    and it does so inside the same session and lock as the insert.
    """

    def __init__(self, database: Database) -> None:
        self._database = database
        self._next_number = 1

    @contextmanager
    def locked(self) -> Iterator[None]:
        with self._database.lock:
            yield

    # =========================================================================
    # Writes
    # =========================================================================

    def save(self, appointment: Appointment) -> Appointment:
        require(appointment, 'appointment')

        try:
            with self._database.session_scope() as db:
                stored = self._write(db, appointment)
        except IntegrityError as exc:
            raise BookingConflictError(
                f'Provider {appointment.provider.id} already has a live appointment at '
                f'{appointment.scheduled_at.isoformat()}'
            ) from exc

        return stored

    def claim(self, appointment: Appointment) -> Appointment | None:
        require(appointment, 'appointment')

        try:
            with self._database.session_scope() as db:
                if appointment.is_live and self._has_live_conflict(db, appointment):
                    logger.info(
                        'Provider %s is already booked at %s',
                        appointment.provider.id,
                        appointment.scheduled_at.isoformat(),
                    )
                    return None
                stored = self._write(db, appointment)
        except IntegrityError:
            logger.info(
                'Unique slot index rejected appointment for provider %s at %s',
                appointment.provider.id,
                appointment.scheduled_at.isoformat(),
            )
            return None

        return stored

    def delete(self, appointment_id: str) -> bool:
        require(appointment_id, 'appointment_id')

        with self._database.session_scope() as db:
            result = db.execute(delete(AppointmentRow).where(AppointmentRow.id == appointment_id))
            return result.rowcount > 0

    def purge_cancelled_before(self, cutoff: date) -> int:
        require(cutoff, 'cutoff')
        cutoff_start, _ = _day_bounds(cutoff)

        with self._database.session_scope() as db:
            result = db.execute(
                delete(AppointmentRow).where(
                    AppointmentRow.status == AppointmentStatus.CANCELLED.value,
                    AppointmentRow.scheduled_at < cutoff_start,
                )
            )
            purged = result.rowcount

        if purged:
            logger.info('Purged %s cancelled appointments before %s', purged, cutoff.isoformat())
        return purged

    def clear_all(self) -> None:
        with self._database.session_scope() as db:
            db.execute(delete(AppointmentRow))

    def _next_id(self, db: Session) -> str:
        while True:
            candidate = f'{APPOINTMENT_ID_PREFIX}{self._next_number:0{APPOINTMENT_ID_DIGITS}d}'
            self._next_number += 1
            if db.get(AppointmentRow, candidate) is None:
                return candidate

    def _write(self, db: Session, appointment: Appointment) -> Appointment:
        appointment_id = appointment.id or self._next_id(db)
        stored = appointment.model_copy(update={'id': appointment_id}, deep=True)
        db.merge(_to_row(stored))
        db.flush()
        return stored

    def _has_live_conflict(self, db: Session, appointment: Appointment) -> bool:
        statement = select(AppointmentRow.id).where(
            AppointmentRow.provider_id == appointment.provider.id,
            AppointmentRow.scheduled_at == appointment.scheduled_at,
            AppointmentRow.status != AppointmentStatus.CANCELLED.value,
        )
        if appointment.id is not None:
            statement = statement.where(AppointmentRow.id != appointment.id)
        return db.scalars(statement).first() is not None

    # =========================================================================
    # Reads
    # =========================================================================

    def _find(self, *criteria, newest_first: bool = False) -> list[Appointment]:
        order = AppointmentRow.scheduled_at.desc() if newest_first else AppointmentRow.scheduled_at.asc()

        with self._database.session_scope() as db:
            rows = db.scalars(
                select(AppointmentRow).where(*criteria).order_by(order, AppointmentRow.id.asc())
            ).all()
            return [_to_appointment(row) for row in rows]

    def find_by_id(self, appointment_id: str) -> Appointment | None:
        require(appointment_id, 'appointment_id')

        with self._database.session_scope() as db:
            row = db.get(AppointmentRow, appointment_id)
            return _to_appointment(row) if row else None

    def exists(self, appointment_id: str) -> bool:
        return self.find_by_id(appointment_id) is not None

    def find_all(self) -> list[Appointment]:
        return self._find()

    def find_by_provider(self, provider: Doctor) -> list[Appointment]:
        require(provider, 'provider')
        return self._find(AppointmentRow.provider_id == provider.id)

    def find_by_patient(self, patient: Patient) -> list[Appointment]:
        require(patient, 'patient')
        return self._find(AppointmentRow.patient_id == patient.id)

    def find_by_status(self, status: AppointmentStatus) -> list[Appointment]:
        require(status, 'status')
        return self._find(AppointmentRow.status == AppointmentStatus(status).value)

    def find_by_date(self, day: date) -> list[Appointment]:
        require(day, 'day')
        return self.find_by_date_range(day, day)

    def find_by_date_range(self, start: date, end: date) -> list[Appointment]:
        require(start, 'start')
        require(end, 'end')
        lower, upper = _day_bounds(start, end)
        return self._find(AppointmentRow.scheduled_at >= lower, AppointmentRow.scheduled_at < upper)

    def find_live_by_provider_on(self, provider: Doctor, day: date) -> list[Appointment]:
        require(provider, 'provider')
        require(day, 'day')
        lower, upper = _day_bounds(day)
        return self._find(
            AppointmentRow.provider_id == provider.id,
            AppointmentRow.scheduled_at >= lower,
            AppointmentRow.scheduled_at < upper,
            AppointmentRow.status != AppointmentStatus.CANCELLED.value,
        )

    def find_future_by_provider(self, provider: Doctor, now: datetime) -> list[Appointment]:
        return self._find(AppointmentRow.provider_id == provider.id, AppointmentRow.scheduled_at > now)

    def find_future_by_patient(self, patient: Patient, now: datetime) -> list[Appointment]:
        return self._find(AppointmentRow.patient_id == patient.id, AppointmentRow.scheduled_at > now)

    def find_past_by_provider(self, provider: Doctor, now: datetime) -> list[Appointment]:
        return self._find(
            AppointmentRow.provider_id == provider.id,
            AppointmentRow.scheduled_at < now,
            newest_first=True,
        )

    def find_past_by_patient(self, patient: Patient, now: datetime) -> list[Appointment]:
        return self._find(
            AppointmentRow.patient_id == patient.id,
            AppointmentRow.scheduled_at < now,
            newest_first=True,
        )

    def find_pending_by_provider(self, provider: Doctor, now: datetime) -> list[Appointment]:
        return self._find(
            AppointmentRow.provider_id == provider.id,
            AppointmentRow.scheduled_at > now,
            AppointmentRow.status == AppointmentStatus.PENDING_APPROVAL.value,
        )

    def find_confirmed_by_provider(self, provider: Doctor, now: datetime) -> list[Appointment]:
        return self._find(
            AppointmentRow.provider_id == provider.id,
            AppointmentRow.scheduled_at > now,
            AppointmentRow.status == AppointmentStatus.CONFIRMED.value,
        )

    def find_next_for_patient(self, patient: Patient, now: datetime) -> Appointment | None:
        upcoming = self._find(
            AppointmentRow.patient_id == patient.id,
            AppointmentRow.scheduled_at > now,
            AppointmentRow.status == AppointmentStatus.CONFIRMED.value,
        )
        return upcoming[0] if upcoming else None

    def find_next_for_provider(self, provider: Doctor, now: datetime) -> Appointment | None:
        upcoming = self.find_confirmed_by_provider(provider, now)
        return upcoming[0] if upcoming else None

    def find_live_at(self, provider: Doctor, at: datetime) -> Appointment | None:
        appointments = self._find(
            AppointmentRow.provider_id == provider.id,
            AppointmentRow.scheduled_at == at,
            AppointmentRow.status != AppointmentStatus.CANCELLED.value,
        )
        return appointments[0] if appointments else None

    def is_provider_free(self, provider: Doctor, at: datetime, exclude_id: str | None = None) -> bool:
        live = self.find_live_at(provider, at)
        return live is None or live.id == exclude_id

    def count_by_status_for_provider(self, provider: Doctor) -> dict[AppointmentStatus, int]:
        require(provider, 'provider')

        with self._database.session_scope() as db:
            rows = db.execute(
                select(AppointmentRow.status, func.count(AppointmentRow.id))
                .where(AppointmentRow.provider_id == provider.id)
                .group_by(AppointmentRow.status)
            ).all()
            return {AppointmentStatus(status): count for status, count in rows}
