import logging
import uuid
from datetime import date, datetime, time, timedelta
from typing import Callable

from sqlalchemy import delete, select

from clinic_scheduler.core.errors import AvailabilityValidationError, require
from clinic_scheduler.database import Database
from clinic_scheduler.domain.availability import AvailabilityWindow
from clinic_scheduler.domain.participants import Doctor
from clinic_scheduler.models.availability import Availability
from clinic_scheduler.services.slot_generator import default_slot_duration

logger = logging.getLogger(__name__)


def _to_window(row: Availability) -> AvailabilityWindow:
    return AvailabilityWindow(
        id=row.id,
        provider=Doctor(
            id=row.provider_id,
            name=row.provider_name,
            specialization=row.provider_specialization or '',
        ),
        date=row.date,
        start_time=row.start_time,
        end_time=row.end_time,
    )


def validate_window_bounds(window_date: date, start_time: time, end_time: time, now: datetime) -> None:
    if end_time <= start_time:
        raise AvailabilityValidationError('End time must be after start time.', field='end_time')

    if window_date < now.date():
        raise AvailabilityValidationError('Cannot set availability for past dates.', field='date')

    if window_date == now.date() and start_time < now.time():
        raise AvailabilityValidationError('Cannot set availability starting in the past.', field='start_time')


class AvailabilityStore:
    """Per-provider availability windows, at most one per calendar date."""

    def __init__(self, database: Database, clock: Callable[[], datetime] = datetime.now) -> None:
        self._database = database
        self._clock = clock

    def set_availability(self, provider: Doctor, window_date: date, start_time: time, end_time: time) -> None:
        require(provider, 'provider')
        require(window_date, 'date')
        require(start_time, 'start_time')
        require(end_time, 'end_time')

        validate_window_bounds(window_date, start_time, end_time, self._clock())

        with self._database.session_scope() as db:
            db.execute(
                delete(Availability).where(
                    Availability.provider_id == provider.id,
                    Availability.date == window_date,
                )
            )
            db.add(
                Availability(
                    id=str(uuid.uuid4()),
                    provider_id=provider.id,
                    provider_name=provider.name,
                    provider_specialization=provider.specialization or None,
                    date=window_date,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

        logger.info(
            'Availability for provider %s on %s set to %s-%s',
            provider.id,
            window_date.isoformat(),
            start_time.isoformat(timespec='minutes'),
            end_time.isoformat(timespec='minutes'),
        )

    def update_availability(self, provider: Doctor, window_date: date, start_time: time, end_time: time) -> bool:
        if self.get_window(provider, window_date) is None:
            return False

        try:
            self.set_availability(provider, window_date, start_time, end_time)
        except AvailabilityValidationError as exc:
            logger.info('Rejected availability update for provider %s: %s', provider.id, exc)
            return False
        return True

    def remove_availability(self, provider: Doctor, window_date: date) -> bool:
        require(provider, 'provider')
        require(window_date, 'date')

        with self._database.session_scope() as db:
            result = db.execute(
                delete(Availability).where(
                    Availability.provider_id == provider.id,
                    Availability.date == window_date,
                )
            )
            removed = result.rowcount > 0

        if removed:
            logger.info('Availability for provider %s on %s removed', provider.id, window_date.isoformat())
        return removed

    def get_window(self, provider: Doctor, window_date: date) -> AvailabilityWindow | None:
        require(provider, 'provider')
        require(window_date, 'date')

        with self._database.session_scope() as db:
            row = db.scalars(
                select(Availability).where(
                    Availability.provider_id == provider.id,
                    Availability.date == window_date,
                )
            ).first()
            return _to_window(row) if row else None

    def list_by_provider(self, provider: Doctor) -> list[AvailabilityWindow]:
        require(provider, 'provider')

        with self._database.session_scope() as db:
            rows = db.scalars(
                select(Availability)
                .where(Availability.provider_id == provider.id)
                .order_by(Availability.date.asc())
            ).all()
            return [_to_window(row) for row in rows]

    def list_by_date(self, window_date: date) -> list[AvailabilityWindow]:
        require(window_date, 'date')

        with self._database.session_scope() as db:
            rows = db.scalars(
                select(Availability)
                .where(Availability.date == window_date)
                .order_by(Availability.provider_name.asc(), Availability.provider_id.asc())
            ).all()
            return [_to_window(row) for row in rows]

    def list_available_providers(self, window_date: date) -> list[Doctor]:
        now = self._clock()
        windows = self.list_by_date(window_date)

        if window_date == now.date():
            windows = [window for window in windows if window.end_time > now.time()]

        return [window.provider for window in windows]

    def is_provider_available(self, provider: Doctor, window_date: date, at: time) -> bool:
        window = self.get_window(provider, window_date)
        if window is None:
            return False

        slot_end = datetime.combine(window_date, at) + default_slot_duration()
        return at >= window.start_time and slot_end <= window.ends_at
