"""Availability windows and the slots derived from them."""

from datetime import date, datetime, time

from pydantic import BaseModel, ConfigDict

from clinic_scheduler.domain.participants import Doctor


class AvailabilityWindow(BaseModel):
    """A provider's working interval on one calendar date."""

    model_config = ConfigDict(frozen=True)

    id: str
    provider: Doctor
    date: date
    start_time: time
    end_time: time

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    @property
    def ends_at(self) -> datetime:
        return datetime.combine(self.date, self.end_time)


class Slot(BaseModel):
    """A fixed-length, bookable piece of an availability window.

    Slots are values computed on every query. ``occupied`` and
    ``appointment_id`` describe what the registry held when the slot was
    produced and are never updated afterwards.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    provider: Doctor
    date: date
    start_time: time
    end_time: time
    occupied: bool = False
    appointment_id: str | None = None

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    @property
    def ends_at(self) -> datetime:
        return datetime.combine(self.date, self.end_time)
