from datetime import datetime, time, timedelta
from typing import Callable, Iterator

from clinic_scheduler.core import config
from clinic_scheduler.domain.availability import AvailabilityWindow, Slot

Clock = Callable[[], datetime]


def default_slot_duration() -> timedelta:
    return timedelta(minutes=config.SLOT_DURATION_MINUTES)


def slot_id(provider_id: str, starts_at: datetime) -> str:
    return f'{provider_id}@{starts_at:%Y-%m-%dT%H:%M}'


def first_slot_start(window: AvailabilityWindow, now: datetime, duration: timedelta) -> datetime | None:
    """Return the earliest slot start in ``window`` that is not before ``now``.

    Once a window for today has opened, starts follow the wall clock: ``now``
    is rounded up to the next multiple of ``duration`` counted from midnight,
    so 10:07 becomes 10:30 for half-hour slots and 10:00 stays 10:00.
    """
    start = window.starts_at

    if window.date < now.date():
        return None

    if window.date == now.date() and start < now:
        midnight = datetime.combine(now.date(), time.min)
        steps = -(-(now - midnight) // duration)
        start = midnight + steps * duration

    return start


class SlotSequence:
    """Lazy, restartable sequence of the slots of one availability window."""

    def __init__(
        self,
        window: AvailabilityWindow | None,
        duration: timedelta | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.window = window
        self.duration = default_slot_duration() if duration is None else duration
        self.clock = clock or datetime.now

        if self.duration <= timedelta(0):
            raise ValueError('Slot duration must be positive.')

    def __iter__(self) -> Iterator[Slot]:
        if self.window is None:
            return

        current = first_slot_start(self.window, self.clock(), self.duration)
        if current is None:
            return

        window_end = self.window.ends_at
        while current + self.duration <= window_end:
            slot_end = current + self.duration
            yield Slot(
                id=slot_id(self.window.provider.id, current),
                provider=self.window.provider,
                date=self.window.date,
                start_time=current.time(),
                end_time=slot_end.time(),
            )
            current = slot_end

    def find(self, start_time: time) -> Slot | None:
        for slot in self:
            if slot.start_time == start_time:
                return slot
        return None


def generate_slots(
    window: AvailabilityWindow | None,
    *,
    duration: timedelta | None = None,
    clock: Clock | None = None,
) -> SlotSequence:
    return SlotSequence(window, duration=duration, clock=clock)
