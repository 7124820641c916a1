import logging
from datetime import datetime
from threading import Lock

from clinic_scheduler.core.errors import require
from clinic_scheduler.domain.appointments import Appointment
from clinic_scheduler.domain.availability import Slot
from clinic_scheduler.domain.participants import Doctor
from clinic_scheduler.services.slot_generator import slot_id

logger = logging.getLogger(__name__)


class SlotBookingCoordinator:
    """Grants exclusive, short-lived claims on slots.

    A claim only covers the window between a caller picking a slot and the
    registry write that makes the booking real. Whether a slot is taken after
    that is answered by the appointment registry, not by this class.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._claims: dict[str, Appointment] = {}

    def try_book(self, slot: Slot, appointment: Appointment) -> bool:
        require(slot, 'slot')
        require(appointment, 'appointment')

        with self._lock:
            if slot.id in self._claims:
                logger.debug('Slot %s is already claimed', slot.id)
                return False
            self._claims[slot.id] = appointment
            return True

    def release(self, slot: Slot) -> None:
        require(slot, 'slot')
        self._release_key(slot.id)

    def release_at(self, provider: Doctor, starts_at: datetime) -> None:
        require(provider, 'provider')
        require(starts_at, 'starts_at')
        self._release_key(slot_id(provider.id, starts_at))

    def is_occupied(self, slot: Slot) -> bool:
        with self._lock:
            return slot.id in self._claims

    def holder(self, slot: Slot) -> Appointment | None:
        with self._lock:
            return self._claims.get(slot.id)

    def _release_key(self, key: str) -> None:
        with self._lock:
            self._claims.pop(key, None)
