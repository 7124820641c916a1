"""Appointment status transitions and their side effects.

PENDING_APPROVAL -> CONFIRMED | CANCELLED
CONFIRMED        -> COMPLETED | CANCELLED
COMPLETED, CANCELLED are terminal.

Every operation re-reads the stored appointment under the registry lock,
checks the transition against what is stored, writes, and only then copies
the new state onto the caller's instance.
"""

import logging
from dataclasses import dataclass

from clinic_scheduler.core.errors import ConflictReason, require
from clinic_scheduler.domain.appointments import Appointment, AppointmentOutcomeRecord, AppointmentStatus
from clinic_scheduler.domain.availability import Slot
from clinic_scheduler.services.appointment_registry import AppointmentRegistry
from clinic_scheduler.services.booking_coordinator import SlotBookingCoordinator

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING_APPROVAL: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def is_valid_transition(current: AppointmentStatus, new_status: AppointmentStatus) -> bool:
    return new_status in ALLOWED_TRANSITIONS[current]


@dataclass(frozen=True)
class TransitionResult:
    ok: bool
    reason: ConflictReason | None = None
    appointment: Appointment | None = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def succeeded(cls, appointment: Appointment) -> 'TransitionResult':
        return cls(ok=True, appointment=appointment)

    @classmethod
    def failed(cls, reason: ConflictReason, appointment: Appointment | None = None) -> 'TransitionResult':
        return cls(ok=False, reason=reason, appointment=appointment)


def _apply(target: Appointment, source: Appointment) -> None:
    target.id = source.id
    target.scheduled_at = source.scheduled_at
    target.status = source.status
    target.outcome = source.outcome


class AppointmentLifecycle:
    def __init__(self, registry: AppointmentRegistry, coordinator: SlotBookingCoordinator) -> None:
        self._registry = registry
        self._coordinator = coordinator

    def _load(self, appointment: Appointment) -> Appointment | None:
        if appointment.id is None:
            return None
        return self._registry.find_by_id(appointment.id)

    def request_transition(self, appointment: Appointment, new_status: AppointmentStatus) -> TransitionResult:
        require(appointment, 'appointment')
        require(new_status, 'new_status')
        new_status = AppointmentStatus(new_status)

        with self._registry.locked():
            stored = self._load(appointment)
            if stored is None:
                return TransitionResult.failed(ConflictReason.NOT_FOUND)

            if not is_valid_transition(stored.status, new_status):
                logger.info(
                    'Rejected transition %s -> %s for appointment %s',
                    stored.status.value,
                    new_status.value,
                    stored.id,
                )
                return TransitionResult.failed(ConflictReason.INVALID_TRANSITION, stored)

            if new_status is AppointmentStatus.COMPLETED:
                return TransitionResult.failed(ConflictReason.OUTCOME_REQUIRED, stored)

            updated = self._registry.save(stored.model_copy(update={'status': new_status}))

            if new_status is AppointmentStatus.CANCELLED:
                self._coordinator.release_at(stored.provider, stored.scheduled_at)

        logger.info('Appointment %s moved %s -> %s', updated.id, stored.status.value, new_status.value)
        _apply(appointment, updated)
        return TransitionResult.succeeded(updated)

    def cancel(self, appointment: Appointment) -> TransitionResult:
        return self.request_transition(appointment, AppointmentStatus.CANCELLED)

    def confirm(self, appointment: Appointment) -> TransitionResult:
        return self.request_transition(appointment, AppointmentStatus.CONFIRMED)

    def complete(self, appointment: Appointment, outcome: AppointmentOutcomeRecord) -> TransitionResult:
        require(appointment, 'appointment')
        require(outcome, 'outcome')

        with self._registry.locked():
            stored = self._load(appointment)
            if stored is None:
                return TransitionResult.failed(ConflictReason.NOT_FOUND)

            if stored.status is not AppointmentStatus.CONFIRMED:
                logger.info('Cannot record outcome for appointment %s in status %s', stored.id, stored.status.value)
                return TransitionResult.failed(ConflictReason.NOT_CONFIRMED, stored)

            updated = self._registry.save(
                stored.model_copy(update={'status': AppointmentStatus.COMPLETED, 'outcome': outcome})
            )

        logger.info('Appointment %s completed with service %s', updated.id, outcome.service_type)
        _apply(appointment, updated)
        return TransitionResult.succeeded(updated)

    def reschedule(self, appointment: Appointment, new_slot: Slot) -> TransitionResult:
        require(appointment, 'appointment')
        require(new_slot, 'new_slot')

        with self._registry.locked():
            stored = self._load(appointment)
            if stored is None:
                return TransitionResult.failed(ConflictReason.NOT_FOUND)

            if stored.status in TERMINAL_STATUSES:
                return TransitionResult.failed(ConflictReason.INVALID_TRANSITION, stored)

            if new_slot.provider != stored.provider:
                return TransitionResult.failed(ConflictReason.PROVIDER_MISMATCH, stored)

            if new_slot.occupied or not self._coordinator.try_book(new_slot, stored):
                return TransitionResult.failed(ConflictReason.SLOT_TAKEN, stored)

            try:
                updated = self._registry.claim(
                    stored.model_copy(
                        update={
                            'scheduled_at': new_slot.starts_at,
                            'status': AppointmentStatus.PENDING_APPROVAL,
                        }
                    )
                )
            finally:
                self._coordinator.release(new_slot)

            if updated is None:
                return TransitionResult.failed(ConflictReason.SLOT_TAKEN, stored)

            self._coordinator.release_at(stored.provider, stored.scheduled_at)

        logger.info(
            'Appointment %s rescheduled from %s to %s',
            updated.id,
            stored.scheduled_at.isoformat(),
            updated.scheduled_at.isoformat(),
        )
        _apply(appointment, updated)
        return TransitionResult.succeeded(updated)
