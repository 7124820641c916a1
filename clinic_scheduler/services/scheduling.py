import logging
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta
from typing import Callable

from clinic_scheduler.core import config
from clinic_scheduler.core.errors import require
from clinic_scheduler.domain.appointments import (
    Appointment,
    AppointmentOutcomeRecord,
    AppointmentStatus,
    Prescription,
    PrescriptionStatus,
)
from clinic_scheduler.domain.availability import AvailabilityWindow, Slot
from clinic_scheduler.domain.participants import Doctor, Patient
from clinic_scheduler.services.appointment_registry import AppointmentRegistry
from clinic_scheduler.services.availability_store import AvailabilityStore
from clinic_scheduler.services.booking_coordinator import SlotBookingCoordinator
from clinic_scheduler.services.lifecycle import AppointmentLifecycle
from clinic_scheduler.services.slot_generator import default_slot_duration, generate_slots

logger = logging.getLogger(__name__)

UPCOMING_STATUSES = frozenset({AppointmentStatus.PENDING_APPROVAL, AppointmentStatus.CONFIRMED})


class SchedulingService:
    """Entry point for everything a presentation layer does with schedules.

    Booking operations report failure through their return value: ``None``
    for ``schedule_appointment`` and ``False`` for the others. They raise
    only when a required argument is ``None``.
    """

    def __init__(
        self,
        availability: AvailabilityStore,
        registry: AppointmentRegistry,
        coordinator: SlotBookingCoordinator,
        lifecycle: AppointmentLifecycle | None = None,
        clock: Callable[[], datetime] = datetime.now,
        slot_duration: timedelta | None = None,
    ) -> None:
        self.availability = availability
        self.registry = registry
        self.coordinator = coordinator
        self.lifecycle = lifecycle or AppointmentLifecycle(registry, coordinator)
        self._clock = clock
        self._slot_duration = default_slot_duration() if slot_duration is None else slot_duration

    # =========================================================================
    # Availability
    # =========================================================================

    def set_availability(self, provider: Doctor, window_date: date, start_time: time, end_time: time) -> None:
        self.availability.set_availability(provider, window_date, start_time, end_time)

    def update_availability(self, provider: Doctor, window_date: date, start_time: time, end_time: time) -> bool:
        return self.availability.update_availability(provider, window_date, start_time, end_time)

    def remove_availability(self, provider: Doctor, window_date: date) -> bool:
        return self.availability.remove_availability(provider, window_date)

    def get_window(self, provider: Doctor, window_date: date) -> AvailabilityWindow | None:
        return self.availability.get_window(provider, window_date)

    def list_availability(self, provider: Doctor) -> list[AvailabilityWindow]:
        return self.availability.list_by_provider(provider)

    def list_available_providers(self, window_date: date) -> list[Doctor]:
        require(window_date, 'date')
        return self.availability.list_available_providers(window_date)

    # =========================================================================
    # Slots
    # =========================================================================

    def get_slots(self, slot_date: date, provider: Doctor) -> list[Slot]:
        """All slots of the provider's window, marked with current occupancy."""
        require(slot_date, 'date')
        require(provider, 'provider')

        window = self.availability.get_window(provider, slot_date)
        slots = generate_slots(window, duration=self._slot_duration, clock=self._clock)

        booked = {
            appointment.scheduled_at: appointment.id
            for appointment in self.registry.find_live_by_provider_on(provider, slot_date)
        }

        return [
            slot.model_copy(update={'occupied': True, 'appointment_id': booked[slot.starts_at]})
            if slot.starts_at in booked
            else slot
            for slot in slots
        ]

    def get_available_slots(self, slot_date: date, provider: Doctor) -> list[Slot]:
        return [slot for slot in self.get_slots(slot_date, provider) if not slot.occupied]

    def get_slot_by_datetime(self, provider: Doctor, slot_date: date, start_time: time) -> Slot | None:
        require(start_time, 'start_time')

        for slot in self.get_slots(slot_date, provider):
            if slot.start_time == start_time:
                return slot
        return None

    def get_next_available_slot(self, provider: Doctor, days: int | None = None) -> Slot | None:
        require(provider, 'provider')
        if days is None:
            days = config.NEXT_SLOT_LOOKAHEAD_DAYS
        today = self._clock().date()

        for offset in range(days):
            free_slots = self.get_available_slots(today + timedelta(days=offset), provider)
            if free_slots:
                return free_slots[0]
        return None

    def _is_current(self, slot: Slot) -> bool:
        current = self.get_slot_by_datetime(slot.provider, slot.date, slot.start_time)
        return current is not None and not current.occupied and current.end_time == slot.end_time

    # =========================================================================
    # Booking
    # =========================================================================

    def schedule_appointment(self, patient: Patient, provider: Doctor, slot: Slot) -> Appointment | None:
        require(patient, 'patient')
        require(provider, 'provider')
        require(slot, 'slot')

        if slot.occupied or slot.provider != provider:
            return None

        if not self._is_current(slot):
            logger.info('Slot %s is no longer offered for provider %s', slot.id, provider.id)
            return None

        appointment = Appointment(patient=patient, provider=provider, scheduled_at=slot.starts_at)

        if not self.coordinator.try_book(slot, appointment):
            return None

        try:
            saved = self.registry.claim(appointment)
        finally:
            self.coordinator.release(slot)

        if saved is None:
            return None

        logger.info(
            'Booked appointment %s for patient %s with provider %s at %s',
            saved.id,
            patient.id,
            provider.id,
            saved.scheduled_at.isoformat(),
        )
        return saved

    def reschedule_appointment(self, appointment_id: str, new_slot: Slot) -> bool:
        require(appointment_id, 'appointment_id')
        require(new_slot, 'new_slot')

        appointment = self.registry.find_by_id(appointment_id)
        if appointment is None or not self._is_current(new_slot):
            return False

        return bool(self.lifecycle.reschedule(appointment, new_slot))

    def cancel_appointment(self, appointment_id: str) -> bool:
        require(appointment_id, 'appointment_id')

        appointment = self.registry.find_by_id(appointment_id)
        if appointment is None:
            return False

        return bool(self.lifecycle.cancel(appointment))

    def update_appointment_status(self, appointment_id: str, status: AppointmentStatus) -> bool:
        require(appointment_id, 'appointment_id')
        require(status, 'status')

        appointment = self.registry.find_by_id(appointment_id)
        if appointment is None:
            return False

        return bool(self.lifecycle.request_transition(appointment, status))

    def record_appointment_outcome(
        self,
        appointment_id: str,
        service_type: str,
        prescriptions: Iterable[Prescription],
        notes: str | None = None,
    ) -> bool:
        require(appointment_id, 'appointment_id')
        require(service_type, 'service_type')
        require(prescriptions, 'prescriptions')

        appointment = self.registry.find_by_id(appointment_id)
        if appointment is None:
            return False

        outcome = AppointmentOutcomeRecord(
            date=appointment.scheduled_at.date(),
            service_type=service_type,
            prescriptions=tuple(
                prescription.model_copy(update={'status': PrescriptionStatus.PENDING})
                for prescription in prescriptions
            ),
            consultation_notes=notes or '',
        )
        return bool(self.lifecycle.complete(appointment, outcome))

    # =========================================================================
    # Queries
    # =========================================================================

    def get_appointment_by_id(self, appointment_id: str) -> Appointment | None:
        require(appointment_id, 'appointment_id')
        return self.registry.find_by_id(appointment_id)

    def get_all_appointments(self) -> list[Appointment]:
        return self.registry.find_all()

    def get_appointments_for_provider(self, provider: Doctor) -> list[Appointment]:
        return self.registry.find_by_provider(provider)

    def get_appointments_for_patient(self, patient: Patient) -> list[Appointment]:
        return self.registry.find_by_patient(patient)

    def get_appointments_by_date(self, day: date) -> list[Appointment]:
        return self.registry.find_by_date(day)

    def get_appointments_by_status(self, status: AppointmentStatus) -> list[Appointment]:
        return self.registry.find_by_status(status)

    def get_scheduled_appointments(self, patient: Patient) -> list[Appointment]:
        require(patient, 'patient')
        return [
            appointment
            for appointment in self.registry.find_future_by_patient(patient, self._clock())
            if appointment.is_live
        ]

    def get_upcoming_appointments(self, provider: Doctor) -> list[Appointment]:
        require(provider, 'provider')
        return [
            appointment
            for appointment in self.registry.find_future_by_provider(provider, self._clock())
            if appointment.status in UPCOMING_STATUSES
        ]

    def get_pending_appointments(self, provider: Doctor) -> list[Appointment]:
        require(provider, 'provider')
        return self.registry.find_pending_by_provider(provider, self._clock())

    def get_past_appointments(
        self,
        *,
        patient: Patient | None = None,
        provider: Doctor | None = None,
    ) -> list[Appointment]:
        now = self._clock()
        if patient is not None:
            return self.registry.find_past_by_patient(patient, now)
        if provider is not None:
            return self.registry.find_past_by_provider(provider, now)
        raise TypeError('get_past_appointments requires a patient or a provider')

    def get_next_appointment(
        self,
        *,
        patient: Patient | None = None,
        provider: Doctor | None = None,
    ) -> Appointment | None:
        now = self._clock()
        if patient is not None:
            return self.registry.find_next_for_patient(patient, now)
        if provider is not None:
            return self.registry.find_next_for_provider(provider, now)
        raise TypeError('get_next_appointment requires a patient or a provider')

    def get_status_summary(self, provider: Doctor) -> dict[AppointmentStatus, int]:
        counts = self.registry.count_by_status_for_provider(provider)
        return {status: counts.get(status, 0) for status in AppointmentStatus}

    def purge_cancelled_before(self, cutoff: date | None = None) -> int:
        if cutoff is None:
            cutoff = self._clock().date() - timedelta(days=config.CANCELLED_RETENTION_DAYS)
        return self.registry.purge_cancelled_before(cutoff)
