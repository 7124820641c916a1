from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, time
from threading import Barrier

import pytest

from clinic_scheduler.core.errors import ContractViolationError
from clinic_scheduler.domain.appointments import AppointmentStatus, Prescription, PrescriptionStatus
from clinic_scheduler.domain.participants import Patient

BOOKING_DATE = date(2025, 6, 10)


@pytest.fixture
def open_morning(scheduler, doctor) -> None:
    scheduler.set_availability(doctor, BOOKING_DATE, time(9, 0), time(10, 0))


def first_free_slot(scheduler, provider):
    return scheduler.get_available_slots(BOOKING_DATE, provider)[0]


def test_booking_scenario(scheduler, open_morning, doctor, patient, other_patient) -> None:
    slots = scheduler.get_available_slots(BOOKING_DATE, doctor)

    assert [(slot.start_time, slot.end_time) for slot in slots] == [
        (time(9, 0), time(9, 30)),
        (time(9, 30), time(10, 0)),
    ]

    appointment = scheduler.schedule_appointment(patient, doctor, slots[0])

    assert appointment is not None
    assert appointment.status is AppointmentStatus.PENDING_APPROVAL
    assert appointment.scheduled_at == datetime(2025, 6, 10, 9, 0)
    assert scheduler.schedule_appointment(other_patient, doctor, slots[0]) is None
    assert [slot.start_time for slot in scheduler.get_available_slots(BOOKING_DATE, doctor)] == [time(9, 30)]


def test_calendar_view_marks_booked_slots(scheduler, open_morning, doctor, patient) -> None:
    appointment = scheduler.schedule_appointment(patient, doctor, first_free_slot(scheduler, doctor))

    slots = scheduler.get_slots(BOOKING_DATE, doctor)

    assert slots[0].occupied is True
    assert slots[0].appointment_id == appointment.id
    assert slots[1].occupied is False


def test_occupied_or_foreign_slot_is_refused(scheduler, open_morning, doctor, other_doctor, patient) -> None:
    slot = first_free_slot(scheduler, doctor)

    assert scheduler.schedule_appointment(patient, doctor, slot.model_copy(update={'occupied': True})) is None
    assert scheduler.schedule_appointment(patient, other_doctor, slot) is None
    assert scheduler.get_all_appointments() == []


def test_stale_slot_is_refused(scheduler, open_morning, doctor, patient) -> None:
    slot = first_free_slot(scheduler, doctor)
    scheduler.set_availability(doctor, BOOKING_DATE, time(11, 0), time(12, 0))

    assert scheduler.schedule_appointment(patient, doctor, slot) is None


def test_transition_scenario(scheduler, open_morning, doctor, patient) -> None:
    appointment = scheduler.schedule_appointment(patient, doctor, first_free_slot(scheduler, doctor))

    assert scheduler.update_appointment_status(appointment.id, AppointmentStatus.CONFIRMED) is True
    assert scheduler.update_appointment_status(appointment.id, AppointmentStatus.CONFIRMED) is False
    assert scheduler.get_appointment_by_id(appointment.id).status is AppointmentStatus.CONFIRMED


def test_status_update_cannot_complete(scheduler, open_morning, doctor, patient) -> None:
    appointment = scheduler.schedule_appointment(patient, doctor, first_free_slot(scheduler, doctor))
    scheduler.update_appointment_status(appointment.id, AppointmentStatus.CONFIRMED)

    assert scheduler.update_appointment_status(appointment.id, AppointmentStatus.COMPLETED) is False


def test_cancellation_releases_capacity(scheduler, open_morning, doctor, patient, other_patient) -> None:
    appointment = scheduler.schedule_appointment(patient, doctor, first_free_slot(scheduler, doctor))
    scheduler.update_appointment_status(appointment.id, AppointmentStatus.CONFIRMED)

    assert scheduler.cancel_appointment(appointment.id) is True
    assert scheduler.cancel_appointment(appointment.id) is False

    free = scheduler.get_available_slots(BOOKING_DATE, doctor)
    assert time(9, 0) in [slot.start_time for slot in free]
    assert scheduler.schedule_appointment(other_patient, doctor, free[0]) is not None


def test_outcome_gating(scheduler, open_morning, doctor, patient) -> None:
    appointment = scheduler.schedule_appointment(patient, doctor, first_free_slot(scheduler, doctor))
    prescriptions = [Prescription(medicine_name='Ibuprofen', quantity=10, status=PrescriptionStatus.DISPENSED)]

    assert scheduler.record_appointment_outcome(appointment.id, 'Consultation', prescriptions) is False

    scheduler.update_appointment_status(appointment.id, AppointmentStatus.CONFIRMED)

    assert scheduler.record_appointment_outcome(appointment.id, 'Consultation', prescriptions, 'Rest.') is True

    stored = scheduler.get_appointment_by_id(appointment.id)
    assert stored.status is AppointmentStatus.COMPLETED
    assert stored.outcome is not None
    assert stored.outcome.date == BOOKING_DATE
    assert stored.outcome.consultation_notes == 'Rest.'
    assert stored.outcome.prescriptions[0].status is PrescriptionStatus.PENDING


def test_reschedule_appointment(scheduler, open_morning, doctor, patient) -> None:
    first, second = scheduler.get_available_slots(BOOKING_DATE, doctor)
    appointment = scheduler.schedule_appointment(patient, doctor, first)

    assert scheduler.reschedule_appointment(appointment.id, second) is True

    stored = scheduler.get_appointment_by_id(appointment.id)
    assert stored.scheduled_at == datetime(2025, 6, 10, 9, 30)
    assert [slot.start_time for slot in scheduler.get_available_slots(BOOKING_DATE, doctor)] == [time(9, 0)]


def test_reschedule_to_booked_slot_fails(scheduler, open_morning, doctor, patient, other_patient) -> None:
    first, second = scheduler.get_available_slots(BOOKING_DATE, doctor)
    appointment = scheduler.schedule_appointment(patient, doctor, first)
    scheduler.schedule_appointment(other_patient, doctor, second)

    assert scheduler.reschedule_appointment(appointment.id, second) is False
    assert scheduler.get_appointment_by_id(appointment.id).scheduled_at == datetime(2025, 6, 10, 9, 0)


def test_unknown_ids_return_false(scheduler) -> None:
    assert scheduler.cancel_appointment('A99999') is False
    assert scheduler.update_appointment_status('A99999', AppointmentStatus.CONFIRMED) is False
    assert scheduler.record_appointment_outcome('A99999', 'Consultation', []) is False
    assert scheduler.get_appointment_by_id('A99999') is None


def test_missing_arguments_raise(scheduler, doctor, patient) -> None:
    with pytest.raises(ContractViolationError):
        scheduler.schedule_appointment(patient, doctor, None)

    with pytest.raises(ContractViolationError):
        scheduler.cancel_appointment(None)

    with pytest.raises(ContractViolationError):
        scheduler.get_available_slots(None, doctor)


def test_next_available_slot_skips_full_days(scheduler, clock, doctor, patient) -> None:
    scheduler.set_availability(doctor, date(2025, 6, 9), time(9, 0), time(9, 30))
    scheduler.set_availability(doctor, BOOKING_DATE, time(14, 0), time(15, 0))
    today_slot = scheduler.get_available_slots(date(2025, 6, 9), doctor)[0]
    scheduler.schedule_appointment(patient, doctor, today_slot)

    slot = scheduler.get_next_available_slot(doctor)

    assert slot.date == BOOKING_DATE
    assert slot.start_time == time(14, 0)
    assert scheduler.get_next_available_slot(doctor, days=1) is None


def test_patient_and_provider_views(scheduler, clock, doctor, patient) -> None:
    scheduler.set_availability(doctor, BOOKING_DATE, time(9, 0), time(11, 0))
    slots = scheduler.get_available_slots(BOOKING_DATE, doctor)
    pending = scheduler.schedule_appointment(patient, doctor, slots[0])
    confirmed = scheduler.schedule_appointment(patient, doctor, slots[1])
    cancelled = scheduler.schedule_appointment(patient, doctor, slots[2])
    scheduler.update_appointment_status(confirmed.id, AppointmentStatus.CONFIRMED)
    scheduler.cancel_appointment(cancelled.id)

    assert [item.id for item in scheduler.get_scheduled_appointments(patient)] == [pending.id, confirmed.id]
    assert [item.id for item in scheduler.get_upcoming_appointments(doctor)] == [pending.id, confirmed.id]
    assert [item.id for item in scheduler.get_pending_appointments(doctor)] == [pending.id]
    assert scheduler.get_next_appointment(patient=patient).id == confirmed.id
    assert scheduler.get_next_appointment(provider=doctor).id == confirmed.id
    assert scheduler.get_status_summary(doctor) == {
        AppointmentStatus.PENDING_APPROVAL: 1,
        AppointmentStatus.CONFIRMED: 1,
        AppointmentStatus.COMPLETED: 0,
        AppointmentStatus.CANCELLED: 1,
    }

    clock.now = datetime(2025, 6, 11, 8, 0)

    assert [item.id for item in scheduler.get_past_appointments(patient=patient)] == [
        cancelled.id,
        confirmed.id,
        pending.id,
    ]
    assert scheduler.get_scheduled_appointments(patient) == []


def test_purge_uses_retention_window(scheduler, clock, open_morning, doctor, patient) -> None:
    appointment = scheduler.schedule_appointment(patient, doctor, first_free_slot(scheduler, doctor))
    scheduler.cancel_appointment(appointment.id)

    assert scheduler.purge_cancelled_before() == 0

    clock.now = datetime(2025, 8, 1, 8, 0)

    assert scheduler.purge_cancelled_before() == 1
    assert scheduler.get_all_appointments() == []


def test_concurrent_bookings_of_one_slot_have_one_winner(scheduler, open_morning, doctor) -> None:
    attempts = 12
    slot = first_free_slot(scheduler, doctor)
    patients = [Patient(id=f'P{index + 10}', name=f'Patient {index}') for index in range(attempts)]
    barrier = Barrier(attempts)

    def attempt(patient):
        barrier.wait()
        return scheduler.schedule_appointment(patient, doctor, slot)

    with ThreadPoolExecutor(max_workers=attempts) as executor:
        results = list(executor.map(attempt, patients))

    winners = [result for result in results if result is not None]
    assert len(winners) == 1
    assert len(scheduler.get_appointments_for_provider(doctor)) == 1
    assert scheduler.get_available_slots(BOOKING_DATE, doctor)[0].start_time == time(9, 30)


def test_availability_management_through_facade(scheduler, doctor, other_doctor) -> None:
    scheduler.set_availability(doctor, BOOKING_DATE, time(9, 0), time(10, 0))

    assert scheduler.update_availability(doctor, BOOKING_DATE, time(9, 0), time(11, 0)) is True
    assert scheduler.update_availability(other_doctor, BOOKING_DATE, time(9, 0), time(11, 0)) is False
    assert scheduler.get_window(doctor, BOOKING_DATE).end_time == time(11, 0)
    assert len(scheduler.get_available_slots(BOOKING_DATE, doctor)) == 4
    assert scheduler.list_available_providers(BOOKING_DATE) == [doctor]
    assert [window.date for window in scheduler.list_availability(doctor)] == [BOOKING_DATE]

    assert scheduler.remove_availability(doctor, BOOKING_DATE) is True
    assert scheduler.get_available_slots(BOOKING_DATE, doctor) == []


def test_calendar_view_only_reads_the_requested_day(scheduler, open_morning, registry, doctor, patient, monkeypatch) -> None:
    scheduler.schedule_appointment(patient, doctor, first_free_slot(scheduler, doctor))

    def unbounded(*args, **kwargs):
        raise AssertionError('calendar view must not load the full provider history')

    monkeypatch.setattr(registry, 'find_by_provider', unbounded)

    assert [slot.occupied for slot in scheduler.get_slots(BOOKING_DATE, doctor)] == [True, False]
