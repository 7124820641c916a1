from datetime import date, datetime, time, timedelta

import pytest

from clinic_scheduler.database import Database
from clinic_scheduler.domain.participants import Doctor, Patient
from clinic_scheduler.services.appointment_registry import AppointmentRegistry
from clinic_scheduler.services.availability_store import AvailabilityStore
from clinic_scheduler.services.booking_coordinator import SlotBookingCoordinator
from clinic_scheduler.services.directory import ParticipantDirectory
from clinic_scheduler.services.lifecycle import AppointmentLifecycle
from clinic_scheduler.services.scheduling import SchedulingService

TODAY = date(2025, 6, 9)


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime.combine(TODAY, time(8, 0)))


@pytest.fixture
def database():
    db = Database('sqlite://', echo=False)
    try:
        yield db
    finally:
        db.dispose()


@pytest.fixture
def doctor() -> Doctor:
    return Doctor(id='D1', name='Dr. Avery', specialization='Cardiology')


@pytest.fixture
def other_doctor() -> Doctor:
    return Doctor(id='D2', name='Dr. Blake')


@pytest.fixture
def patient() -> Patient:
    return Patient(id='P1', name='Jordan Lee')


@pytest.fixture
def other_patient() -> Patient:
    return Patient(id='P2', name='Sam Rivera')


@pytest.fixture
def store(database, clock) -> AvailabilityStore:
    return AvailabilityStore(database, clock=clock)


@pytest.fixture
def registry(database) -> AppointmentRegistry:
    return AppointmentRegistry(database)


@pytest.fixture
def coordinator() -> SlotBookingCoordinator:
    return SlotBookingCoordinator()


@pytest.fixture
def lifecycle(registry, coordinator) -> AppointmentLifecycle:
    return AppointmentLifecycle(registry, coordinator)


@pytest.fixture
def scheduler(store, registry, coordinator, lifecycle, clock) -> SchedulingService:
    return SchedulingService(store, registry, coordinator, lifecycle, clock=clock)


@pytest.fixture
def directory(database, doctor, other_doctor, patient, other_patient) -> ParticipantDirectory:
    participants = ParticipantDirectory(database)
    for participant in (doctor, other_doctor, patient, other_patient):
        participants.register(participant)
    return participants
