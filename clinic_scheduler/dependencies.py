from datetime import datetime
from typing import Callable

from fastapi import Request

from clinic_scheduler.database import Database
from clinic_scheduler.services.appointment_registry import AppointmentRegistry
from clinic_scheduler.services.availability_store import AvailabilityStore
from clinic_scheduler.services.booking_coordinator import SlotBookingCoordinator
from clinic_scheduler.services.directory import ParticipantDirectory
from clinic_scheduler.services.lifecycle import AppointmentLifecycle
from clinic_scheduler.services.scheduling import SchedulingService


def build_scheduler(database: Database, clock: Callable[[], datetime] = datetime.now) -> SchedulingService:
    registry = AppointmentRegistry(database)
    coordinator = SlotBookingCoordinator()
    return SchedulingService(
        availability=AvailabilityStore(database, clock=clock),
        registry=registry,
        coordinator=coordinator,
        lifecycle=AppointmentLifecycle(registry, coordinator),
        clock=clock,
    )


def get_scheduler(request: Request) -> SchedulingService:
    return request.app.state.scheduler


def get_directory(request: Request) -> ParticipantDirectory:
    return request.app.state.directory
