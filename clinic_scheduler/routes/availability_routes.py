from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError

from clinic_scheduler.core.errors import AvailabilityValidationError
from clinic_scheduler.dependencies import get_directory, get_scheduler
from clinic_scheduler.domain.availability import AvailabilityWindow, Slot
from clinic_scheduler.routes.common import database_unavailable, resolve_doctor
from clinic_scheduler.services.directory import ParticipantDirectory
from clinic_scheduler.services.scheduling import SchedulingService

router = APIRouter(tags=['availability'])

MAX_LOOKAHEAD_DAYS = 60


class SetAvailabilityRequest(BaseModel):
    start_time: time
    end_time: time

    @field_validator('start_time', 'end_time')
    @classmethod
    def truncate_to_minute(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0)

    @model_validator(mode='after')
    def validate_order(self) -> 'SetAvailabilityRequest':
        if self.end_time <= self.start_time:
            raise ValueError('End time must be after start time.')
        return self


class AvailabilityWindowResponse(BaseModel):
    id: str
    provider_id: str
    provider_name: str
    date: date
    start_time: time
    end_time: time


class ProviderResponse(BaseModel):
    id: str
    name: str
    specialization: str | None = None


class SlotResponse(BaseModel):
    id: str
    provider_id: str
    date: date
    start_time: datetime
    end_time: datetime
    is_available: bool
    appointment_id: str | None = None


def to_window_response(window: AvailabilityWindow) -> AvailabilityWindowResponse:
    return AvailabilityWindowResponse(
        id=window.id,
        provider_id=window.provider.id,
        provider_name=window.provider.name,
        date=window.date,
        start_time=window.start_time,
        end_time=window.end_time,
    )


def to_slot_response(slot: Slot) -> SlotResponse:
    return SlotResponse(
        id=slot.id,
        provider_id=slot.provider.id,
        date=slot.date,
        start_time=slot.starts_at,
        end_time=slot.ends_at,
        is_available=not slot.occupied,
        appointment_id=slot.appointment_id,
    )


@router.get('/providers', response_model=list[ProviderResponse])
def list_available_providers(
    on_date: date = Query(..., alias='date'),
    scheduler: SchedulingService = Depends(get_scheduler),
):
    try:
        providers = scheduler.list_available_providers(on_date)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [
        ProviderResponse(id=provider.id, name=provider.name, specialization=provider.specialization or None)
        for provider in providers
    ]


@router.get('/{provider_id}/windows', response_model=list[AvailabilityWindowResponse])
def list_provider_windows(
    provider_id: str,
    scheduler: SchedulingService = Depends(get_scheduler),
    directory: ParticipantDirectory = Depends(get_directory),
):
    try:
        provider = resolve_doctor(directory, provider_id)
        windows = scheduler.list_availability(provider)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [to_window_response(window) for window in windows]


@router.put('/{provider_id}/windows/{window_date}', response_model=AvailabilityWindowResponse)
def set_provider_window(
    provider_id: str,
    window_date: date,
    data: SetAvailabilityRequest,
    scheduler: SchedulingService = Depends(get_scheduler),
    directory: ParticipantDirectory = Depends(get_directory),
):
    try:
        provider = resolve_doctor(directory, provider_id)
        scheduler.set_availability(provider, window_date, data.start_time, data.end_time)
        window = scheduler.get_window(provider, window_date)
    except AvailabilityValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return to_window_response(window)


@router.delete('/{provider_id}/windows/{window_date}', status_code=status.HTTP_204_NO_CONTENT)
def remove_provider_window(
    provider_id: str,
    window_date: date,
    scheduler: SchedulingService = Depends(get_scheduler),
    directory: ParticipantDirectory = Depends(get_directory),
):
    try:
        provider = resolve_doctor(directory, provider_id)
        removed = scheduler.remove_availability(provider, window_date)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Availability not found.',
        )


@router.get('/{provider_id}/slots', response_model=list[SlotResponse])
def list_free_slots(
    provider_id: str,
    on_date: date = Query(..., alias='date'),
    scheduler: SchedulingService = Depends(get_scheduler),
    directory: ParticipantDirectory = Depends(get_directory),
):
    try:
        provider = resolve_doctor(directory, provider_id)
        slots = scheduler.get_available_slots(on_date, provider)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [to_slot_response(slot) for slot in slots]


@router.get('/{provider_id}/calendar', response_model=list[SlotResponse])
def list_calendar_slots(
    provider_id: str,
    on_date: date = Query(..., alias='date'),
    scheduler: SchedulingService = Depends(get_scheduler),
    directory: ParticipantDirectory = Depends(get_directory),
):
    try:
        provider = resolve_doctor(directory, provider_id)
        slots = scheduler.get_slots(on_date, provider)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [to_slot_response(slot) for slot in slots]


@router.get('/{provider_id}/next-slot', response_model=SlotResponse)
def get_next_free_slot(
    provider_id: str,
    days: int | None = Query(default=None, ge=1, le=MAX_LOOKAHEAD_DAYS),
    scheduler: SchedulingService = Depends(get_scheduler),
    directory: ParticipantDirectory = Depends(get_directory),
):
    try:
        provider = resolve_doctor(directory, provider_id)
        slot = scheduler.get_next_available_slot(provider, days)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if slot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='No free slot in the requested range.',
        )

    return to_slot_response(slot)
