from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError

from clinic_scheduler.dependencies import get_directory, get_scheduler
from clinic_scheduler.domain.appointments import Appointment, AppointmentStatus, Prescription
from clinic_scheduler.routes.common import database_unavailable, normalize_id, resolve_doctor, resolve_patient
from clinic_scheduler.services.directory import ParticipantDirectory
from clinic_scheduler.services.scheduling import SchedulingService

router = APIRouter(tags=['appointments'])

MAX_CONSULTATION_NOTES_LENGTH = 2000


def _strip_required(value: str, message: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(message)
    return normalized


class CreateAppointmentRequest(BaseModel):
    patient_id: str
    provider_id: str
    start_time: datetime

    @field_validator('patient_id')
    @classmethod
    def validate_patient_id(cls, value: str) -> str:
        return _strip_required(value, 'Patient id is required.')

    @field_validator('provider_id')
    @classmethod
    def validate_provider_id(cls, value: str) -> str:
        return _strip_required(value, 'Provider id is required.')


class RescheduleAppointmentRequest(BaseModel):
    start_time: datetime


class UpdateStatusRequest(BaseModel):
    status: AppointmentStatus

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class PrescriptionRequest(BaseModel):
    medicine_name: str
    quantity: int = Field(ge=1)

    @field_validator('medicine_name')
    @classmethod
    def validate_medicine_name(cls, value: str) -> str:
        return _strip_required(value, 'Medicine name is required.')


class RecordOutcomeRequest(BaseModel):
    service_type: str
    prescriptions: list[PrescriptionRequest] = []
    notes: str | None = None

    @field_validator('service_type')
    @classmethod
    def validate_service_type(cls, value: str) -> str:
        return _strip_required(value, 'Service type is required.')

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_CONSULTATION_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_CONSULTATION_NOTES_LENGTH} characters or fewer.')

        return normalized


class PrescriptionResponse(BaseModel):
    medicine_name: str
    quantity: int
    status: str


class OutcomeResponse(BaseModel):
    date: date
    service_type: str
    prescriptions: list[PrescriptionResponse]
    consultation_notes: str


class AppointmentResponse(BaseModel):
    id: str
    patient_id: str
    patient_name: str
    provider_id: str
    provider_name: str
    scheduled_at: datetime
    status: str
    outcome: OutcomeResponse | None = None


class PurgeResponse(BaseModel):
    purged: int


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    outcome = None
    if appointment.outcome is not None:
        outcome = OutcomeResponse(
            date=appointment.outcome.date,
            service_type=appointment.outcome.service_type,
            prescriptions=[
                PrescriptionResponse(
                    medicine_name=prescription.medicine_name,
                    quantity=prescription.quantity,
                    status=prescription.status.value,
                )
                for prescription in appointment.outcome.prescriptions
            ],
            consultation_notes=appointment.outcome.consultation_notes,
        )

    return AppointmentResponse(
        id=appointment.id,
        patient_id=appointment.patient.id,
        patient_name=appointment.patient.name,
        provider_id=appointment.provider.id,
        provider_name=appointment.provider.name,
        scheduled_at=appointment.scheduled_at,
        status=appointment.status.value,
        outcome=outcome,
    )


def get_existing_appointment(scheduler: SchedulingService, appointment_id: str) -> Appointment:
    appointment = scheduler.get_appointment_by_id(normalize_id(appointment_id, 'Appointment id'))
    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )
    return appointment


def slot_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail='Selected time is no longer available.',
    )


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    scheduler: SchedulingService = Depends(get_scheduler),
    directory: ParticipantDirectory = Depends(get_directory),
):
    try:
        patient = resolve_patient(directory, data.patient_id)
        provider = resolve_doctor(directory, data.provider_id)

        slot = scheduler.get_slot_by_datetime(provider, data.start_time.date(), data.start_time.time())
        if slot is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Start time does not match an offered slot.',
            )
        if slot.occupied:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This time is already booked.',
            )

        appointment = scheduler.schedule_appointment(patient, provider, slot)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if appointment is None:
        raise slot_unavailable()

    return to_appointment_response(appointment)


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    patient_id: str | None = Query(default=None),
    provider_id: str | None = Query(default=None),
    appointment_status: AppointmentStatus | None = Query(default=None, alias='status'),
    on_date: date | None = Query(default=None, alias='date'),
    scheduler: SchedulingService = Depends(get_scheduler),
    directory: ParticipantDirectory = Depends(get_directory),
):
    try:
        if patient_id is not None:
            appointments = scheduler.get_appointments_for_patient(resolve_patient(directory, patient_id))
        elif provider_id is not None:
            appointments = scheduler.get_appointments_for_provider(resolve_doctor(directory, provider_id))
        elif appointment_status is not None:
            appointments = scheduler.get_appointments_by_status(appointment_status)
        elif on_date is not None:
            appointments = scheduler.get_appointments_by_date(on_date)
        else:
            appointments = scheduler.get_all_appointments()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if provider_id is not None:
        appointments = [item for item in appointments if item.provider.id == provider_id.strip()]
    if appointment_status is not None:
        appointments = [item for item in appointments if item.status is appointment_status]
    if on_date is not None:
        appointments = [item for item in appointments if item.scheduled_at.date() == on_date]

    return [to_appointment_response(appointment) for appointment in appointments]


@router.delete('/cancelled', response_model=PurgeResponse)
def purge_cancelled_appointments(
    before: date | None = Query(default=None),
    scheduler: SchedulingService = Depends(get_scheduler),
):
    try:
        purged = scheduler.purge_cancelled_before(before)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return PurgeResponse(purged=purged)


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(appointment_id: str, scheduler: SchedulingService = Depends(get_scheduler)):
    try:
        appointment = get_existing_appointment(scheduler, appointment_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return to_appointment_response(appointment)


@router.post('/{appointment_id}/reschedule', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: str,
    data: RescheduleAppointmentRequest,
    scheduler: SchedulingService = Depends(get_scheduler),
):
    try:
        appointment = get_existing_appointment(scheduler, appointment_id)

        slot = scheduler.get_slot_by_datetime(
            appointment.provider,
            data.start_time.date(),
            data.start_time.time(),
        )
        if slot is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Start time does not match an offered slot.',
            )

        if not scheduler.reschedule_appointment(appointment.id, slot):
            raise slot_unavailable()

        appointment = scheduler.get_appointment_by_id(appointment.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return to_appointment_response(appointment)


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(appointment_id: str, scheduler: SchedulingService = Depends(get_scheduler)):
    try:
        appointment = get_existing_appointment(scheduler, appointment_id)

        if not scheduler.cancel_appointment(appointment.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Appointment cannot be cancelled from status {appointment.status.value}.',
            )

        appointment = scheduler.get_appointment_by_id(appointment.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return to_appointment_response(appointment)


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: str,
    data: UpdateStatusRequest,
    scheduler: SchedulingService = Depends(get_scheduler),
):
    try:
        appointment = get_existing_appointment(scheduler, appointment_id)

        if data.status is AppointmentStatus.COMPLETED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Record an outcome to complete an appointment.',
            )

        if not scheduler.update_appointment_status(appointment.id, data.status):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Cannot change status from {appointment.status.value} to {data.status.value}.',
            )

        appointment = scheduler.get_appointment_by_id(appointment.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return to_appointment_response(appointment)


@router.post('/{appointment_id}/outcome', response_model=AppointmentResponse)
def record_appointment_outcome(
    appointment_id: str,
    data: RecordOutcomeRequest,
    scheduler: SchedulingService = Depends(get_scheduler),
):
    prescriptions = [
        Prescription(medicine_name=item.medicine_name, quantity=item.quantity)
        for item in data.prescriptions
    ]

    try:
        appointment = get_existing_appointment(scheduler, appointment_id)

        if not scheduler.record_appointment_outcome(appointment.id, data.service_type, prescriptions, data.notes):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Only confirmed appointments can be completed.',
            )

        appointment = scheduler.get_appointment_by_id(appointment.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return to_appointment_response(appointment)
