from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ValidationError, field_validator
from sqlalchemy.exc import SQLAlchemyError

from clinic_scheduler.dependencies import get_directory
from clinic_scheduler.domain.participants import Participant, describe_role, participant_adapter
from clinic_scheduler.routes.common import database_unavailable, normalize_id
from clinic_scheduler.services.directory import ParticipantDirectory

router = APIRouter(tags=['participants'])


class RegisterParticipantRequest(BaseModel):
    id: str
    name: str
    role: Literal['doctor', 'patient', 'pharmacist', 'administrator']
    specialization: str | None = None

    @field_validator('id', 'name')
    @classmethod
    def validate_required(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Value is required.')
        return normalized

    @field_validator('role', mode='before')
    @classmethod
    def normalize_role(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator('specialization')
    @classmethod
    def validate_specialization(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class ParticipantResponse(BaseModel):
    id: str
    name: str
    role: str
    specialization: str | None = None
    description: str


def to_participant_response(participant: Participant) -> ParticipantResponse:
    return ParticipantResponse(
        id=participant.id,
        name=participant.name,
        role=participant.role,
        specialization=getattr(participant, 'specialization', None) or None,
        description=describe_role(participant),
    )


@router.post('', response_model=ParticipantResponse, status_code=status.HTTP_201_CREATED)
def register_participant(
    data: RegisterParticipantRequest,
    directory: ParticipantDirectory = Depends(get_directory),
):
    payload = {'id': data.id, 'name': data.name, 'role': data.role}
    if data.role == 'doctor':
        payload['specialization'] = data.specialization or ''
    elif data.specialization:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Only doctors have a specialization.',
        )

    try:
        participant = participant_adapter.validate_python(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Invalid participant.',
        ) from exc

    try:
        directory.register(participant)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return to_participant_response(participant)


@router.get('/doctors', response_model=list[ParticipantResponse])
def list_doctors(directory: ParticipantDirectory = Depends(get_directory)):
    try:
        doctors = directory.list_doctors()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [to_participant_response(doctor) for doctor in doctors]


@router.get('/{participant_id}', response_model=ParticipantResponse)
def get_participant(participant_id: str, directory: ParticipantDirectory = Depends(get_directory)):
    participant_id = normalize_id(participant_id, 'Participant id')

    try:
        participant = directory.get(participant_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if participant is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Participant not found.',
        )

    return to_participant_response(participant)
