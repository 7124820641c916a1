from fastapi import HTTPException, status

from clinic_scheduler.domain.participants import Doctor, Patient
from clinic_scheduler.services.directory import ParticipantDirectory

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL.'


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def normalize_id(value: str, label: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'{label} is required.',
        )
    return normalized


def resolve_doctor(directory: ParticipantDirectory, provider_id: str) -> Doctor:
    doctor = directory.get_doctor(normalize_id(provider_id, 'Provider id'))
    if doctor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Provider not found.',
        )
    return doctor


def resolve_patient(directory: ParticipantDirectory, patient_id: str) -> Patient:
    patient = directory.get_patient(normalize_id(patient_id, 'Patient id'))
    if patient is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Patient not found.',
        )
    return patient
