import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from clinic_scheduler.routes.participant_routes import (
    RegisterParticipantRequest,
    get_participant,
    list_doctors,
    register_participant,
)
from clinic_scheduler.services.directory import ParticipantDirectory


@pytest.fixture
def empty_directory(database) -> ParticipantDirectory:
    return ParticipantDirectory(database)


def test_register_request_normalizes_fields() -> None:
    request = RegisterParticipantRequest(id=' D7 ', name=' Dr. Chen ', role=' Doctor ', specialization='  ')

    assert request.id == 'D7'
    assert request.name == 'Dr. Chen'
    assert request.role == 'doctor'
    assert request.specialization is None


def test_register_request_rejects_unknown_role() -> None:
    with pytest.raises(ValidationError):
        RegisterParticipantRequest(id='X1', name='Someone', role='nurse')


def test_register_and_fetch_doctor(empty_directory) -> None:
    created = register_participant(
        data=RegisterParticipantRequest(id='D7', name='Dr. Chen', role='doctor', specialization='Dermatology'),
        directory=empty_directory,
    )
    fetched = get_participant(participant_id='D7', directory=empty_directory)

    assert created == fetched
    assert fetched.role == 'doctor'
    assert fetched.description == 'Doctor (Dermatology)'


def test_only_doctors_have_specialization(empty_directory) -> None:
    with pytest.raises(HTTPException) as exception_info:
        register_participant(
            data=RegisterParticipantRequest(id='P7', name='Alex Kim', role='patient', specialization='Cardiology'),
            directory=empty_directory,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Only doctors have a specialization.'


def test_get_participant_returns_not_found_when_missing(empty_directory) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_participant(participant_id='nobody', directory=empty_directory)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Participant not found.'


def test_list_doctors_excludes_other_roles(directory) -> None:
    response = list_doctors(directory=directory)

    assert [doctor.id for doctor in response] == ['D1', 'D2']
