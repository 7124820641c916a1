"""People the scheduler refers to.

Identity is owned by an external collaborator; the scheduler only needs a
stable id and a display name. Roles are a discriminated union on ``role``
rather than a class hierarchy, and two references are equal when they share
role and id regardless of the other fields.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class _ParticipantBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str

    @field_validator('id', 'name')
    @classmethod
    def validate_not_blank(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Value must not be blank.')
        return normalized

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, _ParticipantBase):
            return NotImplemented
        return (self.role, self.id) == (other.role, other.id)

    def __hash__(self) -> int:
        return hash((self.role, self.id))


class Doctor(_ParticipantBase):
    role: Literal['doctor'] = 'doctor'
    specialization: str = ''


class Patient(_ParticipantBase):
    role: Literal['patient'] = 'patient'


class Pharmacist(_ParticipantBase):
    role: Literal['pharmacist'] = 'pharmacist'


class Administrator(_ParticipantBase):
    role: Literal['administrator'] = 'administrator'


Participant = Annotated[
    Union[Doctor, Patient, Pharmacist, Administrator],
    Field(discriminator='role'),
]

participant_adapter = TypeAdapter(Participant)


def describe_role(participant: Participant) -> str:
    match participant:
        case Doctor(specialization=specialization) if specialization:
            return f'Doctor ({specialization})'
        case Doctor():
            return 'Doctor'
        case Patient():
            return 'Patient'
        case Pharmacist():
            return 'Pharmacist'
        case Administrator():
            return 'Administrator'
    raise TypeError(f'Unknown participant type: {type(participant).__name__}')
