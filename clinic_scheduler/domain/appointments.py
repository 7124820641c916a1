"""Appointment domain types."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clinic_scheduler.domain.participants import Doctor, Patient


class AppointmentStatus(str, Enum):
    PENDING_APPROVAL = 'PENDING_APPROVAL'
    CONFIRMED = 'CONFIRMED'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


class PrescriptionStatus(str, Enum):
    PENDING = 'PENDING'
    DISPENSED = 'DISPENSED'


class Prescription(BaseModel):
    model_config = ConfigDict(frozen=True)

    medicine_name: str
    quantity: int = Field(ge=1)
    status: PrescriptionStatus = PrescriptionStatus.PENDING

    @field_validator('medicine_name')
    @classmethod
    def validate_medicine_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Medicine name is required.')
        return normalized


class AppointmentOutcomeRecord(BaseModel):
    """Summary attached when an appointment is completed."""

    model_config = ConfigDict(frozen=True)

    date: date
    service_type: str
    prescriptions: tuple[Prescription, ...] = ()
    consultation_notes: str = ''


class Appointment(BaseModel):
    """A patient's booking of one provider slot.

    ``id`` stays ``None`` until the registry stores the appointment for the
    first time.
    """

    id: str | None = None
    patient: Patient
    provider: Doctor
    scheduled_at: datetime
    status: AppointmentStatus = AppointmentStatus.PENDING_APPROVAL
    outcome: AppointmentOutcomeRecord | None = None

    @property
    def is_live(self) -> bool:
        return self.status is not AppointmentStatus.CANCELLED
