"""Participant model definitions."""

from sqlalchemy import Column, String
from clinic_scheduler.database import Base


class Participant(Base):
    """Represents a person known to the scheduler (doctor, patient, staff)."""
    __tablename__ = "participants"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False, index=True)  # doctor/patient/pharmacist/administrator
    specialization = Column(String)
