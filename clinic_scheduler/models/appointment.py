"""Appointment model definitions."""

from sqlalchemy import JSON, Column, DateTime, Index, String, text
from clinic_scheduler.database import Base

LIVE_APPOINTMENT_CLAUSE = "status != 'CANCELLED'"


class Appointment(Base):
    """Represents a scheduled appointment."""
    __tablename__ = "appointments"
    __table_args__ = (
        # At most one live appointment per provider and start time.
        Index(
            "uq_appointments_live_slot",
            "provider_id",
            "scheduled_at",
            unique=True,
            sqlite_where=text(LIVE_APPOINTMENT_CLAUSE),
            postgresql_where=text(LIVE_APPOINTMENT_CLAUSE),
        ),
        Index("idx_appointments_patient_time", "patient_id", "scheduled_at"),
        Index("idx_appointments_status_time", "status", "scheduled_at"),
    )

    id = Column(String, primary_key=True)
    patient_id = Column(String, nullable=False)
    patient_name = Column(String, nullable=False)
    provider_id = Column(String, nullable=False)
    provider_name = Column(String, nullable=False)
    provider_specialization = Column(String)
    scheduled_at = Column(DateTime, nullable=False)
    status = Column(String, nullable=False)
    outcome = Column(JSON)
