"""Availability model definitions."""

from sqlalchemy import Column, Date, String, Time, UniqueConstraint
from clinic_scheduler.database import Base


class Availability(Base):
    """Represents one provider's declared working window on a single date."""
    __tablename__ = "availability"
    __table_args__ = (
        UniqueConstraint("provider_id", "date", name="uq_availability_provider_date"),
    )

    id = Column(String, primary_key=True)
    provider_id = Column(String, nullable=False, index=True)
    provider_name = Column(String, nullable=False)
    provider_specialization = Column(String)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
