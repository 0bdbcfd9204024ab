"""Appointment model definitions."""

from sqlalchemy import Column, Date, DateTime, Float, String, func
from medibook.database import Base


class Appointment(Base):
    """Represents a booked appointment.

    Doctor and patient names are copied in at booking time so listings do not
    need a join.
    """
    __tablename__ = "appointments"

    id = Column(String, primary_key=True)
    doctor_id = Column(String, index=True)
    doctor_name = Column(String)
    doctor_specialty = Column(String)
    patient_id = Column(String, index=True)
    patient_name = Column(String)
    date = Column(Date)
    time = Column(String)
    status = Column(String)  # scheduled/cancelled
    fee = Column(Float)
    created_at = Column(DateTime, server_default=func.now())
