"""Doctor model definitions."""

from sqlalchemy import JSON, Column, DateTime, Float, Integer, String, Text, func
from medibook.database import Base


class Doctor(Base):
    """Represents a doctor profile, keyed by the owning user's uid."""
    __tablename__ = "doctors"

    uid = Column(String, primary_key=True, index=True)
    name = Column(String)
    email = Column(String)
    specialty = Column(String)
    qualification = Column(String)
    consultation_fee = Column(Float, default=0)
    bio = Column(Text)
    profile_image = Column(String)
    experience = Column(Integer)
    clinic_name = Column(String)
    clinic_city = Column(String)
    # [{"date": "2025-06-10", "slots": ["09:00", "10:00"]}, ...]
    availability = Column(JSON, default=list)
    rating = Column(Float)
    reviews = Column(Integer, default=0)
    version = Column(Integer, default=1)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime)
