"""Patient model definitions."""

from sqlalchemy import Column, DateTime, String, func
from medibook.database import Base


class Patient(Base):
    """Represents a patient profile, keyed by the owning user's uid."""
    __tablename__ = "patients"

    uid = Column(String, primary_key=True, index=True)
    name = Column(String)
    email = Column(String, index=True)
    created_at = Column(DateTime, server_default=func.now())
