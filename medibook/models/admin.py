"""Admin model definitions."""

from sqlalchemy import Column, DateTime, String, func
from medibook.database import Base


class Admin(Base):
    """Represents a back-office administrator."""
    __tablename__ = "admins"

    uid = Column(String, primary_key=True, index=True)
    name = Column(String)
    email = Column(String, index=True)
    created_at = Column(DateTime, server_default=func.now())
