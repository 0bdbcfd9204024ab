"""User model definitions."""

from sqlalchemy import Column, DateTime, String, func
from medibook.database import Base


class User(Base):
    """Represents an application user and the role chosen at registration."""
    __tablename__ = "users"

    uid = Column(String, primary_key=True, index=True)
    email = Column(String, index=True)
    name = Column(String)
    role = Column(String, index=True)  # patient/doctor/admin
    created_at = Column(DateTime, server_default=func.now())
