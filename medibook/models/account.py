"""Identity provider model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, String, func
from medibook.database import Base


class Account(Base):
    """Represents email/password credentials held by the identity provider."""
    __tablename__ = "accounts"

    uid = Column(String, primary_key=True)
    email = Column(String, unique=True, index=True)
    hashed_password = Column(String)
    display_name = Column(String)
    created_at = Column(DateTime, server_default=func.now())


class AuthSession(Base):
    """Represents a signed-in session; deleting the row signs it out."""
    __tablename__ = "auth_sessions"

    id = Column(String, primary_key=True)
    uid = Column(String, ForeignKey("accounts.uid"), index=True)
    created_at = Column(DateTime, server_default=func.now())
    expires_at = Column(DateTime)
