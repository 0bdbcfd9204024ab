"""Per-client session state consumed by route guards."""

from enum import Enum

from pydantic import BaseModel

from medibook.records import Role


class CurrentUser(BaseModel):
    uid: str
    email: str | None = None
    display_name: str | None = None
    role: Role


class SessionState(str, Enum):
    RESOLVING = 'resolving'
    UNAUTHENTICATED = 'unauthenticated'
    AUTHENTICATED = 'authenticated'


class SessionContext:
    """Owned session state for one client.

    Starts out resolving until the identity gateway reports who is signed in,
    then follows every auth-state change it is handed.
    """

    def __init__(self, token: str | None = None):
        self.token = token
        self.state = SessionState.RESOLVING
        self.user: CurrentUser | None = None

    def apply(self, user: CurrentUser | None) -> None:
        self.user = user
        self.state = SessionState.AUTHENTICATED if user else SessionState.UNAUTHENTICATED

    def clear(self) -> None:
        self.token = None
        self.apply(None)

    @property
    def resolved(self) -> bool:
        return self.state != SessionState.RESOLVING

    def __repr__(self) -> str:
        uid = self.user.uid if self.user else None
        return f'<SessionContext state={self.state.value} uid={uid}>'
