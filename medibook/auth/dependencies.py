from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from medibook.auth.identity import IdentityGateway, PasswordIdentityProvider
from medibook.auth.session import CurrentUser, SessionContext
from medibook.core.errors import LoginRequired
from medibook.database import get_db
from medibook.routing import GuardAction, guard
from medibook.store import DocumentStore

security = HTTPBearer(auto_error=False)


def get_store(db: Session = Depends(get_db)) -> DocumentStore:
    return DocumentStore(db)


def get_gateway(
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
) -> IdentityGateway:
    return IdentityGateway(PasswordIdentityProvider(db), store)


def get_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str | None:
    if credentials is None:
        return None
    return credentials.credentials


def get_session(
    token: str | None = Depends(get_token),
    gateway: IdentityGateway = Depends(get_gateway),
) -> SessionContext:
    return gateway.session_for(token)


def get_optional_user(session: SessionContext = Depends(get_session)) -> CurrentUser | None:
    return session.user


def require_roles(*roles: str):
    """Dependency that admits only signed-in users holding one of ``roles``."""

    def dependency(session: SessionContext = Depends(get_session)) -> CurrentUser:
        decision = guard(session, roles)
        if decision.action == GuardAction.WAIT:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail='Session is still being resolved.',
            )
        if decision.action == GuardAction.REDIRECT:
            raise LoginRequired(redirect_to=decision.redirect_to)
        return session.user

    return dependency
