"""Page paths and the role guard in front of the protected ones."""

import re
from enum import Enum
from typing import NamedTuple

from medibook.auth.session import SessionContext, SessionState
from medibook.core.errors import LOGIN_PATH


class GuardAction(str, Enum):
    WAIT = 'wait'
    REDIRECT = 'redirect'
    RENDER = 'render'


class GuardDecision(NamedTuple):
    action: GuardAction
    redirect_to: str | None = None


class PageRoute(NamedTuple):
    path: str
    allowed_roles: tuple[str, ...] = ()

    @property
    def protected(self) -> bool:
        return bool(self.allowed_roles)

    def matches(self, path: str) -> bool:
        pattern = re.sub(r':[A-Za-z_]+', r'[^/]+', self.path)
        return re.fullmatch(pattern, path.rstrip('/') or '/') is not None


PAGE_ROUTES = (
    PageRoute('/'),
    PageRoute('/specialties'),
    PageRoute('/auth/login'),
    PageRoute('/auth/register'),
    PageRoute('/doctors'),
    PageRoute('/doctors/:id'),
    PageRoute('/doctor/dashboard', ('doctor',)),
    PageRoute('/doctor/onboarding', ('doctor',)),
    PageRoute('/doctor/edit/:id', ('doctor',)),
    PageRoute('/dashboard', ('patient',)),
    PageRoute('/admin/login'),
    PageRoute('/admin/dashboard', ('admin',)),
    PageRoute('/admin/manage-doctors', ('admin',)),
    PageRoute('/admin/manage-patients', ('admin',)),
    PageRoute('/admin/manage-appointments', ('admin',)),
)


def find_route(path: str) -> PageRoute | None:
    for route in PAGE_ROUTES:
        if route.matches(path):
            return route
    return None


def guard(session: SessionContext, allowed_roles: tuple[str, ...] | list[str]) -> GuardDecision:
    if session.state == SessionState.RESOLVING:
        return GuardDecision(GuardAction.WAIT)

    if session.user is None:
        return GuardDecision(GuardAction.REDIRECT, LOGIN_PATH)

    if allowed_roles and session.user.role not in allowed_roles:
        return GuardDecision(GuardAction.REDIRECT, LOGIN_PATH)

    return GuardDecision(GuardAction.RENDER)


def check_path(session: SessionContext, path: str) -> GuardDecision:
    """Guard an arbitrary page path; unknown and public paths always render."""
    route = find_route(path)
    if route is None or not route.protected:
        return GuardDecision(GuardAction.RENDER)
    return guard(session, route.allowed_roles)
