"""Identity provider and the gateway the pages talk to.

``PasswordIdentityProvider`` owns credentials and sessions: bcrypt password
hashes, signed session tokens, and auth-state notifications. ``IdentityGateway``
sits on top of it and the document store, turning accounts into users with a
role and keeping the user and profile documents in step with registrations.
"""

import logging
import uuid
from collections.abc import Callable
from threading import Lock

import bcrypt
import jwt
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from medibook.auth import jwt_handler
from medibook.auth.session import CurrentUser, SessionContext
from medibook.core import config
from medibook.core.errors import (
    AuthenticationFailed,
    AuthorizationFailed,
    EmailAlreadyRegistered,
    MedibookError,
    StoreUnavailable,
    ValidationFailed,
)
from medibook.models.account import Account, AuthSession
from medibook.records import ROLES, Role
from medibook.store import DocumentStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
PROFILE_COLLECTIONS = {'patient': 'patients', 'doctor': 'doctors', 'admin': 'admins'}

AuthListener = Callable[[str | None, Account | None], None]
UserListener = Callable[[str | None, CurrentUser | None], None]


def normalize_email(email: str) -> str:
    return (email or '').strip().lower()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    return bcrypt.checkpw(password.encode(), hashed_password.encode())


class AuthStateHub:
    """Listeners for sign-in and sign-out events."""

    def __init__(self):
        self._lock = Lock()
        self._listeners: list[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, token: str | None, account: Account | None) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(token, account)
            except Exception:
                logger.exception('Auth state listener failed')


auth_events = AuthStateHub()


class PasswordIdentityProvider:
    def __init__(self, db: Session, events: AuthStateHub | None = None):
        self.db = db
        self.events = events or auth_events

    def _fail(self, operation: str, exc: SQLAlchemyError):
        self.db.rollback()
        logger.exception('Identity provider %s failed', operation)
        raise StoreUnavailable('Authentication service unavailable. Please try again.') from exc

    def start_session(self, account: Account) -> str:
        session_id = uuid.uuid4().hex
        token, expires_at = jwt_handler.create_access_token(subject=account.uid, session_id=session_id)
        try:
            self.db.add(AuthSession(id=session_id, uid=account.uid, expires_at=expires_at.replace(tzinfo=None)))
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail('session start', exc)
        self.events.publish(token, account)
        return token

    def fetch_sign_in_methods(self, email: str) -> list[str]:
        try:
            account = self.db.query(Account).filter(Account.email == normalize_email(email)).first()
        except SQLAlchemyError as exc:
            self._fail('sign-in method lookup', exc)
        return ['password'] if account else []

    def create_user(self, email: str, password: str) -> Account:
        normalized = normalize_email(email)
        if not normalized or '@' not in normalized:
            raise ValidationFailed('A valid email address is required.')
        if len(password or '') < MIN_PASSWORD_LENGTH:
            raise ValidationFailed(f'Password should be at least {MIN_PASSWORD_LENGTH} characters.')

        account = Account(uid=uuid.uuid4().hex, email=normalized, hashed_password=hash_password(password))
        try:
            self.db.add(account)
            self.db.commit()
            self.db.refresh(account)
        except IntegrityError as exc:
            self.db.rollback()
            raise EmailAlreadyRegistered('Email already in use. Please log in instead.') from exc
        except SQLAlchemyError as exc:
            self._fail('account creation', exc)

        return account

    def update_profile(self, uid: str, display_name: str) -> Account:
        try:
            account = self.db.get(Account, uid)
            if account is None:
                raise AuthenticationFailed('Account not found.')
            account.display_name = display_name
            self.db.commit()
            self.db.refresh(account)
        except SQLAlchemyError as exc:
            self._fail('profile update', exc)
        return account

    def sign_in(self, email: str, password: str) -> tuple[Account, str]:
        try:
            account = self.db.query(Account).filter(Account.email == normalize_email(email)).first()
        except SQLAlchemyError as exc:
            self._fail('sign-in', exc)

        if account is None or not verify_password(password or '', account.hashed_password):
            raise AuthenticationFailed('Invalid email or password.')

        return account, self.start_session(account)

    def sign_out(self, token: str | None) -> None:
        session_id = self._session_id(token)
        if session_id is None:
            return
        try:
            session = self.db.get(AuthSession, session_id)
            if session is None:
                return
            self.db.delete(session)
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail('sign-out', exc)
        self.events.publish(token, None)

    def revoke_sessions(self, uid: str) -> int:
        try:
            revoked = self.db.query(AuthSession).filter(AuthSession.uid == uid).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail('session revocation', exc)
        if revoked:
            logger.info('Revoked %s session(s) for %s', revoked, uid)
        return revoked

    def current_account(self, token: str | None) -> Account | None:
        session_id = self._session_id(token)
        if session_id is None:
            return None
        try:
            session = self.db.get(AuthSession, session_id)
            if session is None:
                return None
            return self.db.get(Account, session.uid)
        except SQLAlchemyError as exc:
            self._fail('session lookup', exc)

    def on_auth_state_changed(self, listener: AuthListener) -> Callable[[], None]:
        return self.events.subscribe(listener)

    @staticmethod
    def _session_id(token: str | None) -> str | None:
        if not token:
            return None
        try:
            payload = jwt_handler.decode_access_token(token)
        except jwt.PyJWTError:
            return None
        return payload.get('sid')


class IdentityGateway:
    def __init__(
        self,
        provider: PasswordIdentityProvider,
        store: DocumentStore,
        bootstrap_admin_email: str | None = None,
    ):
        self.provider = provider
        self.store = store
        self.bootstrap_admin_email = normalize_email(
            config.BOOTSTRAP_ADMIN_EMAIL if bootstrap_admin_email is None else bootstrap_admin_email
        )

    def _is_bootstrap_admin(self, email: str | None) -> bool:
        return bool(self.bootstrap_admin_email) and normalize_email(email) == self.bootstrap_admin_email

    def register(self, name: str, email: str, password: str, role: Role) -> tuple[CurrentUser, str]:
        if role not in ROLES:
            raise ValidationFailed(f'Unknown role: {role}')
        name = (name or '').strip()
        if not name:
            raise ValidationFailed('Name is required.')

        if self.provider.fetch_sign_in_methods(email):
            raise EmailAlreadyRegistered()

        account = self.provider.create_user(email, password)
        account = self.provider.update_profile(account.uid, name)

        self.store.set('users', account.uid, {
            'email': account.email,
            'name': name,
            'role': role,
        })
        self.store.set(PROFILE_COLLECTIONS[role], account.uid, {
            'name': name,
            'email': account.email,
        })
        token = self.provider.start_session(account)
        logger.info('Registered %s account %s', role, account.uid)

        return self._current_user(account, role), token

    def login(self, email: str, password: str, role: Role | None = None) -> tuple[CurrentUser, str]:
        """Sign in and resolve the stored role.

        When ``role`` is given the stored role must match it; on any failure
        after the credentials check the session is signed back out.
        """
        account, token = self.provider.sign_in(email, password)

        try:
            user_record = self.store.get('users', account.uid)
            if user_record is not None:
                stored_role = user_record.role
            elif self._is_bootstrap_admin(account.email):
                stored_role = 'admin'
            else:
                raise AuthenticationFailed('No user found with this email.')

            if role is not None and stored_role != role:
                raise AuthorizationFailed(f'This account is not registered as {role}.')
        except MedibookError:
            self.provider.sign_out(token)
            raise

        logger.info('User %s signed in as %s', account.uid, stored_role)
        return self._current_user(account, stored_role), token

    def logout(self, token: str | None) -> None:
        self.provider.sign_out(token)

    def resolve_role(self, account: Account) -> Role:
        user_record = self.store.get('users', account.uid)
        if user_record is not None:
            return user_record.role
        if self._is_bootstrap_admin(account.email):
            return 'admin'
        return 'patient'

    def resolve_user(self, account: Account | None) -> CurrentUser | None:
        if account is None:
            return None
        return self._current_user(account, self.resolve_role(account))

    def session_for(self, token: str | None) -> SessionContext:
        context = SessionContext(token)
        context.apply(self.resolve_user(self.provider.current_account(token)))
        return context

    def observe(self, listener: UserListener) -> Callable[[], None]:
        """Republish every auth-state change as the resolved current user."""

        def on_change(token: str | None, account: Account | None) -> None:
            try:
                user = self.resolve_user(account)
            except StoreUnavailable:
                logger.exception('Error fetching user role')
                user = None
            listener(token, user)

        return self.provider.on_auth_state_changed(on_change)

    @staticmethod
    def _current_user(account: Account, role: Role) -> CurrentUser:
        return CurrentUser(
            uid=account.uid,
            email=account.email,
            display_name=account.display_name,
            role=role,
        )
