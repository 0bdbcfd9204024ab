import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from medibook.auth.identity import AuthStateHub, IdentityGateway, PasswordIdentityProvider  # noqa: E402
from medibook.auth.session import CurrentUser  # noqa: E402
from medibook.database import Base  # noqa: E402
from medibook.models import account, admin, appointment, doctor, patient, user  # noqa: E402,F401
from medibook.store import DocumentStore, SubscriptionHub  # noqa: E402


@pytest.fixture
def engine():
    test_engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def hub():
    return SubscriptionHub()


@pytest.fixture
def store(db, hub):
    return DocumentStore(db, hub)


@pytest.fixture
def auth_hub():
    return AuthStateHub()


@pytest.fixture
def gateway(db, store, auth_hub):
    return IdentityGateway(PasswordIdentityProvider(db, auth_hub), store, bootstrap_admin_email='')


@pytest.fixture
def doctor_factory(store):
    def create(uid: str = 'doc-1', **fields):
        data = {
            'name': 'Dr. Asha Rao',
            'specialty': 'Cardiology',
            'qualification': 'MD',
            'consultation_fee': 500,
            'availability': [],
        }
        data.update(fields)
        return store.set('doctors', uid, data)

    return create


@pytest.fixture
def patient_user():
    return CurrentUser(uid='patient-1', email='pat@example.com', display_name='Pat Lee', role='patient')
