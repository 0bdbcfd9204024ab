import pytest
from fastapi.testclient import TestClient

from medibook.database import get_db
from medibook.main import app


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    def create(name: str, email: str, role: str = 'patient', password: str = 'secret123') -> dict:
        response = client.post('/auth/register', json={
            'name': name,
            'email': email,
            'password': password,
            'role': role,
        })
        assert response.status_code == 201, response.text
        return response.json()

    return create


@pytest.fixture
def bearer():
    def headers(token: str) -> dict[str, str]:
        return {'Authorization': f'Bearer {token}'}

    return headers
