import pytest
from fastapi.testclient import TestClient

from family_expenses import crud
from family_expenses.main import create_app
from family_expenses.settings import Settings

ADMIN_PASSWORD = "admin-pass-1"
USER_PASSWORD = "user-pass-1"


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", jwt_secret="test-secret", allow_signup=False)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def admin_user(db):
    return crud.create_user(db, "admin@family.com", "admin", "Admin Family", ADMIN_PASSWORD, is_admin=True)


@pytest.fixture
def regular_user(db):
    return crud.create_user(db, "marie@family.com", "marie", "Marie Dupont", USER_PASSWORD)


@pytest.fixture
def other_user(db):
    return crud.create_user(db, "pierre@family.com", "pierre", "Pierre Dupont", USER_PASSWORD)


@pytest.fixture
def login(app):
    """Return a TestClient holding the session cookie of the given account."""

    def _login(login_name, password):
        client = TestClient(app)
        response = client.post("/api/auth/login", json={"emailOrUsername": login_name, "password": password})
        assert response.status_code == 200, response.text
        return client

    return _login


@pytest.fixture
def anonymous(app):
    return TestClient(app)


@pytest.fixture
def admin_client(login, admin_user):
    return login("admin", ADMIN_PASSWORD)


@pytest.fixture
def user_client(login, regular_user):
    return login("marie", USER_PASSWORD)


@pytest.fixture
def other_client(login, other_user):
    return login("pierre", USER_PASSWORD)
