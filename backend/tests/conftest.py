import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session
from sqlmodel.pool import StaticPool

from app.database import create_db_engine, get_session, init_db
from app.main import app
from app.services.auth_manager import AuthManager
from app.services.config_manager import ConfigManager


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def auth_manager(session: Session) -> AuthManager:
    return AuthManager(session)


@pytest.fixture
def config_manager(session: Session) -> ConfigManager:
    return ConfigManager(session)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_session_override():
        yield session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def user_token(client: TestClient) -> str:
    client.post(
        "/auth/register",
        json={"username": "testuser", "password": "testpass123"},
    )
    response = client.post(
        "/auth/login",
        json={"username": "testuser", "password": "testpass123"},
    )
    return response.json()["token"]
