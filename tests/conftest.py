"""Pytest configuration and shared fixtures."""
import os

os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient

from educonnect.core.auth import TokenService
from educonnect.core.config import Settings
from educonnect.core.errors import UpstreamFailure
from educonnect.infrastructure.database import Database
from educonnect.services.accounts import CredentialStore
from educonnect.services.conversation import ConversationLog
from educonnect.services.rate_limiter import RateLimiter

TEST_SECRET = "test-secret-key-for-educonnect-suite-0123456789"


class FakeCompletionClient:
    """Stands in for Vertex AI; records every call."""

    def __init__(self, reply: str = "Great question! Practise a few problems every day."):
        self.reply = reply
        self.error = None
        self.calls = []

    async def complete(self, system_instruction: str, message: str) -> str:
        self.calls.append({"system_instruction": system_instruction, "message": message})
        if self.error is not None:
            raise self.error
        return self.reply

    def fail_with(self, error: Exception = None):
        self.error = error or UpstreamFailure("Completion service failed: Timeout")


@pytest.fixture
def test_settings(tmp_path):
    """Settings isolated from the developer's .env."""
    return Settings(
        environment="test",
        database_url="sqlite:///:memory:",
        seed_sample_data=False,
        jwt_secret_key=TEST_SECRET,
        rate_limit_backend="memory",
        allow_guest_chat=False,
        static_dir=str(tmp_path / "no-static"),
    )


@pytest.fixture
def token_service():
    return TokenService(TEST_SECRET, expire_minutes=60)


@pytest.fixture
def database():
    """Fresh in-memory database with the schema created."""
    db = Database("sqlite:///:memory:")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def db_session(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def credential_store(db_session, token_service):
    return CredentialStore(db_session, token_service)


@pytest.fixture
def conversation_log(db_session):
    return ConversationLog(db_session)


@pytest.fixture
def rate_limiter():
    """Ten chats per minute on a fresh in-memory store."""
    return RateLimiter(max_requests=10, window_seconds=60)


@pytest.fixture
def fake_completion():
    return FakeCompletionClient()


@pytest.fixture
def app_factory(test_settings, fake_completion, rate_limiter):
    """Build an app; keyword overrides replace fields of the test settings."""
    from main import create_app

    def _build(**overrides):
        settings = test_settings.model_copy(update=overrides) if overrides else test_settings
        return create_app(settings=settings, completion_client=fake_completion, rate_limiter=rate_limiter)

    return _build


@pytest.fixture
def test_client(app_factory):
    """FastAPI test client with startup/shutdown run."""
    with TestClient(app_factory()) as client:
        yield client


@pytest.fixture
def seeded_client(app_factory):
    """Test client whose database holds the sample student and parent."""
    with TestClient(app_factory(seed_sample_data=True)) as client:
        yield client


def register(client, email, user_type="student", password="secret123", name="Asha Kumar", **extra):
    """Register through the API and return (token, user)."""
    body = {"email": email, "password": password, "name": name, "userType": user_type}
    body.update(extra)
    response = client.post("/api/register", json=body)
    assert response.status_code == 201, response.text
    data = response.json()
    return data["token"], data["user"]


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
