import gc
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from aiunk.auth import create_session
from aiunk.config import get_settings
from aiunk.db import Base, build_engine, get_db
from aiunk.db.repositories import upsert_user
from aiunk.providers import BaseProvider, ChatResponse, ProviderRegistry, ProviderType, TextReply
from aiunk.services import ChatService

BRIDGE_TOKEN = "test-bridge-token"
OWNER_OPEN_ID = "owner-open-id"


class StubProvider(BaseProvider):
    """Records requests and returns a canned reply (or raises)."""

    provider_type = ProviderType.OPENAI
    display_name = "Stub"

    def __init__(self, response: ChatResponse | None = None, error: Exception | None = None):
        self.response = response or ChatResponse(
            reply=TextReply(text="Bet, lil' nephew!"),
            model="stub-model",
            total_tokens=12,
        )
        self.error = error
        self.requests = []
        self.closed = False

    async def chat_once(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response

    async def aclose(self) -> None:
        self.closed = True


class StubRegistry(ProviderRegistry):
    """Real settings storage, canned adapter."""

    def __init__(self, settings, provider: BaseProvider):
        super().__init__(settings)
        self.provider = provider
        self.resolved = []

    def provider_for(self, setting):
        self.resolved.append(setting)
        return self.provider


@pytest.fixture(scope="session")
def project_root():
    return Path(__file__).resolve().parent.parent


@pytest.fixture
def tmp_db_path(tmp_path):
    return tmp_path / "test.db"


@pytest.fixture(autouse=True)
def settings(monkeypatch, tmp_db_path):
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_db_path}")
    monkeypatch.setenv("COOKIE_SECURE", "false")
    monkeypatch.setenv("IDENTITY_BRIDGE_TOKEN", BRIDGE_TOKEN)
    monkeypatch.setenv("OWNER_OPEN_ID", OWNER_OPEN_ID)
    monkeypatch.setenv("DEFAULT_PROVIDER", "openai")
    monkeypatch.setenv("DEFAULT_MODEL", "gpt-default")
    monkeypatch.setenv("DEFAULT_API_KEY", "default-key")
    monkeypatch.setenv("OPENAI_BASE_URL", "http://openai.test/v1")
    monkeypatch.setenv("PROVIDER_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("PROVIDER_MAX_RETRIES", "0")
    monkeypatch.setenv("PERSONA_PROMPT_PATH", "")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def engine(tmp_db_path):
    engine = build_engine(f"sqlite:///{tmp_db_path}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    session = SessionLocal()
    yield session
    session.close()
    gc.collect()


@pytest.fixture
def user(db_session):
    return upsert_user(db_session, "user-open-id", name="Nephew", email="nephew@example.com")


@pytest.fixture
def other_user(db_session):
    return upsert_user(db_session, "other-open-id", name="Stranger")


@pytest.fixture
def admin_user(db_session):
    return upsert_user(db_session, OWNER_OPEN_ID, name="Unk", owner_open_id=OWNER_OPEN_ID)


@pytest.fixture
def stub_provider():
    return StubProvider()


@pytest.fixture
def stub_registry(settings, stub_provider):
    return StubRegistry(settings, stub_provider)


@pytest.fixture
def chat_service(stub_registry, settings):
    return ChatService(stub_registry, settings)


@pytest.fixture
def make_client(db_session):
    """Build a TestClient around a fresh app with the given registry."""
    from aiunk.main import create_app

    clients = []

    def _make(registry: ProviderRegistry) -> TestClient:
        app = create_app()
        app.state.provider_registry = registry

        def override_get_db():
            yield db_session

        app.dependency_overrides[get_db] = override_get_db
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client, stub_registry):
    return make_client(stub_registry)


@pytest.fixture
def login_as(db_session, settings):
    """Attach a session cookie for ``user`` to ``client``."""

    def _login(client: TestClient, user) -> None:
        session_data = create_session(db_session, user)
        client.cookies.clear()
        client.cookies.set(settings.session_cookie_name, session_data.token)

    return _login
