import os
import tempfile
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

_TEST_DB_PATH = Path(tempfile.gettempdir()) / "creative_factory_test.db"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB_PATH}"
os.environ.setdefault("CLERK_JWT_ISSUER", "https://clerk.example.test")
os.environ.setdefault("CLERK_JWKS_URL", "https://clerk.example.test/.well-known/jwks.json")
os.environ.setdefault("RENDER_SERVICE_API_KEY", "test-render-key")
os.environ["RENDER_POLL_INTERVAL_SECONDS"] = "0"

from creative_factory.auth.dependencies import AuthContext, get_current_user  # noqa: E402
from creative_factory.db.base import Base, SessionLocal, engine, init_db  # noqa: E402
from creative_factory.db.deps import get_session  # noqa: E402
from creative_factory.db.repositories.workspaces import WorkspacesRepository  # noqa: E402
from creative_factory.main import app  # noqa: E402
from creative_factory.routers import creative as creative_router  # noqa: E402
from creative_factory.services.quota import QuotaManager  # noqa: E402
from fakes import TEST_USER_ID, FakeLLM, FakeRenderClient  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def create_schema():
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield
    engine.dispose()


@pytest.fixture(autouse=True)
def clean_tables():
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())
    yield


@pytest.fixture()
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def workspace(db_session):
    repo = WorkspacesRepository(db_session)
    ws = repo.create("Acme Studio")
    repo.add_member(ws.id, TEST_USER_ID, role="owner")
    return ws


@pytest.fixture()
def other_workspace(db_session):
    return WorkspacesRepository(db_session).create("Someone Else")


@pytest.fixture()
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture()
def fake_render() -> FakeRenderClient:
    return FakeRenderClient()


@pytest.fixture()
def quota_manager() -> QuotaManager:
    return QuotaManager(ceiling=3)


@pytest.fixture()
def override_dependencies(fake_llm, fake_render, quota_manager):
    def get_session_override():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_current_user] = lambda: AuthContext(user_id=TEST_USER_ID)
    app.dependency_overrides[creative_router.get_llm_client] = lambda: fake_llm
    app.dependency_overrides[creative_router.get_render_client] = lambda: fake_render
    app.dependency_overrides[creative_router.get_quota_manager] = lambda: quota_manager
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def api_client(override_dependencies):
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def init_payload(workspace):
    def _build(**overrides: Any) -> dict[str, Any]:
        payload = {
            "workspace_id": workspace.id,
            "offer": "Summer Sale",
            "objective": "sale",
            "language": "fr",
            "duration_seconds": 15,
            "site_url": "https://shop.example.test/summer",
        }
        payload.update(overrides)
        return payload

    return _build
