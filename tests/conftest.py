"""Pytest configuration and fixtures."""

from datetime import datetime
from typing import Dict, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from vaultx.api.dependencies import get_auth_provider
from vaultx.config import get_testing_config, reset_config
from vaultx.core.auth import AuthProvider, AuthUser
from vaultx.core.exceptions import AuthenticationError
from vaultx.core.rate_limit import reset_rate_limiters
from vaultx.factory import create_app
from vaultx.storage.database import build_engine, create_tables, get_db
from vaultx.storage.models import ToolModel


USER_HEADERS = {"Authorization": "Bearer user-token"}
OTHER_HEADERS = {"Authorization": "Bearer other-token"}
ADMIN_HEADERS = {"Authorization": "Bearer admin-token"}


class FakeAuthProvider(AuthProvider):
    """In-memory auth provider mapping fixed tokens to users."""

    def __init__(self):
        self.users: Dict[str, AuthUser] = {
            "user-token": AuthUser(
                id="user-1", email="user@vaultx.test", user_metadata={"full_name": "Test User"}
            ),
            "other-token": AuthUser(id="user-2", email="other@vaultx.test"),
            # Admin through the testing config's admin e-mail list
            "admin-token": AuthUser(id="admin-1", email="admin@vaultx.test"),
        }
        self.deleted: List[str] = []
        self.signed_out: List[str] = []
        self.status_changes: List[tuple] = []

    def get_user(self, access_token: str) -> AuthUser:
        if access_token not in self.users:
            raise AuthenticationError("Invalid or expired session")
        return self.users[access_token]

    def list_users(self) -> List[AuthUser]:
        return list(self.users.values())

    def delete_user(self, user_id: str) -> None:
        self.deleted.append(user_id)

    def set_user_disabled(self, user_id: str, disabled: bool) -> None:
        self.status_changes.append((user_id, disabled))
        for user in self.users.values():
            if user.id == user_id:
                user.banned_until = datetime(2999, 1, 1) if disabled else None

    def sign_out(self, access_token: str) -> None:
        self.signed_out.append(access_token)


@pytest.fixture(autouse=True)
def fresh_rate_limits():
    """Rate limiter windows are process-wide; start every test clean."""
    reset_rate_limiters()
    yield
    reset_rate_limiters()


@pytest.fixture(scope="function")
def test_db():
    """Create an in-memory test database and return its session factory."""
    engine = build_engine("sqlite:///:memory:")
    create_tables(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    yield TestingSessionLocal

    engine.dispose()


@pytest.fixture
def db_session(test_db):
    session = test_db()
    yield session
    session.close()


@pytest.fixture
def auth_provider():
    return FakeAuthProvider()


@pytest.fixture
def app(test_db, auth_provider):
    """Application wired to the test database and fake auth provider."""
    application = create_app(get_testing_config())

    def override_get_db():
        db = test_db()
        try:
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_auth_provider] = lambda: auth_provider

    yield application

    application.dependency_overrides.clear()
    reset_config()


@pytest.fixture
def client(app):
    """Create a test client."""
    return TestClient(app)


@pytest.fixture
def make_tool(test_db):
    """Factory inserting a tool directly; published unless told otherwise."""

    def _make_tool(**overrides):
        values = {
            "name": f"Tool {len(_make_tool.created) + 1}",
            "description": "An AI tool for testing",
            "category": "Language",
            "rating": 4.3,
            "review_count": 120,
            "weekly_users": 5000,
            "growth": "+20%",
            "website": "https://example.com",
            "pricing": "Freemium",
            "status": "published",
        }
        values.update(overrides)
        session = test_db()
        try:
            tool = ToolModel(**values)
            session.add(tool)
            session.commit()
            tool_id = tool.id
        finally:
            session.close()
        _make_tool.created.append(tool_id)
        return tool_id

    _make_tool.created = []
    return _make_tool
