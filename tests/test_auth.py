"""Tests for token extraction, role resolution and the HTTP auth provider."""

import base64
import json
from urllib.parse import quote

import pytest
import requests
from starlette.requests import Request

from vaultx.core.auth import (
    AuthContext,
    AuthUser,
    HttpAuthProvider,
    extract_access_token,
    resolve_role,
)
from vaultx.core.exceptions import AuthenticationError, ConfigurationError, ExternalServiceError
from vaultx.storage.models import UserRoleModel


def make_request(headers=None):
    raw = [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw, "query_string": b""})


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._payload


class FakeSession:
    """Stands in for requests.Session, recording calls."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def request(self, method, url, headers=None, json=None, timeout=None):
        self.calls.append({"method": method, "url": url, "headers": headers, "json": json, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


class TestExtractAccessToken:
    """Test finding the caller's token."""

    def test_bearer_header(self):
        assert extract_access_token(make_request({"Authorization": "Bearer abc123"})) == "abc123"

    def test_no_token(self):
        assert extract_access_token(make_request()) is None
        assert extract_access_token(make_request({"Authorization": "Basic xyz"})) is None

    def test_json_cookie(self):
        cookie = quote(json.dumps({"access_token": "from-cookie"}))
        request = make_request({"Cookie": f"sb-project-auth-token={cookie}"})
        assert extract_access_token(request) == "from-cookie"

    def test_base64_array_cookie(self):
        encoded = base64.b64encode(json.dumps(["array-token", "refresh"]).encode()).decode()
        request = make_request({"Cookie": f"sb-project-auth-token=base64-{encoded}"})
        assert extract_access_token(request) == "array-token"

    def test_malformed_cookie_ignored(self):
        request = make_request({"Cookie": "sb-project-auth-token=not-json; other=1"})
        assert extract_access_token(request) is None


class TestResolveRole:
    """Test role resolution order."""

    def test_role_row_wins(self, db_session):
        db_session.add(UserRoleModel(user_id="u1", role="admin"))
        db_session.commit()
        assert resolve_role(db_session, AuthUser(id="u1", email="x@y.z"), []) == "admin"

    def test_metadata_role(self, db_session):
        user = AuthUser(id="u2", user_metadata={"role": "admin"})
        assert resolve_role(db_session, user, []) == "admin"

    def test_admin_email_list(self, db_session):
        user = AuthUser(id="u3", email="Boss@Example.com")
        assert resolve_role(db_session, user, ["boss@example.com"]) == "admin"
        assert resolve_role(db_session, user, []) == "user"

    def test_row_demotes_listed_admin(self, db_session):
        db_session.add(UserRoleModel(user_id="u4", role="user"))
        db_session.commit()
        user = AuthUser(id="u4", email="boss@example.com")
        assert resolve_role(db_session, user, ["boss@example.com"]) == "user"


class TestAuthContext:
    """Test display names."""

    def test_display_name_fallbacks(self):
        assert AuthContext(user=AuthUser(id="1", user_metadata={"full_name": "Ada L"})).display_name == "Ada L"
        assert AuthContext(user=AuthUser(id="1", email="grace@navy.mil")).display_name == "grace"
        assert AuthContext(user=AuthUser(id="1")).display_name == "Anonymous"


class TestHttpAuthProvider:
    """Test the REST-backed auth provider."""

    def test_requires_url_and_key(self):
        with pytest.raises(ConfigurationError):
            HttpAuthProvider(base_url="", anon_key="")

    def test_get_user(self):
        session = FakeSession(FakeResponse(200, {"id": "u1", "email": "a@b.c", "user_metadata": None}))
        provider = HttpAuthProvider("https://auth.example.com/", "anon", session=session, timeout=3)

        user = provider.get_user("tok")

        assert user.id == "u1"
        assert user.user_metadata == {}
        call = session.calls[0]
        assert call["url"] == "https://auth.example.com/auth/v1/user"
        assert call["headers"]["Authorization"] == "Bearer tok"
        assert call["headers"]["apikey"] == "anon"
        assert call["timeout"] == 3

    def test_rejected_token(self):
        provider = HttpAuthProvider("https://auth.example.com", "anon", session=FakeSession(FakeResponse(401)))
        with pytest.raises(AuthenticationError):
            provider.get_user("bad")

    def test_upstream_failure(self):
        provider = HttpAuthProvider("https://auth.example.com", "anon", session=FakeSession(FakeResponse(503)))
        with pytest.raises(ExternalServiceError) as exc_info:
            provider.get_user("tok")
        assert exc_info.value.details["upstream_status"] == 503

    def test_network_error(self):
        session = FakeSession(error=requests.ConnectionError("refused"))
        provider = HttpAuthProvider("https://auth.example.com", "anon", session=session)
        with pytest.raises(ExternalServiceError):
            provider.get_user("tok")

    def test_admin_calls_need_service_key(self):
        provider = HttpAuthProvider("https://auth.example.com", "anon", session=FakeSession(FakeResponse(200, {})))
        with pytest.raises(ConfigurationError):
            provider.list_users()

    def test_list_users(self):
        payload = {"users": [{"id": "a", "email": "a@x.y"}, {"id": "b"}]}
        session = FakeSession(FakeResponse(200, payload))
        provider = HttpAuthProvider("https://auth.example.com", "anon", service_role_key="secret", session=session)

        users = provider.list_users()

        assert [user.id for user in users] == ["a", "b"]
        assert session.calls[0]["headers"]["Authorization"] == "Bearer secret"

    @pytest.mark.parametrize("disabled,ban_duration", [(True, "876000h"), (False, "none")])
    def test_set_user_disabled(self, disabled, ban_duration):
        session = FakeSession(FakeResponse(200, {"id": "a"}))
        provider = HttpAuthProvider("https://auth.example.com", "anon", service_role_key="secret", session=session)

        provider.set_user_disabled("a", disabled)

        call = session.calls[0]
        assert call["method"] == "PUT"
        assert call["url"] == "https://auth.example.com/auth/v1/admin/users/a"
        assert call["json"] == {"ban_duration": ban_duration}

    def test_banned_until_marks_user_disabled(self):
        payload = {"users": [
            {"id": "a", "banned_until": "2999-01-01T00:00:00Z"},
            {"id": "b", "banned_until": "2000-01-01T00:00:00Z"},
            {"id": "c"},
        ]}
        provider = HttpAuthProvider(
            "https://auth.example.com", "anon", service_role_key="secret", session=FakeSession(FakeResponse(200, payload))
        )

        assert [user.is_disabled for user in provider.list_users()] == [True, False, False]
