"""Authentication against the managed auth provider and role resolution."""

import base64
import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

import requests
from fastapi import Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..storage.models import UserRoleModel
from .exceptions import AuthenticationError, ExternalServiceError, ConfigurationError
from .logging import get_logger

logger = get_logger(__name__)

ROLE_ADMIN = "admin"
ROLE_USER = "user"
VALID_ROLES = (ROLE_ADMIN, ROLE_USER)

AUTH_COOKIE_PREFIX = "sb-"
AUTH_COOKIE_SUFFIX = "-auth-token"

# Provider ban length used to disable an account (about a century)
BAN_DURATION = "876000h"


class AuthUser(BaseModel):
    """User as reported by the auth provider."""
    id: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    last_sign_in_at: Optional[datetime] = None
    banned_until: Optional[datetime] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_disabled(self) -> bool:
        if self.banned_until is None:
            return False
        now = datetime.now(timezone.utc) if self.banned_until.tzinfo else datetime.utcnow()
        return self.banned_until > now


class AuthContext(BaseModel):
    """Authenticated caller for the current request."""
    user: AuthUser
    role: str = ROLE_USER
    access_token: Optional[str] = None

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def display_name(self) -> str:
        metadata = self.user.user_metadata or {}
        return (
            metadata.get("full_name")
            or metadata.get("name")
            or (self.user.email or "").split("@")[0]
            or "Anonymous"
        )


class AuthProvider(ABC):
    """Operations the service needs from the auth backend."""

    @abstractmethod
    def get_user(self, access_token: str) -> AuthUser:
        """Resolve a token to its user; raises AuthenticationError when invalid."""

    @abstractmethod
    def list_users(self) -> List[AuthUser]:
        """List every user (admin operation)."""

    @abstractmethod
    def delete_user(self, user_id: str) -> None:
        """Delete a user (admin operation)."""

    @abstractmethod
    def set_user_disabled(self, user_id: str, disabled: bool) -> None:
        """Ban or unban a user (admin operation)."""

    @abstractmethod
    def sign_out(self, access_token: str) -> None:
        """Revoke the session behind a token."""


class HttpAuthProvider(AuthProvider):
    """AuthProvider backed by the provider's REST API."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        service_role_key: str = "",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None
    ):
        if not base_url or not anon_key:
            raise ConfigurationError("Auth URL and anon key are required", config_key="auth_url")
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self.timeout = timeout
        self._session = session or requests.Session()

    def _user_headers(self, access_token: str) -> Dict[str, str]:
        return {"apikey": self.anon_key, "Authorization": f"Bearer {access_token}"}

    def _admin_headers(self) -> Dict[str, str]:
        if not self.service_role_key:
            raise ConfigurationError(
                "Service-role key is required for admin user operations",
                config_key="auth_service_role_key"
            )
        return {"apikey": self.service_role_key, "Authorization": f"Bearer {self.service_role_key}"}

    def _request(
        self,
        method: str,
        path: str,
        headers: Dict[str, str],
        json_body: Optional[Dict[str, Any]] = None
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self._session.request(method, url, headers=headers, json=json_body, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Auth provider request failed: {method} {path} - {str(e)}")
            raise ExternalServiceError(f"Auth provider unreachable: {str(e)}", service="auth")

    def _raise_for_status(self, response: requests.Response, operation: str):
        if response.ok:
            return
        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid or expired session")
        logger.error(f"Auth provider {operation} failed with status {response.status_code}")
        raise ExternalServiceError(
            f"Auth provider {operation} failed",
            service="auth",
            upstream_status=response.status_code
        )

    def get_user(self, access_token: str) -> AuthUser:
        response = self._request("GET", "/auth/v1/user", self._user_headers(access_token))
        self._raise_for_status(response, "get_user")
        return AuthUser(**_user_fields(response.json()))

    def list_users(self) -> List[AuthUser]:
        response = self._request("GET", "/auth/v1/admin/users", self._admin_headers())
        self._raise_for_status(response, "list_users")
        payload = response.json()
        users = payload.get("users", []) if isinstance(payload, dict) else payload
        return [AuthUser(**_user_fields(user)) for user in users]

    def delete_user(self, user_id: str) -> None:
        response = self._request("DELETE", f"/auth/v1/admin/users/{user_id}", self._admin_headers())
        self._raise_for_status(response, "delete_user")
        logger.info(f"Deleted auth user {user_id}")

    def set_user_disabled(self, user_id: str, disabled: bool) -> None:
        response = self._request(
            "PUT",
            f"/auth/v1/admin/users/{user_id}",
            self._admin_headers(),
            json_body={"ban_duration": BAN_DURATION if disabled else "none"}
        )
        self._raise_for_status(response, "update_user")
        logger.info(f"Auth user {user_id} {'disabled' if disabled else 'enabled'}")

    def sign_out(self, access_token: str) -> None:
        response = self._request("POST", "/auth/v1/logout", self._user_headers(access_token))
        self._raise_for_status(response, "sign_out")


def _user_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": data["id"],
        "email": data.get("email"),
        "created_at": data.get("created_at"),
        "last_sign_in_at": data.get("last_sign_in_at"),
        "banned_until": data.get("banned_until"),
        "user_metadata": data.get("user_metadata") or {},
    }


def _token_from_cookie_value(raw: str) -> Optional[str]:
    value = unquote(raw)
    if value.startswith("base64-"):
        try:
            value = base64.b64decode(value[len("base64-"):]).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            return None
    try:
        parsed = json.loads(value)
    except ValueError:
        return None

    if isinstance(parsed, dict):
        token = parsed.get("access_token")
    elif isinstance(parsed, list) and parsed:
        token = parsed[0]
    else:
        token = None
    return token if isinstance(token, str) and token else None


def extract_access_token(request: Request) -> Optional[str]:
    """Find the caller's access token in the Authorization header or auth cookie."""
    header = request.headers.get("authorization")
    if header and header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token

    for name, value in request.cookies.items():
        if name.startswith(AUTH_COOKIE_PREFIX) and name.endswith(AUTH_COOKIE_SUFFIX):
            token = _token_from_cookie_value(value)
            if token:
                return token

    return None


def resolve_role(db: Session, user: AuthUser, admin_emails: List[str]) -> str:
    """
    Determine a user's role.

    The user_roles table wins, then the provider's user metadata, then the
    configured admin e-mail list.
    """
    try:
        row = db.query(UserRoleModel).filter(UserRoleModel.user_id == user.id).first()
        if row and row.role in VALID_ROLES:
            return row.role
    except SQLAlchemyError as e:
        # Fall through to the metadata and e-mail checks
        db.rollback()
        logger.error(f"Failed to read role for user {user.id}: {str(e)}")

    metadata_role = (user.user_metadata or {}).get("role")
    if metadata_role in VALID_ROLES:
        return metadata_role

    if user.email and user.email.lower() in {email.lower() for email in admin_emails}:
        return ROLE_ADMIN

    return ROLE_USER
