"""Shared FastAPI dependencies for the API routers."""

from typing import Any, Dict, Optional
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..config import AppConfig, get_config
from ..core.action_registry import ActionRegistry
from ..core.audit import AuditLogger
from ..core.auth import AuthContext, AuthProvider, extract_access_token, resolve_role
from ..core.enrichment import WebsiteEnricher
from ..core.exceptions import AuthenticationError, AuthorizationError, ConfigurationError
from ..core.logging import get_logger
from ..core.rate_limit import get_client_key, login_rate_limiter
from ..storage.database import get_db

logger = get_logger(__name__)

# Global instances (initialized by the application factory)
_config: Optional[AppConfig] = None
_auth_provider: Optional[AuthProvider] = None
_action_registry: Optional[ActionRegistry] = None
_enricher: Optional[WebsiteEnricher] = None


def init_dependencies(
    config: AppConfig,
    auth_provider: Optional[AuthProvider],
    action_registry: ActionRegistry,
    enricher: WebsiteEnricher
):
    """Initialize the global dependencies."""
    global _config, _auth_provider, _action_registry, _enricher
    _config = config
    _auth_provider = auth_provider
    _action_registry = action_registry
    _enricher = enricher


def get_app_config() -> AppConfig:
    """Dependency to get the active configuration."""
    return _config or get_config()


def get_auth_provider() -> Optional[AuthProvider]:
    """Dependency to get the auth provider; None when auth is not configured."""
    return _auth_provider


def get_action_registry() -> ActionRegistry:
    """Dependency to get the workflow action registry."""
    if _action_registry is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Action registry not initialized"
        )
    return _action_registry


def get_enricher() -> WebsiteEnricher:
    """Dependency to get the website enricher."""
    if _enricher is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Website enricher not initialized"
        )
    return _enricher


def require_auth_provider(provider: Optional[AuthProvider] = Depends(get_auth_provider)) -> AuthProvider:
    """Dependency for operations that must reach the auth provider."""
    if provider is None:
        raise ConfigurationError("Authentication provider is not configured", config_key="auth_url")
    return provider


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
    provider: Optional[AuthProvider] = Depends(get_auth_provider),
    config: AppConfig = Depends(get_app_config)
) -> Optional[AuthContext]:
    """Resolve the caller if a valid session is present, otherwise None."""
    token = extract_access_token(request)
    if not token or provider is None:
        return None
    try:
        user = provider.get_user(token)
    except AuthenticationError:
        # Rejected tokens count as failed logins for this client
        login_rate_limiter.check(get_client_key(request))
        return None

    context = AuthContext(user=user, role=resolve_role(db, user, config.admin_emails), access_token=token)
    request.state.user_id = context.user_id
    return context


def get_current_user(
    request: Request,
    user: Optional[AuthContext] = Depends(get_optional_user)
) -> AuthContext:
    """Dependency requiring an authenticated caller (401 otherwise)."""
    if user is None:
        logger.info(f"Unauthenticated request to {request.url.path}")
        raise AuthenticationError("Unauthorized")
    return user


def require_admin(user: AuthContext = Depends(get_current_user)) -> AuthContext:
    """Dependency requiring the admin role (403 otherwise)."""
    if not user.is_admin:
        logger.warning(f"User {user.user_id} denied admin access")
        raise AuthorizationError("Admin access required", user_id=user.user_id, required_role="admin")
    return user


def record_audit(
    db: Session,
    request: Request,
    actor: AuthContext,
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """Write an audit entry for an admin mutation."""
    AuditLogger(db).log(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        user_id=actor.user_id,
        user_email=actor.user.email,
        details=details,
        ip_address=get_client_key(request),
        user_agent=request.headers.get("user-agent")
    )
