"""Session, profile, favorites, export, account and dashboard endpoints."""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, AuthProvider
from ..core.exceptions import VaultXError
from ..core.logging import get_logger
from ..core.profile_manager import ProfileManager
from ..core.rate_limit import sensitive_operation_rate_limiter
from ..models.schemas import ProfileUpdate, ProfileOut, FavoriteRequest
from ..storage.database import get_db
from .dependencies import get_current_user, get_optional_user, get_auth_provider

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["user"])


@router.get("/auth/session", summary="Current session")
async def get_session(user: Optional[AuthContext] = Depends(get_optional_user)) -> Dict[str, Any]:
    """Return the signed-in user and role, or nulls for anonymous callers."""
    if user is None:
        return {"user": None, "role": None, "authenticated": False}
    return {
        "user": user.user.model_dump(mode="json"),
        "role": user.role,
        "authenticated": True,
    }


@router.get("/user/profile", summary="Get your profile")
async def get_profile(
    user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    profile = ProfileManager(db).get_profile(user.user_id)
    return {
        "profile": ProfileOut.model_validate(profile).model_dump(mode="json") if profile else None,
        "email": user.user.email,
    }


@router.put("/user/profile", summary="Update your profile")
async def update_profile(
    request: ProfileUpdate,
    user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, bool]:
    ProfileManager(db).upsert_profile(user.user_id, request)
    return {"ok": True}


@router.get("/favorites", summary="List favorite tool ids")
async def list_favorites(
    user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return {"favorites": ProfileManager(db).list_favorite_ids(user.user_id)}


@router.post("/favorites", summary="Add or remove a favorite")
async def update_favorites(
    request: FavoriteRequest,
    user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    favorites = ProfileManager(db).update_favorite(user.user_id, request.tool_id, request.action)
    return {"success": True, "favorites": favorites}


@router.get("/user/export", summary="Export your data")
async def export_user_data(
    user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return ProfileManager(db).export_user_data(user)


@router.delete(
    "/user/account",
    summary="Delete your account",
    dependencies=[Depends(sensitive_operation_rate_limiter)]
)
async def delete_account(
    user: AuthContext = Depends(get_current_user),
    provider: Optional[AuthProvider] = Depends(get_auth_provider),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Soft-delete the caller's account.

    The profile is anonymised and the session is revoked. Reviews stay but
    show the anonymised name.
    """
    ProfileManager(db).anonymize_account(user.user_id)
    if provider is not None and user.access_token:
        try:
            provider.sign_out(user.access_token)
        except VaultXError as e:
            # The account is already anonymised; an expired session needs no revocation
            logger.warning(f"Sign-out after account deletion failed for {user.user_id}: {e.message}")
    return {"success": True, "message": "Account deleted"}


@router.get("/dashboard", summary="Personal dashboard")
async def get_dashboard(
    user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return ProfileManager(db).get_dashboard(user)
