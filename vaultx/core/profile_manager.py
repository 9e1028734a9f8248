"""Profile Manager for user profiles, favorites, data export and the user dashboard."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from ..analytics.trending import get_trending_tools
from ..models.schemas import (
    ProfileUpdate, ProfileOut, ReviewOut, ToolStatus, tool_to_dict
)
from ..storage.models import ProfileModel, FavoriteModel, ReviewModel, ReviewReportModel, ToolModel
from .auth import AuthContext
from .exceptions import ValidationError, NotFoundError, StorageError
from .logging import get_logger

logger = get_logger(__name__)

DELETED_USER_NAME = "Deleted User"
FAVORITE_ACTIONS = ("add", "remove")
RECENT_ACTIVITY_LIMIT = 10
RECOMMENDATION_LIMIT = 3


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class ProfileManager:
    """Manages per-user data: profile, favorites, export and account removal."""

    def __init__(self, db_session: Session):
        self._db = db_session

    def _storage_error(self, operation: str, error: Exception, table: str) -> StorageError:
        self._db.rollback()
        logger.error(f"Database error during {operation}: {str(error)}")
        return StorageError(f"Failed to {operation}", operation=operation, table=table)

    # Profile

    def get_profile(self, user_id: str) -> Optional[ProfileModel]:
        try:
            return self._db.query(ProfileModel).filter(ProfileModel.id == user_id).first()
        except SQLAlchemyError as e:
            raise self._storage_error("retrieve profile", e, "profiles")

    def upsert_profile(self, user_id: str, data: ProfileUpdate) -> ProfileModel:
        """
        Create or update the caller's profile.

        Blank strings are stored as NULL; fields absent from the request are left unchanged.
        """
        values = data.model_dump(exclude_unset=True)
        try:
            profile = self.get_profile(user_id)
            if profile is None:
                profile = ProfileModel(id=user_id)
                self._db.add(profile)

            for key in ("display_name", "organization", "bio"):
                if key in values:
                    setattr(profile, key, _blank_to_none(values[key]))
            if values.get("newsletter_opt_in") is not None:
                profile.newsletter_opt_in = bool(values["newsletter_opt_in"])

            profile.updated_at = datetime.utcnow()
            self._db.commit()
            self._db.refresh(profile)
        except SQLAlchemyError as e:
            raise self._storage_error("update profile", e, "profiles")

        logger.info(f"Profile updated for user {user_id}")
        return profile

    # Favorites

    def list_favorite_ids(self, user_id: str) -> List[str]:
        try:
            rows = (
                self._db.query(FavoriteModel.tool_id)
                .filter(FavoriteModel.user_id == user_id)
                .order_by(FavoriteModel.created_at.desc(), FavoriteModel.id)
                .all()
            )
            return [tool_id for (tool_id,) in rows]
        except SQLAlchemyError as e:
            raise self._storage_error("list favorites", e, "favorites")

    def update_favorite(self, user_id: str, tool_id: str, action: str) -> List[str]:
        """
        Add or remove a favorite; adding twice and removing a missing favorite are no-ops.

        Returns:
            The caller's favorite tool ids after the change

        Raises:
            ValidationError: If action is not add or remove
            NotFoundError: If adding a tool that does not exist
        """
        if action not in FAVORITE_ACTIONS:
            raise ValidationError(
                f"Invalid action '{action}'",
                field="action",
                validation_errors=["action must be add or remove"]
            )

        try:
            existing = self._db.query(FavoriteModel).filter(
                FavoriteModel.user_id == user_id, FavoriteModel.tool_id == tool_id
            ).first()

            if action == "add" and existing is None:
                if not self._db.query(ToolModel.id).filter(ToolModel.id == tool_id).first():
                    raise NotFoundError("Tool not found", resource_type="tool", resource_id=tool_id)
                self._db.add(FavoriteModel(user_id=user_id, tool_id=tool_id))
                self._db.commit()
            elif action == "remove" and existing is not None:
                self._db.delete(existing)
                self._db.commit()
        except IntegrityError:
            # Concurrent add of the same favorite
            self._db.rollback()
        except SQLAlchemyError as e:
            raise self._storage_error("update favorites", e, "favorites")

        return self.list_favorite_ids(user_id)

    # Export and account

    def export_user_data(self, auth: AuthContext) -> Dict[str, Any]:
        """Everything stored about the caller, as one JSON document."""
        profile = self.get_profile(auth.user_id)
        try:
            reviews = (
                self._db.query(ReviewModel)
                .filter(ReviewModel.user_id == auth.user_id)
                .order_by(ReviewModel.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            raise self._storage_error("export reviews", e, "reviews")

        logger.info(f"Exported data for user {auth.user_id}")
        return {
            "user": {
                "id": auth.user.id,
                "email": auth.user.email,
                "created_at": auth.user.created_at.isoformat() if auth.user.created_at else None,
                "last_sign_in_at": auth.user.last_sign_in_at.isoformat() if auth.user.last_sign_in_at else None,
            },
            "profile": ProfileOut.model_validate(profile).model_dump(mode="json") if profile else None,
            "favorites": self.list_favorite_ids(auth.user_id),
            "reviews": [ReviewOut.model_validate(review).model_dump(mode="json") for review in reviews],
            "exported_at": datetime.utcnow().isoformat(),
        }

    def anonymize_account(self, user_id: str) -> ProfileModel:
        """Soft-delete: keep the rows but strip identifying fields from the profile and authored content."""
        try:
            profile = self.get_profile(user_id)
            if profile is None:
                profile = ProfileModel(id=user_id)
                self._db.add(profile)
            profile.display_name = DELETED_USER_NAME
            profile.bio = None
            profile.organization = None
            profile.newsletter_opt_in = False
            profile.updated_at = datetime.utcnow()

            # Reviews and reports carry a copy of the author's name taken at submission
            self._db.query(ReviewModel).filter(ReviewModel.user_id == user_id).update(
                {ReviewModel.user_name: DELETED_USER_NAME, ReviewModel.user_email: None},
                synchronize_session=False
            )
            self._db.query(ReviewReportModel).filter(ReviewReportModel.reporter_id == user_id).update(
                {ReviewReportModel.reporter_name: DELETED_USER_NAME},
                synchronize_session=False
            )
            self._db.commit()
            self._db.refresh(profile)
        except SQLAlchemyError as e:
            raise self._storage_error("anonymize account", e, "profiles")

        logger.info(f"Account soft-deleted for user {user_id}")
        return profile

    # Dashboard

    def get_dashboard(self, auth: AuthContext) -> Dict[str, Any]:
        """Summary, favorite tools, recent activity and recommendations for the caller."""
        user_id = auth.user_id
        profile = self.get_profile(user_id)

        try:
            favorites = (
                self._db.query(FavoriteModel)
                .filter(FavoriteModel.user_id == user_id)
                .order_by(FavoriteModel.created_at.desc(), FavoriteModel.id)
                .all()
            )
            reviews = (
                self._db.query(ReviewModel)
                .filter(ReviewModel.user_id == user_id)
                .order_by(ReviewModel.created_at.desc())
                .all()
            )
            published = (
                self._db.query(ToolModel)
                .filter(ToolModel.status == ToolStatus.PUBLISHED.value)
                .order_by(ToolModel.created_at, ToolModel.id)
                .all()
            )
        except SQLAlchemyError as e:
            raise self._storage_error("load dashboard", e, "favorites")

        favorite_tools = [tool_to_dict(favorite.tool) for favorite in favorites if favorite.tool]

        activity = [
            {
                "type": "review",
                "tool_id": review.tool_id,
                "tool_name": review.tool.name if review.tool else None,
                "rating": review.rating,
                "title": review.title,
                "timestamp": review.created_at,
            }
            for review in reviews
        ] + [
            {
                "type": "favorite",
                "tool_id": favorite.tool_id,
                "tool_name": favorite.tool.name if favorite.tool else None,
                "timestamp": favorite.created_at,
            }
            for favorite in favorites
        ]
        activity.sort(key=lambda item: item["timestamp"] or datetime.min, reverse=True)
        for item in activity:
            item["timestamp"] = item["timestamp"].isoformat() if item["timestamp"] else None

        favorite_ids = {favorite.tool_id for favorite in favorites}
        favorite_categories = {tool["category"] for tool in favorite_tools if tool.get("category")}
        candidates = [
            tool_to_dict(tool) for tool in published
            if tool.id not in favorite_ids and tool.category in favorite_categories
        ]

        member_since = auth.user.created_at or (profile.created_at if profile else None)
        return {
            "user": {
                "name": (profile.display_name if profile and profile.display_name else auth.display_name),
                "email": auth.user.email,
                "member_since": member_since.isoformat() if member_since else None,
                "review_count": len(reviews),
                "favorite_count": len(favorites),
            },
            "favorite_tools": favorite_tools,
            "recent_activity": activity[:RECENT_ACTIVITY_LIMIT],
            "recommendations": get_trending_tools(candidates, RECOMMENDATION_LIMIT),
        }
