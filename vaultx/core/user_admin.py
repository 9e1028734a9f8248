"""User administration: role assignment, account status and provider user listings."""

from datetime import datetime
from typing import Any, Dict, List
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..storage.models import UserRoleModel, FavoriteModel
from .auth import AuthProvider, AuthContext, ROLE_USER, VALID_ROLES
from .exceptions import ValidationError, AuthorizationError, StorageError
from .logging import get_logger
from .profile_manager import ProfileManager

logger = get_logger(__name__)


class UserAdminManager:
    """Admin-side user management over the auth provider and the user_roles table."""

    def __init__(self, db_session: Session, auth_provider: AuthProvider):
        self._db = db_session
        self._provider = auth_provider

    def _storage_error(self, operation: str, error: Exception) -> StorageError:
        self._db.rollback()
        logger.error(f"Database error during {operation}: {str(error)}")
        return StorageError(f"Failed to {operation}", operation=operation, table="user_roles")

    def list_users(self) -> List[Dict[str, Any]]:
        """Provider users with their stored role (default user)."""
        users = self._provider.list_users()
        try:
            roles = {row.user_id: row.role for row in self._db.query(UserRoleModel).all()}
        except SQLAlchemyError as e:
            raise self._storage_error("load roles", e)

        return [
            {
                "id": user.id,
                "email": user.email,
                "role": roles.get(user.id, ROLE_USER),
                "created_at": user.created_at,
                "last_sign_in_at": user.last_sign_in_at,
                "disabled": user.is_disabled,
            }
            for user in users
        ]

    def set_role(self, actor: AuthContext, user_id: str, role: str) -> UserRoleModel:
        """
        Assign a role to a user.

        Raises:
            ValidationError: If the role is not admin or user
            AuthorizationError: If admins try to change their own role
        """
        if role not in VALID_ROLES:
            raise ValidationError(
                "Valid role (admin or user) is required",
                field="role",
                validation_errors=[f"role must be one of {', '.join(VALID_ROLES)}"]
            )
        if user_id == actor.user_id:
            raise AuthorizationError("You cannot change your own role", user_id=actor.user_id)

        try:
            row = self._db.query(UserRoleModel).filter(UserRoleModel.user_id == user_id).first()
            if row is None:
                row = UserRoleModel(user_id=user_id, role=role, created_at=datetime.utcnow())
                self._db.add(row)
            else:
                row.role = role
            self._db.commit()
            self._db.refresh(row)
        except SQLAlchemyError as e:
            raise self._storage_error("update role", e)

        logger.info(f"Role of user {user_id} set to {role} by {actor.user_id}")
        return row

    def set_disabled(self, actor: AuthContext, user_id: str, disabled: bool) -> None:
        """Ban or unban a user at the provider; admins cannot change their own status."""
        if user_id == actor.user_id:
            raise AuthorizationError("You cannot change your own account status", user_id=actor.user_id)

        self._provider.set_user_disabled(user_id, disabled)
        logger.info(f"User {user_id} {'disabled' if disabled else 'enabled'} by {actor.user_id}")

    def delete_user(self, actor: AuthContext, user_id: str) -> None:
        """Delete a user at the provider and drop their role, favorites and profile details."""
        if user_id == actor.user_id:
            raise AuthorizationError("You cannot delete your own account", user_id=actor.user_id)

        self._provider.delete_user(user_id)
        try:
            self._db.query(UserRoleModel).filter(UserRoleModel.user_id == user_id).delete()
            self._db.query(FavoriteModel).filter(FavoriteModel.user_id == user_id).delete()
            self._db.commit()
        except SQLAlchemyError as e:
            raise self._storage_error("delete user data", e)
        ProfileManager(self._db).anonymize_account(user_id)

        logger.info(f"User {user_id} deleted by {actor.user_id}")
