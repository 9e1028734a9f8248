"""Audit trail for admin mutations."""

from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..storage.models import AuditLogModel
from .exceptions import StorageError
from .logging import get_logger

logger = get_logger(__name__)


class AuditLogger:
    """Records and queries admin actions."""

    def __init__(self, db_session: Session):
        self._db = db_session

    def log(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> AuditLogModel:
        """
        Write one audit entry.

        Args:
            action: Verb such as "tool.create" or "user.role_update"
            resource_type: Kind of record acted on
            resource_id: Identifier of the record
            user_id: Acting admin
            details: Free-form JSON payload

        Raises:
            StorageError: If the entry cannot be written
        """
        entry = AuditLogModel(
            user_id=user_id,
            user_email=user_email,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details or {},
            ip_address=ip_address,
            user_agent=(user_agent or "")[:500] or None
        )
        try:
            self._db.add(entry)
            self._db.commit()
            logger.info(f"Audit: {action} on {resource_type} {resource_id or ''} by {user_email or user_id}")
            return entry
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.error(f"Failed to write audit log for {action}: {str(e)}")
            raise StorageError("Failed to write audit log", operation="insert", table="audit_logs")

    def list_logs(
        self,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[AuditLogModel], int]:
        """Return audit entries newest first, with the unpaginated total."""
        try:
            query = self._db.query(AuditLogModel)
            if user_id:
                query = query.filter(AuditLogModel.user_id == user_id)
            if action:
                query = query.filter(AuditLogModel.action == action)
            if resource_type:
                query = query.filter(AuditLogModel.resource_type == resource_type)

            total = query.count()
            entries = (
                query.order_by(AuditLogModel.created_at.desc(), AuditLogModel.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return entries, total
        except SQLAlchemyError as e:
            logger.error(f"Failed to query audit logs: {str(e)}")
            raise StorageError("Failed to query audit logs", operation="select", table="audit_logs")
