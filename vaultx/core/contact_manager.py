"""Contact Manager for messages sent through the public contact form."""

import re
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..models.schemas import ContactRequest, ContactStatus
from ..storage.models import ContactMessageModel
from .exceptions import ValidationError, NotFoundError, StorageError
from .logging import get_logger

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
REQUIRED_FIELDS = ("name", "email", "subject", "message")


class ContactManager:
    """Stores contact messages and lets admins triage them."""

    def __init__(self, db_session: Session):
        self._db = db_session

    def _storage_error(self, operation: str, error: Exception) -> StorageError:
        self._db.rollback()
        logger.error(f"Database error during {operation}: {str(error)}")
        return StorageError(f"Failed to {operation}", operation=operation, table="contact_messages")

    def submit(self, data: ContactRequest) -> ContactMessageModel:
        """
        Store a contact message as unread.

        Values are trimmed and the e-mail address lower-cased.

        Raises:
            ValidationError: If a field is missing or the e-mail address is malformed
        """
        values = {field: (getattr(data, field) or "").strip() for field in REQUIRED_FIELDS}
        missing = [field for field, value in values.items() if not value]
        if missing:
            raise ValidationError(
                "All fields are required",
                validation_errors=[f"{field} is required" for field in missing]
            )
        if not EMAIL_PATTERN.match(values["email"]):
            raise ValidationError("Please provide a valid email address", field="email")
        values["email"] = values["email"].lower()

        try:
            message = ContactMessageModel(status=ContactStatus.UNREAD.value, **values)
            self._db.add(message)
            self._db.commit()
            self._db.refresh(message)
        except SQLAlchemyError as e:
            raise self._storage_error("save contact message", e)

        logger.info(f"Contact message {message.id} received from {message.email}")
        return message

    def list_messages(
        self,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[ContactMessageModel], int]:
        """Messages newest first, optionally filtered by status."""
        if status:
            status = self._valid_status(status)
        try:
            query = self._db.query(ContactMessageModel)
            if status:
                query = query.filter(ContactMessageModel.status == status)
            total = query.count()
            messages = (
                query.order_by(ContactMessageModel.created_at.desc(), ContactMessageModel.id)
                .offset(offset).limit(limit).all()
            )
            return messages, total
        except SQLAlchemyError as e:
            raise self._storage_error("list contact messages", e)

    def get_message(self, message_id: str) -> ContactMessageModel:
        try:
            message = self._db.query(ContactMessageModel).filter(ContactMessageModel.id == message_id).first()
        except SQLAlchemyError as e:
            raise self._storage_error("retrieve contact message", e)
        if not message:
            raise NotFoundError("Message not found", resource_type="contact_message", resource_id=message_id)
        return message

    def update_status(self, message_id: str, status: str) -> ContactMessageModel:
        status = self._valid_status(status)
        message = self.get_message(message_id)
        try:
            message.status = status
            message.updated_at = datetime.utcnow()
            self._db.commit()
            self._db.refresh(message)
        except SQLAlchemyError as e:
            raise self._storage_error("update contact message", e)

        logger.info(f"Contact message {message_id} marked {status}")
        return message

    def delete_message(self, message_id: str) -> None:
        message = self.get_message(message_id)
        try:
            self._db.delete(message)
            self._db.commit()
        except SQLAlchemyError as e:
            raise self._storage_error("delete contact message", e)
        logger.info(f"Deleted contact message {message_id}")

    @staticmethod
    def _valid_status(status: str) -> str:
        try:
            return ContactStatus(status).value
        except ValueError:
            raise ValidationError(
                "Invalid status",
                field="status",
                validation_errors=[f"status must be one of {', '.join(s.value for s in ContactStatus)}"]
            )
