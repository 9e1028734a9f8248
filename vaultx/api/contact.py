"""Contact form endpoints: public submission and admin triage."""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from ..core.auth import AuthContext
from ..core.contact_manager import ContactManager
from ..core.rate_limit import admin_rate_limiter, public_event_rate_limiter
from ..models.schemas import ContactRequest, ContactStatusUpdate, ContactMessageOut
from ..storage.database import get_db
from .dependencies import require_admin, record_audit

router = APIRouter(tags=["contact"])


@router.post(
    "/api/contact",
    status_code=status.HTTP_201_CREATED,
    summary="Send a message to the editors",
    dependencies=[Depends(public_event_rate_limiter)],
    responses={400: {"description": "Missing field or malformed e-mail address"}}
)
async def submit_message(payload: ContactRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    message = ContactManager(db).submit(payload)
    return {
        "success": True,
        "message": "Message sent successfully! We'll get back to you soon.",
        "id": message.id,
    }


@router.get(
    "/api/admin/contact",
    summary="List contact messages",
    dependencies=[Depends(admin_rate_limiter)]
)
async def list_messages(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    messages, total = ContactManager(db).list_messages(status=status_filter, limit=limit, offset=offset)
    return {
        "messages": [ContactMessageOut.model_validate(message).model_dump(mode="json") for message in messages],
        "total": total,
    }


@router.put(
    "/api/admin/contact/{message_id}",
    response_model=ContactMessageOut,
    summary="Change a message's status",
    dependencies=[Depends(admin_rate_limiter)]
)
async def update_message_status(
    message_id: str,
    payload: ContactStatusUpdate,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ContactMessageOut:
    message = ContactManager(db).update_status(message_id, payload.status)
    record_audit(db, request, admin, "contact.update", "contact_message", message_id, {"status": message.status})
    return ContactMessageOut.model_validate(message)


@router.delete(
    "/api/admin/contact/{message_id}",
    summary="Delete a message",
    dependencies=[Depends(admin_rate_limiter)]
)
async def delete_message(
    message_id: str,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    ContactManager(db).delete_message(message_id)
    record_audit(db, request, admin, "contact.delete", "contact_message", message_id)
    return {"success": True, "message": "Message deleted"}
