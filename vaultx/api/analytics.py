"""Analytics endpoints: client event tracking and the admin summary."""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..core.auth import AuthContext
from ..core.event_tracker import EventTracker
from ..core.rate_limit import admin_rate_limiter, public_event_rate_limiter, get_client_key
from ..models.schemas import TrackEventRequest
from ..storage.database import get_db
from .dependencies import get_optional_user, require_admin

router = APIRouter(tags=["analytics"])


@router.post(
    "/api/analytics/track",
    summary="Record a client analytics event",
    dependencies=[Depends(public_event_rate_limiter)],
    responses={400: {"description": "eventType, data or timestamp missing"}}
)
async def track_event(
    payload: TrackEventRequest,
    request: Request,
    user: Optional[AuthContext] = Depends(get_optional_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Record an event from the browser.

    Anonymous callers are welcome; signed-in callers have their user id
    attached. `search` and `tool_interaction` events also feed the admin
    summary counters.
    """
    EventTracker(db).track(
        payload.event_type,
        payload.data,
        payload.timestamp,
        user_id=user.user_id if user else None,
        ip_address=get_client_key(request),
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer")
    )
    return {"success": True}


@router.get(
    "/api/admin/analytics",
    summary="Event counts, top searches and most viewed tools",
    dependencies=[Depends(admin_rate_limiter)]
)
async def analytics_summary(
    days: int = Query(30, ge=1, le=365),
    limit: int = Query(10, ge=1, le=100),
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return EventTracker(db).summary(days=days, limit=limit)
