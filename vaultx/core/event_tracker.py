"""Event Tracker for client analytics events and their aggregate counters."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..storage.models import AnalyticsEventModel, SearchStatisticModel, ToolInteractionStatModel
from .exceptions import ValidationError, StorageError
from .logging import get_logger

logger = get_logger(__name__)

EVENT_SEARCH = "search"
EVENT_TOOL_INTERACTION = "tool_interaction"

# Interaction action -> counter column on ToolInteractionStatModel
INTERACTION_COUNTERS = {
    "view": "view_count",
    "favorite": "favorite_count",
    "share": "share_count",
    "bookmark": "bookmark_count",
    "click_external": "click_external_count",
}

MAX_QUERY_LENGTH = 200


class EventTracker:
    """Records analytics events and folds search and tool interactions into counters."""

    def __init__(self, db_session: Session):
        self._db = db_session

    def _storage_error(self, operation: str, error: Exception) -> StorageError:
        self._db.rollback()
        logger.error(f"Database error during {operation}: {str(error)}")
        return StorageError(f"Failed to {operation}", operation=operation, table="analytics_events")

    def track(
        self,
        event_type: Optional[str],
        data: Optional[Dict[str, Any]],
        timestamp: Optional[datetime],
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None
    ) -> AnalyticsEventModel:
        """
        Store one event.

        Search events also update the per-query statistics and tool_interaction
        events the per-tool counters, in the same transaction as the event row.

        Raises:
            ValidationError: If the event type, data or timestamp is missing
        """
        event_type = (event_type or "").strip()
        if not event_type or data is None or timestamp is None:
            raise ValidationError(
                "Missing required fields",
                validation_errors=["eventType, data and timestamp are required"]
            )
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone(timezone.utc).replace(tzinfo=None)

        event = AnalyticsEventModel(
            event_type=event_type,
            event_data=data,
            user_id=user_id,
            session_id=_text(data.get("sessionId"), 100),
            timestamp=timestamp,
            user_agent=_text(user_agent or data.get("userAgent"), 500),
            ip_address=ip_address,
            referrer=_text(data.get("referrer") or referrer, 500),
            page=_text(data.get("page"), 500) or "unknown",
        )

        try:
            self._db.add(event)
            if event_type == EVENT_SEARCH:
                self._record_search(data)
            elif event_type == EVENT_TOOL_INTERACTION:
                self._record_interaction(data)
            self._db.commit()
            self._db.refresh(event)
        except SQLAlchemyError as e:
            raise self._storage_error("record analytics event", e)

        logger.debug(f"Tracked {event_type} event {event.id}")
        return event

    def _record_search(self, data: Dict[str, Any]):
        query = _text(data.get("query"), MAX_QUERY_LENGTH)
        if not query:
            return
        query = query.lower()
        results = _count(data.get("results"))
        filters = data.get("filters")

        stat = self._db.get(SearchStatisticModel, query)
        if stat is None:
            stat = SearchStatisticModel(query=query, search_count=0, total_results=0)
            self._db.add(stat)
        stat.search_count += 1
        stat.total_results += results
        stat.average_results = round(stat.total_results / stat.search_count, 2)
        stat.filters_used = sorted(filters) if isinstance(filters, dict) else []
        stat.last_searched = datetime.utcnow()

    def _record_interaction(self, data: Dict[str, Any]):
        tool_id = _text(data.get("toolId") or data.get("tool_id"), 36)
        if not tool_id:
            return

        stat = self._db.get(ToolInteractionStatModel, tool_id)
        if stat is None:
            stat = ToolInteractionStatModel(tool_id=tool_id, **{column: 0 for column in INTERACTION_COUNTERS.values()})
            self._db.add(stat)
        tool_name = _text(data.get("toolName"), 200)
        if tool_name:
            stat.tool_name = tool_name
        column = INTERACTION_COUNTERS.get(data.get("action"))
        if column:
            setattr(stat, column, getattr(stat, column) + 1)
        stat.last_interaction = datetime.utcnow()

    def summary(self, days: int = 30, limit: int = 10) -> Dict[str, Any]:
        """Event counts per type over the last `days` days plus the top searches and tools."""
        since = datetime.utcnow() - timedelta(days=days)
        try:
            counts = (
                self._db.query(AnalyticsEventModel.event_type, func.count(AnalyticsEventModel.id))
                .filter(AnalyticsEventModel.timestamp >= since)
                .group_by(AnalyticsEventModel.event_type)
                .all()
            )
            searches = (
                self._db.query(SearchStatisticModel)
                .order_by(SearchStatisticModel.search_count.desc(), SearchStatisticModel.query)
                .limit(limit).all()
            )
            tools = (
                self._db.query(ToolInteractionStatModel)
                .order_by(ToolInteractionStatModel.view_count.desc(), ToolInteractionStatModel.tool_id)
                .limit(limit).all()
            )
        except SQLAlchemyError as e:
            raise self._storage_error("summarise analytics", e)

        return {
            "period_days": days,
            "events_by_type": {event_type: count for event_type, count in counts},
            "top_searches": [
                {
                    "query": stat.query,
                    "search_count": stat.search_count,
                    "average_results": stat.average_results,
                    "filters_used": stat.filters_used or [],
                    "last_searched": stat.last_searched,
                }
                for stat in searches
            ],
            "top_tools": [
                {
                    "tool_id": stat.tool_id,
                    "tool_name": stat.tool_name,
                    **{column: getattr(stat, column) for column in INTERACTION_COUNTERS.values()},
                    "last_interaction": stat.last_interaction,
                }
                for stat in tools
            ],
        }


def _text(value: Any, max_length: int) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value[:max_length] or None


def _count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(int(value), 0)
