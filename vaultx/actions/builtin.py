"""Built-in workflow actions for directory maintenance.

Each action takes the current database session and the step's parameters and
returns a JSON-serialisable summary. Actions do not commit; the workflow
runner commits once every step has succeeded.
"""

from typing import Any, Dict

from sqlalchemy.orm import Session

from ..analytics.trending import calculate_trending_score, get_trending_categories
from ..analytics.validation import validate_tool_data, is_mock_data
from ..core.enrichment import validate_website_url
from ..core.exceptions import ValidationError
from ..core.logging import get_logger
from ..core.review_manager import recalculate_tool_rating
from ..core.tool_manager import PUBLISH_REQUIRED_FIELDS
from ..models.schemas import ToolStatus, tool_to_dict
from ..storage.models import ToolModel

logger = get_logger(__name__)


def recalculate_tool_stats(session: Session, params: Dict[str, Any]) -> Dict[str, Any]:
    """Recompute rating aggregates from reviews for one tool (params.tool_id) or all tools."""
    query = session.query(ToolModel)
    if params.get("tool_id"):
        query = query.filter(ToolModel.id == params["tool_id"])

    tools = query.all()
    for tool in tools:
        recalculate_tool_rating(session, tool)

    logger.info(f"Recalculated review stats for {len(tools)} tools")
    return {"tools_updated": len(tools)}


def flag_mock_data(session: Session, params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Find tools whose numbers look like placeholder data.

    With params.unpublish set, flagged published tools are moved back to draft.
    """
    unpublish = bool(params.get("unpublish", False))
    flagged = []
    unpublished = []

    for tool in session.query(ToolModel).order_by(ToolModel.name).all():
        if not is_mock_data(tool_to_dict(tool)):
            continue
        flagged.append(tool.id)
        if unpublish and tool.status == ToolStatus.PUBLISHED.value:
            tool.status = ToolStatus.DRAFT.value
            unpublished.append(tool.id)

    logger.info(f"Flagged {len(flagged)} tools as mock data ({len(unpublished)} unpublished)")
    return {"flagged": flagged, "count": len(flagged), "unpublished": unpublished}


def _ready_to_publish(tool: ToolModel) -> bool:
    if any(not (getattr(tool, field) or "").strip() for field in PUBLISH_REQUIRED_FIELDS):
        return False
    try:
        validate_website_url(tool.website)
    except ValidationError:
        return False
    return validate_tool_data(tool_to_dict(tool)).is_valid


def publish_valid_tools(session: Session, params: Dict[str, Any]) -> Dict[str, Any]:
    """Publish every draft tool that passes validation; params.limit caps how many."""
    limit = params.get("limit")
    published = []

    drafts = (
        session.query(ToolModel)
        .filter(ToolModel.status == ToolStatus.DRAFT.value)
        .order_by(ToolModel.created_at, ToolModel.id)
        .all()
    )
    for tool in drafts:
        if limit is not None and len(published) >= int(limit):
            break
        if _ready_to_publish(tool):
            tool.status = ToolStatus.PUBLISHED.value
            published.append(tool.id)

    logger.info(f"Published {len(published)} of {len(drafts)} draft tools")
    return {"published": published, "count": len(published), "drafts_checked": len(drafts)}


def snapshot_trending(session: Session, params: Dict[str, Any]) -> Dict[str, Any]:
    """Capture the current trending ranking of published tools."""
    limit = int(params.get("limit", 10))
    tools = [
        tool_to_dict(tool) for tool in session.query(ToolModel)
        .filter(ToolModel.status == ToolStatus.PUBLISHED.value)
        .order_by(ToolModel.created_at, ToolModel.id)
        .all()
    ]

    scored = sorted((calculate_trending_score(tool) for tool in tools), key=lambda s: s.score, reverse=True)
    return {
        "tools": [
            {"id": item.tool["id"], "name": item.tool["name"], "score": round(item.score, 4)}
            for item in scored[:limit]
        ],
        "categories": [category.model_dump() for category in get_trending_categories(tools)],
    }


BUILTIN_ACTIONS = [
    ("recalculate_tool_stats", recalculate_tool_stats, "Recompute tool ratings from reviews"),
    ("flag_mock_data", flag_mock_data, "Flag tools whose data matches placeholder patterns"),
    ("publish_valid_tools", publish_valid_tools, "Publish draft tools that pass validation"),
    ("snapshot_trending", snapshot_trending, "Record the current trending ranking"),
]


def register_builtin_actions(registry) -> None:
    """Register the built-in actions, skipping names already present."""
    for name, function, description in BUILTIN_ACTIONS:
        if registry.action_exists(name):
            logger.info(f"Action already exists: {name}")
            continue
        registry.register_action(name, function, description)
