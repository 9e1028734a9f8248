"""Public tool, search and category endpoints."""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..analytics.trending import (
    calculate_trending_score,
    get_time_based_trending,
    get_trending_badge,
    get_trending_categories,
    get_trending_insights,
)
from ..config import AppConfig
from ..core.logging import get_logger
from ..core.tool_manager import ToolManager
from ..models.schemas import tool_to_dict
from ..storage.database import get_db
from .dependencies import get_app_config

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["tools"])


@router.get(
    "/tools",
    summary="List published tools",
    description="Paginated listing of published tools with optional category and text filters."
)
async def list_tools(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "rating",
    sort_order: str = "desc",
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    tools, total = ToolManager(db).list_tools(
        page=page, limit=limit, category=category, search=search,
        sort_by=sort_by, sort_order=sort_order
    )
    return {
        "tools": [tool_to_dict(tool) for tool in tools],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


@router.get(
    "/tools/trending",
    summary="Trending tools",
    description="""
    Published tools ranked for the requested time window.

    - **day**: fastest growth first
    - **week**: highest trending score first
    - **month**: most reviewed first
    """
)
async def trending_tools(
    limit: Optional[int] = Query(None, ge=1, le=100),
    time_filter: str = "week",
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_app_config)
) -> Dict[str, Any]:
    tools = ToolManager(db).published_tool_dicts()
    ranked = get_time_based_trending(tools, time_filter)[:limit or config.trending_default_limit]

    return {
        "tools": [
            {
                **tool,
                "trending_score": round(calculate_trending_score(tool).score, 4),
                "badge": get_trending_badge(index).model_dump(),
            }
            for index, tool in enumerate(ranked)
        ],
        "time_filter": time_filter,
        "total": len(ranked),
    }


@router.get("/tools/trending/categories", summary="Trending categories")
async def trending_categories(db: Session = Depends(get_db)) -> Dict[str, Any]:
    categories = get_trending_categories(ToolManager(db).published_tool_dicts())
    return {"categories": [category.model_dump() for category in categories]}


@router.get("/tools/trending/insights", summary="Trending insights")
async def trending_insights(db: Session = Depends(get_db)) -> Dict[str, Any]:
    return get_trending_insights(ToolManager(db).published_tool_dicts()).model_dump()


@router.get(
    "/tools/{tool_id}",
    summary="Get a published tool",
    responses={404: {"description": "Tool not found or not published"}}
)
async def get_tool(tool_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    return tool_to_dict(ToolManager(db).get_tool(tool_id, published_only=True))


@router.get(
    "/search",
    summary="Search tools",
    description="Search published tools by text and filters, ordered by relevance."
)
async def search_tools(
    q: str = "",
    category: Optional[str] = None,
    pricing: Optional[str] = None,
    min_rating: Optional[float] = Query(None, alias="minRating", ge=0, le=5),
    min_users: Optional[int] = Query(None, alias="minUsers", ge=0),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return ToolManager(db).search(
        query=q.strip(), category=category, pricing=pricing,
        min_rating=min_rating, min_users=min_users, limit=limit, offset=offset
    )


@router.get("/categories", summary="List categories with statistics")
async def list_categories(db: Session = Depends(get_db)) -> Dict[str, Any]:
    return {"categories": ToolManager(db).list_categories_with_stats()}


@router.get(
    "/categories/{name}",
    summary="Category detail",
    responses={404: {"description": "Category not found"}}
)
async def get_category(
    name: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return ToolManager(db).get_category_detail(name, page=page, limit=limit)
