"""Admin endpoints: tool curation, categories, moderation, users and audit logs.

Every route requires the admin role and shares the admin rate limit. Each
mutation is written to the audit log.
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from ..core.audit import AuditLogger
from ..core.auth import AuthContext, AuthProvider
from ..core.enrichment import WebsiteEnricher
from ..core.logging import get_logger
from ..core.rate_limit import admin_rate_limiter, sensitive_operation_rate_limiter
from ..core.review_manager import ReviewManager
from ..core.tool_manager import ToolManager
from ..core.user_admin import UserAdminManager
from ..models.schemas import (
    ToolCreate, ToolUpdate, ToolOut, ToolWriteResponse, EnrichRequest, EnrichResponse,
    CategoryCreate, CategoryUpdate, CategoryOut, ReportUpdate, ReportOut,
    RoleUpdate, UserStatusUpdate, AdminUserOut, AuditLogOut, tool_to_dict
)
from ..storage.database import get_db
from .dependencies import require_admin, require_auth_provider, get_enricher, record_audit

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(admin_rate_limiter)]
)


# Tools

@router.get("/tools", summary="List tools in every status")
async def admin_list_tools(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    status_filter: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    tools, total = ToolManager(db).list_tools(
        page=page, limit=limit, category=category, search=search,
        sort_by=sort_by, sort_order=sort_order, status=status_filter
    )
    return {
        "tools": [tool_to_dict(tool) for tool in tools],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit},
    }


@router.post(
    "/tools",
    response_model=ToolWriteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a tool",
    responses={409: {"description": "A tool with this name already exists"}}
)
async def admin_create_tool(
    payload: ToolCreate,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ToolWriteResponse:
    """
    Create a tool listing.

    The tool is stored even when its data looks off; data-quality errors and
    warnings come back in `warnings` for the editor to act on.
    """
    tool, warnings = ToolManager(db).create_tool(payload)
    record_audit(db, request, admin, "tool.create", "tool", tool.id, {"name": tool.name})
    return ToolWriteResponse(tool=ToolOut.model_validate(tool), warnings=warnings)


@router.put("/tools/{tool_id}", response_model=ToolWriteResponse, summary="Update a tool")
async def admin_update_tool(
    tool_id: str,
    payload: ToolUpdate,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ToolWriteResponse:
    tool, warnings = ToolManager(db).update_tool(tool_id, payload)
    record_audit(
        db, request, admin, "tool.update", "tool", tool_id,
        {"fields": sorted(payload.model_dump(exclude_unset=True))}
    )
    return ToolWriteResponse(tool=ToolOut.model_validate(tool), warnings=warnings)


@router.delete("/tools/{tool_id}", summary="Delete a tool")
async def admin_delete_tool(
    tool_id: str,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    ToolManager(db).delete_tool(tool_id)
    record_audit(db, request, admin, "tool.delete", "tool", tool_id)
    return {"success": True, "message": "Tool deleted"}


@router.post("/tools/enrich", response_model=EnrichResponse, summary="Fetch listing metadata from a website")
async def admin_enrich_tool(
    payload: EnrichRequest,
    admin: AuthContext = Depends(require_admin),
    enricher: WebsiteEnricher = Depends(get_enricher)
) -> EnrichResponse:
    return EnrichResponse(**enricher.enrich(payload.url))


@router.post("/tools/{tool_id}/publish", response_model=ToolOut, summary="Publish a tool")
async def admin_publish_tool(
    tool_id: str,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ToolOut:
    tool = ToolManager(db).publish_tool(tool_id)
    record_audit(db, request, admin, "tool.publish", "tool", tool_id)
    return ToolOut.model_validate(tool)


@router.get("/tools/{tool_id}/validation", summary="Validate one tool's data")
async def admin_validate_tool(
    tool_id: str,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return ToolManager(db).validate_tool(tool_id).model_dump()


@router.get("/data-quality", summary="Data-quality report over all tools")
async def admin_data_quality(
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return ToolManager(db).data_quality_report().model_dump()


# Categories

@router.post("/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED, summary="Create a category")
async def admin_create_category(
    payload: CategoryCreate,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> CategoryOut:
    category = ToolManager(db).create_category(payload)
    record_audit(db, request, admin, "category.create", "category", category.id, {"name": category.name})
    return CategoryOut.model_validate(category)


@router.put("/categories/{category_id}", response_model=CategoryOut, summary="Update a category")
async def admin_update_category(
    category_id: str,
    payload: CategoryUpdate,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> CategoryOut:
    category = ToolManager(db).update_category(category_id, payload)
    record_audit(
        db, request, admin, "category.update", "category", category_id,
        {"fields": sorted(payload.model_dump(exclude_unset=True))}
    )
    return CategoryOut.model_validate(category)


@router.delete("/categories/{category_id}", summary="Delete a category")
async def admin_delete_category(
    category_id: str,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    ToolManager(db).delete_category(category_id)
    record_audit(db, request, admin, "category.delete", "category", category_id)
    return {"success": True, "message": "Category deleted"}


# Review moderation

@router.get("/reports", summary="List review reports")
async def admin_list_reports(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    reports, total = ReviewManager(db).list_reports(status=status_filter, limit=limit, offset=offset)
    return {
        "reports": [ReportOut.model_validate(report).model_dump(mode="json") for report in reports],
        "total": total,
    }


@router.put("/reports/{report_id}", response_model=ReportOut, summary="Moderate a review report")
async def admin_update_report(
    report_id: str,
    payload: ReportUpdate,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ReportOut:
    report = ReviewManager(db).resolve_report(report_id, payload)
    record_audit(
        db, request, admin, "report.update", "review_report", report_id,
        {"status": report.status, "hide_review": payload.hide_review}
    )
    return ReportOut.model_validate(report)


# Users

@router.get("/users", summary="List users with roles")
async def admin_list_users(
    admin: AuthContext = Depends(require_admin),
    provider: AuthProvider = Depends(require_auth_provider),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    users = UserAdminManager(db, provider).list_users()
    return {"users": [AdminUserOut(**user).model_dump(mode="json") for user in users]}


@router.put(
    "/users/{user_id}/role",
    summary="Change a user's role",
    dependencies=[Depends(sensitive_operation_rate_limiter)]
)
async def admin_update_role(
    user_id: str,
    payload: RoleUpdate,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    provider: AuthProvider = Depends(require_auth_provider),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    row = UserAdminManager(db, provider).set_role(admin, user_id, payload.role)
    record_audit(db, request, admin, "user.role_update", "user", user_id, {"role": row.role})
    return {"success": True, "message": f"User role updated to {row.role}"}


@router.put(
    "/users/{user_id}/status",
    summary="Disable or re-enable a user",
    dependencies=[Depends(sensitive_operation_rate_limiter)]
)
async def admin_update_user_status(
    user_id: str,
    payload: UserStatusUpdate,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    provider: AuthProvider = Depends(require_auth_provider),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    UserAdminManager(db, provider).set_disabled(admin, user_id, payload.disabled)
    record_audit(db, request, admin, "user.status_update", "user", user_id, {"disabled": payload.disabled})
    return {"success": True, "disabled": payload.disabled}


@router.delete(
    "/users/{user_id}",
    summary="Delete a user",
    dependencies=[Depends(sensitive_operation_rate_limiter)]
)
async def admin_delete_user(
    user_id: str,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    provider: AuthProvider = Depends(require_auth_provider),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    UserAdminManager(db, provider).delete_user(admin, user_id)
    record_audit(db, request, admin, "user.delete", "user", user_id)
    return {"success": True, "message": "User deleted"}


@router.get("/audit-logs", summary="Query the audit log")
async def admin_audit_logs(
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    entries, total = AuditLogger(db).list_logs(
        user_id=user_id, action=action, resource_type=resource_type, limit=limit, offset=offset
    )
    return {
        "logs": [AuditLogOut.model_validate(entry).model_dump(mode="json") for entry in entries],
        "total": total,
        "limit": limit,
        "offset": offset,
    }
