"""Admin workflow endpoints: definitions, execution, run history and templates."""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from ..core.action_registry import ActionRegistry
from ..core.auth import AuthContext
from ..core.logging import get_logger
from ..core.rate_limit import admin_rate_limiter
from ..core.workflow_manager import WorkflowManager
from ..core.workflow_runner import WorkflowRunner
from ..models.schemas import (
    WorkflowCreate, WorkflowUpdate, WorkflowOut, WorkflowRunOut, ExecuteWorkflowRequest,
    TemplateCreate, TemplateOut, InstantiateTemplateRequest
)
from ..storage.database import get_db
from .dependencies import require_admin, get_action_registry, record_audit

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["workflows"],
    dependencies=[Depends(admin_rate_limiter)]
)


@router.get(
    "/workflows",
    summary="List workflows",
    description="Newest first, each with `run_count_total` from the recorded runs."
)
async def list_workflows(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    workflow_type: Optional[str] = Query(None, alias="type"),
    search: Optional[str] = None,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return WorkflowManager(db).list_workflows(
        page=page, limit=limit, status=status_filter, workflow_type=workflow_type, search=search
    )


@router.post(
    "/workflows",
    response_model=WorkflowOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a workflow",
    responses={400: {"description": "Missing name/type or unknown action/operator"}}
)
async def create_workflow(
    payload: WorkflowCreate,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    registry: ActionRegistry = Depends(get_action_registry),
    db: Session = Depends(get_db)
) -> WorkflowOut:
    workflow = WorkflowManager(db, registry).create_workflow(payload, created_by=admin.user_id)
    record_audit(db, request, admin, "workflow.create", "workflow", workflow.id, {"name": workflow.name})
    return WorkflowOut.model_validate(workflow)


@router.put("/workflows/{workflow_id}", response_model=WorkflowOut, summary="Update a workflow")
async def update_workflow(
    workflow_id: str,
    payload: WorkflowUpdate,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    registry: ActionRegistry = Depends(get_action_registry),
    db: Session = Depends(get_db)
) -> WorkflowOut:
    workflow = WorkflowManager(db, registry).update_workflow(workflow_id, payload)
    record_audit(
        db, request, admin, "workflow.update", "workflow", workflow_id,
        {"version": workflow.version, "fields": sorted(payload.model_dump(exclude_unset=True))}
    )
    return WorkflowOut.model_validate(workflow)


@router.delete("/workflows/{workflow_id}", summary="Delete a workflow and its runs")
async def delete_workflow(
    workflow_id: str,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    WorkflowManager(db).delete_workflow(workflow_id)
    record_audit(db, request, admin, "workflow.delete", "workflow", workflow_id)
    return {"success": True, "message": "Workflow deleted"}


@router.post(
    "/workflows/{workflow_id}/execute",
    response_model=WorkflowRunOut,
    summary="Execute a workflow now",
    description="""
    Run a workflow synchronously.

    Conditions are evaluated against `metadata`; when all of them hold, the
    actions run in order. The run is recorded either way. A failing action
    marks the run failed, discards the partial changes and returns 500.
    """,
    responses={
        400: {"description": "Workflow is not active"},
        404: {"description": "Workflow not found"},
        500: {"description": "Workflow execution failed"},
    }
)
async def execute_workflow(
    workflow_id: str,
    request: Request,
    payload: Optional[ExecuteWorkflowRequest] = None,
    admin: AuthContext = Depends(require_admin),
    registry: ActionRegistry = Depends(get_action_registry),
    db: Session = Depends(get_db)
) -> WorkflowRunOut:
    payload = payload or ExecuteWorkflowRequest()
    run = WorkflowRunner(db, registry).execute(
        workflow_id,
        triggered_by=payload.triggered_by,
        metadata=payload.metadata
    )
    record_audit(
        db, request, admin, "workflow.execute", "workflow", workflow_id,
        {"run_id": run.id, "status": run.status}
    )
    return WorkflowRunOut.model_validate(run)


@router.get("/workflows/{workflow_id}/runs", summary="Run history of a workflow")
async def list_runs(
    workflow_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return WorkflowManager(db).list_runs(workflow_id, page=page, limit=limit)


# Templates

@router.get("/workflow-templates", summary="List workflow templates")
async def list_templates(
    category: Optional[str] = None,
    public_only: bool = False,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    templates = WorkflowManager(db).list_templates(category=category, public_only=public_only)
    return {"templates": [TemplateOut.model_validate(template).model_dump(mode="json") for template in templates]}


@router.post(
    "/workflow-templates",
    response_model=TemplateOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a workflow template"
)
async def create_template(
    payload: TemplateCreate,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> TemplateOut:
    template = WorkflowManager(db).create_template(payload, created_by=admin.user_id)
    record_audit(db, request, admin, "workflow_template.create", "workflow_template", template.id)
    return TemplateOut.model_validate(template)


@router.post(
    "/workflow-templates/{template_id}/instantiate",
    response_model=WorkflowOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a workflow from a template"
)
async def instantiate_template(
    template_id: str,
    request: Request,
    payload: Optional[InstantiateTemplateRequest] = None,
    admin: AuthContext = Depends(require_admin),
    registry: ActionRegistry = Depends(get_action_registry),
    db: Session = Depends(get_db)
) -> WorkflowOut:
    name = payload.name if payload else None
    workflow = WorkflowManager(db, registry).instantiate_template(template_id, name=name, created_by=admin.user_id)
    record_audit(
        db, request, admin, "workflow_template.instantiate", "workflow", workflow.id,
        {"template_id": template_id}
    )
    return WorkflowOut.model_validate(workflow)
