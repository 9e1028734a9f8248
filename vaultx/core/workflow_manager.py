"""Workflow Manager for workflow definitions, templates and run history."""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..models.schemas import (
    WorkflowCreate, WorkflowUpdate, WorkflowStatus, WorkflowOut, WorkflowRunOut,
    TemplateCreate
)
from ..storage.models import WorkflowModel, WorkflowRunModel, WorkflowTemplateModel
from .action_registry import ActionRegistry
from .exceptions import ValidationError, NotFoundError, StorageError
from .logging import get_logger
from .workflow_runner import validate_conditions

logger = get_logger(__name__)


def _pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit) if limit else 0}


class WorkflowManager:
    """Manages workflow definitions and templates."""

    def __init__(self, db_session: Session, action_registry: Optional[ActionRegistry] = None):
        self._db = db_session
        self._registry = action_registry

    def _storage_error(self, operation: str, error: Exception, table: str = "workflows") -> StorageError:
        self._db.rollback()
        logger.error(f"Database error during {operation}: {str(error)}")
        return StorageError(f"Failed to {operation}", operation=operation, table=table)

    def _check_actions(self, actions: List[Dict[str, Any]]) -> None:
        if self._registry is None:
            return
        unknown = [action["type"] for action in actions if not self._registry.action_exists(action["type"])]
        if unknown:
            raise ValidationError(
                f"Unknown action types: {', '.join(unknown)}",
                field="actions",
                validation_errors=[f"available actions: {', '.join(self._registry.list_actions())}"]
            )

    def list_workflows(
        self,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        workflow_type: Optional[str] = None,
        search: Optional[str] = None
    ) -> Dict[str, Any]:
        """List workflows newest first, each with its total number of recorded runs."""
        try:
            query = self._db.query(WorkflowModel)
            if status:
                query = query.filter(WorkflowModel.status == status)
            if workflow_type:
                query = query.filter(WorkflowModel.type == workflow_type)
            if search:
                pattern = f"%{search.strip()}%"
                query = query.filter(or_(WorkflowModel.name.ilike(pattern), WorkflowModel.description.ilike(pattern)))

            total = query.count()
            workflows = (
                query.order_by(WorkflowModel.created_at.desc(), WorkflowModel.id)
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )

            ids = [workflow.id for workflow in workflows]
            run_counts = dict(
                self._db.query(WorkflowRunModel.workflow_id, func.count(WorkflowRunModel.id))
                .filter(WorkflowRunModel.workflow_id.in_(ids))
                .group_by(WorkflowRunModel.workflow_id)
                .all()
            ) if ids else {}
        except SQLAlchemyError as e:
            raise self._storage_error("list workflows", e)

        return {
            "workflows": [
                {**WorkflowOut.model_validate(workflow).model_dump(mode="json"),
                 "run_count_total": run_counts.get(workflow.id, 0)}
                for workflow in workflows
            ],
            "pagination": _pagination(page, limit, total),
        }

    def get_workflow(self, workflow_id: str) -> WorkflowModel:
        try:
            workflow = self._db.query(WorkflowModel).filter(WorkflowModel.id == workflow_id).first()
        except SQLAlchemyError as e:
            raise self._storage_error("retrieve workflow", e)
        if not workflow:
            raise NotFoundError("Workflow not found", resource_type="workflow", resource_id=workflow_id)
        return workflow

    def create_workflow(self, data: WorkflowCreate, created_by: Optional[str] = None) -> WorkflowModel:
        """
        Create a workflow in draft status.

        Raises:
            ValidationError: If name or type is missing, or steps reference unknown actions/operators
        """
        name = (data.name or "").strip()
        workflow_type = (data.type or "").strip()
        if not name or not workflow_type:
            raise ValidationError(
                "Name and type are required",
                validation_errors=[msg for msg, ok in (("name is required", name), ("type is required", workflow_type)) if not ok]
            )

        actions = [action.model_dump() for action in data.actions]
        conditions = [condition.model_dump() for condition in data.conditions]
        self._check_actions(actions)
        validate_conditions(conditions)

        try:
            workflow = WorkflowModel(
                name=name,
                description=data.description,
                type=workflow_type,
                status=WorkflowStatus.DRAFT.value,
                config=data.config,
                triggers=data.triggers,
                actions=actions,
                conditions=conditions,
                schedule=data.schedule,
                is_active=data.is_active,
                created_by=created_by
            )
            self._db.add(workflow)
            self._db.commit()
            self._db.refresh(workflow)
        except SQLAlchemyError as e:
            raise self._storage_error("create workflow", e)

        logger.info(f"Created workflow '{name}' ({workflow.id})")
        return workflow

    def update_workflow(self, workflow_id: str, data: WorkflowUpdate) -> WorkflowModel:
        """Update a workflow; every successful update bumps its version."""
        workflow = self.get_workflow(workflow_id)
        values = data.model_dump(exclude_unset=True)

        for key in ("name", "type"):
            if key in values and not (values[key] or "").strip():
                raise ValidationError(f"{key} cannot be empty", field=key)
        if values.get("actions") is not None:
            self._check_actions(values["actions"])
        if values.get("conditions") is not None:
            validate_conditions(values["conditions"])
        if values.get("status") is not None:
            values["status"] = WorkflowStatus(values["status"]).value

        try:
            for key, value in values.items():
                if value is None and key in ("status", "is_active", "config", "triggers", "actions", "conditions"):
                    continue
                setattr(workflow, key, value.strip() if key in ("name", "type") else value)
            workflow.version = (workflow.version or 1) + 1
            workflow.updated_at = datetime.utcnow()
            self._db.commit()
            self._db.refresh(workflow)
        except SQLAlchemyError as e:
            raise self._storage_error("update workflow", e)

        logger.info(f"Updated workflow {workflow_id} to version {workflow.version}")
        return workflow

    def delete_workflow(self, workflow_id: str) -> None:
        """Delete a workflow and its run history."""
        workflow = self.get_workflow(workflow_id)
        try:
            self._db.delete(workflow)
            self._db.commit()
        except SQLAlchemyError as e:
            raise self._storage_error("delete workflow", e)
        logger.info(f"Deleted workflow {workflow_id}")

    def list_runs(self, workflow_id: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        """Run history of a workflow, newest first."""
        self.get_workflow(workflow_id)
        try:
            query = self._db.query(WorkflowRunModel).filter(WorkflowRunModel.workflow_id == workflow_id)
            total = query.count()
            runs = (
                query.order_by(WorkflowRunModel.started_at.desc(), WorkflowRunModel.id)
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            raise self._storage_error("list workflow runs", e, table="workflow_runs")

        return {
            "runs": [WorkflowRunOut.model_validate(run).model_dump(mode="json") for run in runs],
            "pagination": _pagination(page, limit, total),
        }

    # Templates

    def list_templates(self, category: Optional[str] = None, public_only: bool = False) -> List[WorkflowTemplateModel]:
        try:
            query = self._db.query(WorkflowTemplateModel)
            if category:
                query = query.filter(WorkflowTemplateModel.category == category)
            if public_only:
                query = query.filter(WorkflowTemplateModel.is_public.is_(True))
            return query.order_by(WorkflowTemplateModel.usage_count.desc(), WorkflowTemplateModel.name).all()
        except SQLAlchemyError as e:
            raise self._storage_error("list templates", e, table="workflow_templates")

    def create_template(self, data: TemplateCreate, created_by: Optional[str] = None) -> WorkflowTemplateModel:
        name = data.name.strip()
        if not name:
            raise ValidationError("Template name cannot be empty", field="name")
        try:
            template = WorkflowTemplateModel(
                name=name,
                description=data.description,
                category=data.category,
                config=data.config,
                is_public=data.is_public,
                tags=data.tags,
                created_by=created_by
            )
            self._db.add(template)
            self._db.commit()
            self._db.refresh(template)
        except SQLAlchemyError as e:
            raise self._storage_error("create template", e, table="workflow_templates")

        logger.info(f"Created workflow template '{name}' ({template.id})")
        return template

    def instantiate_template(
        self,
        template_id: str,
        name: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> WorkflowModel:
        """
        Create a workflow from a template's config and count the use.

        The template config may carry type, description, triggers, actions,
        conditions and schedule; anything else stays in the workflow config.
        """
        try:
            template = self._db.query(WorkflowTemplateModel).filter(WorkflowTemplateModel.id == template_id).first()
        except SQLAlchemyError as e:
            raise self._storage_error("retrieve template", e, table="workflow_templates")
        if not template:
            raise NotFoundError("Template not found", resource_type="workflow_template", resource_id=template_id)

        config = dict(template.config or {})
        definition = WorkflowCreate(
            name=(name or "").strip() or template.name,
            description=config.pop("description", template.description),
            type=config.pop("type", None) or template.category or "custom",
            triggers=config.pop("triggers", []),
            actions=config.pop("actions", []),
            conditions=config.pop("conditions", []),
            schedule=config.pop("schedule", None),
            config=config
        )

        workflow = self.create_workflow(definition, created_by=created_by)
        try:
            template.usage_count = (template.usage_count or 0) + 1
            self._db.commit()
        except SQLAlchemyError as e:
            raise self._storage_error("update template usage", e, table="workflow_templates")

        logger.info(f"Instantiated template {template_id} as workflow {workflow.id}")
        return workflow
