"""Synchronous execution of admin workflows."""

import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..models.schemas import RunStatus
from ..storage.models import WorkflowModel, WorkflowRunModel
from .action_registry import ActionRegistry
from .exceptions import (
    ValidationError, NotFoundError, StorageError, WorkflowExecutionError
)
from .logging import get_logger

logger = get_logger(__name__)

CONDITION_OPERATORS = ("eq", "ne", "gt", "gte", "lt", "lte", "in", "contains")

_MISSING = object()


def lookup_field(data: Dict[str, Any], path: str) -> Any:
    """Resolve a dotted path in nested dicts; missing keys yield a sentinel."""
    current: Any = data
    for part in (path or "").split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def evaluate_condition(condition: Dict[str, Any], metadata: Dict[str, Any]) -> bool:
    """
    Evaluate one condition against run metadata.

    A missing field satisfies only "ne". Ordering comparisons between
    incompatible types are false.

    Raises:
        ValidationError: If the operator is unknown
    """
    operator = condition.get("operator", "eq")
    if operator not in CONDITION_OPERATORS:
        raise ValidationError(
            f"Unknown condition operator '{operator}'",
            field="conditions",
            validation_errors=[f"operator must be one of {', '.join(CONDITION_OPERATORS)}"]
        )

    expected = condition.get("value")
    actual = lookup_field(metadata, condition.get("field", ""))

    if actual is _MISSING:
        return operator == "ne"

    try:
        if operator == "eq":
            return actual == expected
        if operator == "ne":
            return actual != expected
        if operator == "gt":
            return actual > expected
        if operator == "gte":
            return actual >= expected
        if operator == "lt":
            return actual < expected
        if operator == "lte":
            return actual <= expected
        if operator == "in":
            return isinstance(expected, (list, tuple, str)) and actual in expected
        # contains
        return isinstance(actual, (list, tuple, str, dict)) and expected in actual
    except TypeError:
        return False


def validate_conditions(conditions: List[Dict[str, Any]]) -> None:
    """Reject conditions without a field or with an unknown operator."""
    for condition in conditions:
        if not condition.get("field"):
            raise ValidationError("Each condition needs a field", field="conditions")
        if condition.get("operator", "eq") not in CONDITION_OPERATORS:
            raise ValidationError(
                f"Unknown condition operator '{condition.get('operator')}'",
                field="conditions",
                validation_errors=[f"operator must be one of {', '.join(CONDITION_OPERATORS)}"]
            )


class WorkflowRunner:
    """Executes a workflow's actions in order and records the run."""

    def __init__(self, db_session: Session, action_registry: ActionRegistry):
        self._db = db_session
        self._registry = action_registry

    def _load_workflow(self, workflow_id: str) -> WorkflowModel:
        try:
            workflow = self._db.query(WorkflowModel).filter(WorkflowModel.id == workflow_id).first()
        except SQLAlchemyError as e:
            logger.error(f"Database error while loading workflow: {str(e)}")
            raise StorageError("Failed to load workflow", operation="select", table="workflows")
        if not workflow:
            raise NotFoundError("Workflow not found", resource_type="workflow", resource_id=workflow_id)
        return workflow

    def _start_run(self, workflow: WorkflowModel, triggered_by: str, metadata: Dict[str, Any]) -> WorkflowRunModel:
        try:
            run = WorkflowRunModel(
                workflow_id=workflow.id,
                status=RunStatus.RUNNING.value,
                started_at=datetime.utcnow(),
                triggered_by=triggered_by,
                run_metadata=metadata
            )
            self._db.add(run)
            self._db.commit()
            self._db.refresh(run)
            return run
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.error(f"Failed to create workflow run: {str(e)}")
            raise StorageError("Failed to start workflow execution", operation="insert", table="workflow_runs")

    def _run_steps(self, workflow: WorkflowModel, metadata: Dict[str, Any]) -> Dict[str, Any]:
        conditions = workflow.conditions or []
        actions = workflow.actions or []
        config = workflow.config or {}

        conditions_met = sum(1 for condition in conditions if evaluate_condition(condition, metadata))
        skipped = conditions_met < len(conditions)

        action_results = []
        if not skipped:
            for index, action in enumerate(actions):
                action_type = action.get("type")
                function = self._registry.get_action(action_type)
                logger.info(f"Workflow {workflow.id}: running step {index + 1}/{len(actions)} '{action_type}'")
                try:
                    output = function(self._db, action.get("params") or {})
                except WorkflowExecutionError:
                    raise
                except Exception as e:
                    raise WorkflowExecutionError(
                        f"Action '{action_type}' failed: {str(e)}",
                        workflow_id=workflow.id,
                        action_type=action_type
                    ) from e
                action_results.append({"type": action_type, "output": output})

        return {
            "executed_at": datetime.utcnow().isoformat(),
            "steps_completed": len(config.get("steps") or []),
            "actions_executed": len(action_results),
            "conditions_met": conditions_met,
            "action_results": action_results,
            "skipped": skipped,
            "metadata": metadata,
            "workflow_config": config,
        }

    def execute(
        self,
        workflow_id: str,
        triggered_by: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> WorkflowRunModel:
        """
        Run a workflow now.

        Args:
            workflow_id: Workflow to execute
            triggered_by: Who or what started the run (defaults to "manual")
            metadata: Input the conditions are evaluated against

        Returns:
            The completed run

        Raises:
            NotFoundError: If the workflow does not exist
            ValidationError: If the workflow is not active
            WorkflowExecutionError: If a step fails; the failed run is recorded first
        """
        metadata = metadata or {}
        workflow = self._load_workflow(workflow_id)
        if not workflow.is_active:
            raise ValidationError("Workflow is not active", field="is_active")

        run = self._start_run(workflow, triggered_by or "manual", metadata)
        started = time.monotonic()
        logger.info(f"Executing workflow '{workflow.name}' ({workflow_id}), run {run.id}")

        try:
            result = self._run_steps(workflow, metadata)
            error: Optional[Exception] = None
        except Exception as e:
            # Discard partial effects of earlier steps
            self._db.rollback()
            result = None
            error = e

        now = datetime.utcnow()
        run.completed_at = now
        run.duration_ms = int((time.monotonic() - started) * 1000)
        workflow.last_run = now
        workflow.run_count = (workflow.run_count or 0) + 1

        if error is None:
            run.status = RunStatus.COMPLETED.value
            run.result = result
            workflow.success_count = (workflow.success_count or 0) + 1
        else:
            run.status = RunStatus.FAILED.value
            run.error_message = getattr(error, "message", None) or str(error) or "Unknown error"
            workflow.error_count = (workflow.error_count or 0) + 1

        try:
            self._db.commit()
            self._db.refresh(run)
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.error(f"Failed to record workflow run {run.id}: {str(e)}")
            raise StorageError("Failed to record workflow run", operation="update", table="workflow_runs")

        if error is not None:
            logger.error(f"Workflow run {run.id} failed: {run.error_message}")
            action_type = getattr(error, "context", {}).get("action_type") if isinstance(error, WorkflowExecutionError) else None
            raise WorkflowExecutionError(
                "Workflow execution failed",
                workflow_id=workflow_id,
                run_id=run.id,
                action_type=action_type,
                details={"error": run.error_message}
            ) from error

        logger.info(f"Workflow run {run.id} completed in {run.duration_ms}ms")
        return run
