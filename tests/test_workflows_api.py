"""Tests for workflow definitions, execution and templates."""

import pytest

from conftest import ADMIN_HEADERS, USER_HEADERS
from vaultx.actions.builtin import register_builtin_actions
from vaultx.api.dependencies import get_action_registry
from vaultx.core.action_registry import ActionRegistry
from vaultx.core.exceptions import ConfigurationError, WorkflowExecutionError
from vaultx.core.workflow_runner import evaluate_condition
from vaultx.storage.models import WorkflowRunModel


def create_workflow(client, **overrides):
    body = {
        "name": "Publisher",
        "type": "maintenance",
        "actions": [{"type": "publish_valid_tools", "params": {}}],
    }
    body.update(overrides)
    return client.post("/api/admin/workflows", json=body, headers=ADMIN_HEADERS)


def execute(client, workflow_id, **body):
    return client.post(f"/api/admin/workflows/{workflow_id}/execute", json=body, headers=ADMIN_HEADERS)


class TestWorkflowDefinitions:
    """Test workflow create, update, list and delete."""

    def test_create(self, client):
        response = create_workflow(client, name="  Publisher  ")

        assert response.status_code == 201
        workflow = response.json()
        assert workflow["name"] == "Publisher"
        assert workflow["status"] == "draft"
        assert workflow["version"] == 1
        assert workflow["created_by"] == "admin-1"

    @pytest.mark.parametrize("overrides", [
        {"name": ""},
        {"type": None},
        {"actions": [{"type": "launch_rockets"}]},
        {"conditions": [{"field": "x", "operator": "like", "value": 1}]},
    ])
    def test_create_rejects_bad_definitions(self, client, overrides):
        assert create_workflow(client, **overrides).status_code == 400

    def test_requires_admin(self, client):
        assert client.get("/api/admin/workflows", headers=USER_HEADERS).status_code == 403

    def test_update_bumps_version(self, client):
        workflow_id = create_workflow(client).json()["id"]

        response = client.put(
            f"/api/admin/workflows/{workflow_id}",
            json={"description": "Nightly", "status": "active"},
            headers=ADMIN_HEADERS
        )

        assert response.json()["version"] == 2
        assert response.json()["status"] == "active"
        assert client.put(
            f"/api/admin/workflows/{workflow_id}", json={"name": " "}, headers=ADMIN_HEADERS
        ).status_code == 400

    def test_list_and_delete(self, client):
        first = create_workflow(client, name="First").json()["id"]
        create_workflow(client, name="Second", type="reporting")
        execute(client, first)

        listed = client.get("/api/admin/workflows", headers=ADMIN_HEADERS).json()
        assert listed["pagination"]["total"] == 2
        counts = {workflow["name"]: workflow["run_count_total"] for workflow in listed["workflows"]}
        assert counts == {"First": 1, "Second": 0}

        by_type = client.get("/api/admin/workflows", params={"type": "reporting"}, headers=ADMIN_HEADERS).json()
        assert [workflow["name"] for workflow in by_type["workflows"]] == ["Second"]

        assert client.delete(f"/api/admin/workflows/{first}", headers=ADMIN_HEADERS).json()["success"] is True
        assert client.get(f"/api/admin/workflows/{first}/runs", headers=ADMIN_HEADERS).status_code == 404

    def test_delete_removes_run_history(self, client, test_db):
        doomed = create_workflow(client, name="Doomed").json()["id"]
        kept = create_workflow(client, name="Kept").json()["id"]
        execute(client, doomed)
        execute(client, doomed)
        execute(client, kept)

        client.delete(f"/api/admin/workflows/{doomed}", headers=ADMIN_HEADERS)

        session = test_db()
        try:
            remaining = session.query(WorkflowRunModel.workflow_id).all()
        finally:
            session.close()
        assert [row.workflow_id for row in remaining] == [kept]


class TestWorkflowExecution:
    """Test running workflows."""

    def test_execute_publishes_valid_drafts(self, client, make_tool):
        ready = make_tool(name="Ready", status="draft")
        incomplete = make_tool(name="Incomplete", status="draft", description="")
        workflow_id = create_workflow(client).json()["id"]

        response = execute(client, workflow_id, metadata={"source": "test"})

        assert response.status_code == 200
        run = response.json()
        assert run["status"] == "completed"
        assert run["triggered_by"] == "manual"
        assert run["metadata"] == {"source": "test"}
        assert run["result"]["actions_executed"] == 1
        assert run["result"]["action_results"][0]["output"]["published"] == [ready]
        assert client.get(f"/api/tools/{ready}").status_code == 200
        assert client.get(f"/api/tools/{incomplete}").status_code == 404

        runs = client.get(f"/api/admin/workflows/{workflow_id}/runs", headers=ADMIN_HEADERS).json()
        assert runs["pagination"]["total"] == 1

    def test_unmet_conditions_skip_actions(self, client, make_tool):
        draft = make_tool(status="draft")
        workflow_id = create_workflow(
            client, conditions=[{"field": "source", "operator": "eq", "value": "cron"}]
        ).json()["id"]

        run = execute(client, workflow_id, metadata={"source": "manual"}, triggered_by="admin").json()

        assert run["status"] == "completed"
        assert run["triggered_by"] == "admin"
        assert run["result"]["skipped"] is True
        assert run["result"]["conditions_met"] == 0
        assert run["result"]["actions_executed"] == 0
        assert client.get(f"/api/tools/{draft}").status_code == 404

    def test_failing_action_rolls_back(self, app, client, make_tool):
        draft = make_tool(status="draft")

        def explode(session, params):
            raise RuntimeError("boom")

        registry = ActionRegistry()
        register_builtin_actions(registry)
        registry.register_action("explode", explode)
        app.dependency_overrides[get_action_registry] = lambda: registry

        workflow_id = create_workflow(client, actions=[
            {"type": "publish_valid_tools", "params": {}},
            {"type": "explode", "params": {}},
        ]).json()["id"]

        response = execute(client, workflow_id)

        assert response.status_code == 500
        assert response.json()["error"] == "WorkflowExecutionError"
        assert response.json()["context"]["action_type"] == "explode"
        assert client.get(f"/api/tools/{draft}").status_code == 404

        runs = client.get(f"/api/admin/workflows/{workflow_id}/runs", headers=ADMIN_HEADERS).json()["runs"]
        assert runs[0]["status"] == "failed"
        assert "boom" in runs[0]["error_message"]

        workflows = client.get("/api/admin/workflows", headers=ADMIN_HEADERS).json()["workflows"]
        assert workflows[0]["run_count"] == 1
        assert workflows[0]["error_count"] == 1
        assert workflows[0]["success_count"] == 0

    def test_inactive_workflow(self, client):
        workflow_id = create_workflow(client, is_active=False).json()["id"]
        assert execute(client, workflow_id).status_code == 400

    def test_unknown_workflow(self, client):
        assert execute(client, "missing").status_code == 404


class TestConditions:
    """Test condition evaluation."""

    @pytest.mark.parametrize("operator,value,expected", [
        ("eq", 5, True),
        ("ne", 5, False),
        ("gt", 4, True),
        ("gte", 5, True),
        ("lt", 5, False),
        ("lte", 5, True),
        ("in", [1, 5], True),
        ("gt", "a", False),
    ])
    def test_operators(self, operator, value, expected):
        condition = {"field": "stats.count", "operator": operator, "value": value}
        assert evaluate_condition(condition, {"stats": {"count": 5}}) is expected

    def test_contains_and_missing_fields(self):
        assert evaluate_condition({"field": "tags", "operator": "contains", "value": "ai"}, {"tags": ["ai"]})
        assert evaluate_condition({"field": "nope", "operator": "ne", "value": 1}, {})
        assert not evaluate_condition({"field": "nope", "operator": "eq", "value": None}, {})


class TestActionRegistry:
    """Test action registration."""

    def test_register_and_lookup(self):
        registry = ActionRegistry()
        register_builtin_actions(registry)

        assert set(registry.list_actions()) == {
            "recalculate_tool_stats", "flag_mock_data", "publish_valid_tools", "snapshot_trending"
        }
        with pytest.raises(WorkflowExecutionError):
            registry.get_action("missing")

    def test_rejects_bad_registrations(self):
        registry = ActionRegistry()
        registry.register_action("noop", lambda session, params: {})

        with pytest.raises(ConfigurationError):
            registry.register_action("noop", lambda session, params: {})
        with pytest.raises(ConfigurationError):
            registry.register_action("one_arg", lambda session: {})
        with pytest.raises(ConfigurationError):
            registry.register_action(" ", lambda session, params: {})

        assert registry.unregister_action("noop") is True
        assert registry.unregister_action("noop") is False


class TestTemplates:
    """Test workflow templates."""

    def test_create_list_and_instantiate(self, client):
        created = client.post("/api/admin/workflow-templates", headers=ADMIN_HEADERS, json={
            "name": "Snapshot",
            "category": "analytics",
            "config": {"type": "reporting", "actions": [{"type": "snapshot_trending", "params": {}}], "keep": 1},
            "is_public": True,
        })
        assert created.status_code == 201
        template_id = created.json()["id"]

        response = client.post(
            f"/api/admin/workflow-templates/{template_id}/instantiate",
            json={"name": "Weekly snapshot"},
            headers=ADMIN_HEADERS
        )

        assert response.status_code == 201
        workflow = response.json()
        assert workflow["name"] == "Weekly snapshot"
        assert workflow["type"] == "reporting"
        assert workflow["actions"] == [{"type": "snapshot_trending", "params": {}}]
        assert workflow["config"] == {"keep": 1}

        templates = client.get("/api/admin/workflow-templates", headers=ADMIN_HEADERS).json()["templates"]
        assert templates[0]["usage_count"] == 1

    def test_unknown_template(self, client):
        response = client.post("/api/admin/workflow-templates/missing/instantiate", headers=ADMIN_HEADERS)
        assert response.status_code == 404
