"""Tests for the admin endpoints."""

import pytest

from conftest import ADMIN_HEADERS, OTHER_HEADERS, USER_HEADERS
from vaultx.api.dependencies import get_enricher, require_auth_provider
from vaultx.core.enrichment import WebsiteEnricher
from vaultx.core.exceptions import ConfigurationError
from vaultx.storage.models import FavoriteModel, ReviewModel, ReviewReportModel, ReviewVoteModel

CONTENT = "Helpful for drafting, though it sometimes needs a second pass for accuracy."


class FakeResponse:
    def __init__(self, text, status_code=200):
        self.text = text
        self.status_code = status_code
        self.ok = status_code < 400


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append(url)
        return self.response


class TestAdminAccess:
    """Test role enforcement on admin routes."""

    def test_requires_sign_in(self, client):
        assert client.get("/api/admin/tools").status_code == 401

    def test_requires_admin_role(self, client):
        response = client.get("/api/admin/tools", headers=USER_HEADERS)
        assert response.status_code == 403
        assert response.json()["error"] == "AuthorizationError"

    def test_admin_sees_drafts(self, client, make_tool):
        make_tool(name="Live")
        make_tool(name="Draft", status="draft")

        data = client.get("/api/admin/tools", headers=ADMIN_HEADERS).json()
        assert {tool["name"] for tool in data["tools"]} == {"Live", "Draft"}

        drafts = client.get("/api/admin/tools", params={"status": "draft"}, headers=ADMIN_HEADERS).json()
        assert [tool["name"] for tool in drafts["tools"]] == ["Draft"]


class TestToolCuration:
    """Test tool create, update, publish and delete."""

    def test_create_returns_warnings(self, client):
        response = client.post("/api/admin/tools", json={"name": "  NewTool "}, headers=ADMIN_HEADERS)

        assert response.status_code == 201
        body = response.json()
        assert body["tool"]["name"] == "NewTool"
        assert body["tool"]["slug"] == "newtool"
        assert body["tool"]["status"] == "draft"
        assert "Tool description is required" in body["warnings"]

    def test_duplicate_name_conflicts(self, client, make_tool):
        make_tool(name="Taken")
        response = client.post("/api/admin/tools", json={"name": "taken"}, headers=ADMIN_HEADERS)
        assert response.status_code == 409

    def test_update(self, client, make_tool):
        tool_id = make_tool(name="Old")

        response = client.put(
            f"/api/admin/tools/{tool_id}", json={"name": "New", "rating": 4.9}, headers=ADMIN_HEADERS
        )

        assert response.status_code == 200
        body = response.json()
        assert body["tool"]["name"] == "New"
        assert any("unusually high" in warning for warning in body["warnings"])

    def test_update_blank_name_rejected(self, client, make_tool):
        tool_id = make_tool()
        response = client.put(f"/api/admin/tools/{tool_id}", json={"name": " "}, headers=ADMIN_HEADERS)
        assert response.status_code == 400

    def test_publish_requires_complete_listing(self, client):
        tool_id = client.post(
            "/api/admin/tools", json={"name": "Half"}, headers=ADMIN_HEADERS
        ).json()["tool"]["id"]

        response = client.post(f"/api/admin/tools/{tool_id}/publish", headers=ADMIN_HEADERS)
        assert response.status_code == 400
        assert "website" in response.json()["message"]

        client.put(f"/api/admin/tools/{tool_id}", headers=ADMIN_HEADERS, json={
            "website": "https://half.example", "category": "Language", "description": "Half a tool"
        })
        published = client.post(f"/api/admin/tools/{tool_id}/publish", headers=ADMIN_HEADERS)
        assert published.json()["status"] == "published"
        assert client.get(f"/api/tools/{tool_id}").status_code == 200

    def test_publish_rejects_non_http_website(self, client, make_tool):
        tool_id = make_tool(status="draft", website="ftp://files.example")
        assert client.post(f"/api/admin/tools/{tool_id}/publish", headers=ADMIN_HEADERS).status_code == 400

    def test_delete(self, client, make_tool):
        tool_id = make_tool()
        assert client.delete(f"/api/admin/tools/{tool_id}", headers=ADMIN_HEADERS).json()["success"] is True
        assert client.get(f"/api/tools/{tool_id}").status_code == 404
        assert client.delete(f"/api/admin/tools/{tool_id}", headers=ADMIN_HEADERS).status_code == 404

    def test_delete_cascades_to_review_data(self, client, make_tool, test_db):
        doomed = make_tool(name="Doomed")
        kept = make_tool(name="Kept")
        review_id = client.post("/api/reviews", headers=USER_HEADERS, json={
            "tool_id": doomed, "rating": 4, "title": "Fine", "content": CONTENT
        }).json()["id"]
        assert client.post(
            f"/api/reviews/{review_id}/vote", json={"vote_type": "helpful"}, headers=OTHER_HEADERS
        ).status_code < 300
        assert client.post(
            f"/api/reviews/{review_id}/report", json={"reason": "Spam"}, headers=OTHER_HEADERS
        ).status_code < 300
        client.post("/api/favorites", json={"tool_id": doomed, "action": "add"}, headers=USER_HEADERS)
        client.post("/api/favorites", json={"tool_id": kept, "action": "add"}, headers=USER_HEADERS)

        assert client.delete(f"/api/admin/tools/{doomed}", headers=ADMIN_HEADERS).status_code == 200

        session = test_db()
        try:
            assert session.query(ReviewModel).count() == 0
            assert session.query(ReviewVoteModel).count() == 0
            assert session.query(ReviewReportModel).count() == 0
            assert [row.tool_id for row in session.query(FavoriteModel).all()] == [kept]
        finally:
            session.close()

    def test_validation_and_quality_report(self, client, make_tool):
        make_tool(name="Clean")
        suspicious = make_tool(name="Mocky", rating=4.9, review_count=150000, weekly_users=50000, growth="+999%")

        single = client.get(f"/api/admin/tools/{suspicious}/validation", headers=ADMIN_HEADERS).json()
        assert single["is_valid"] is False

        report = client.get("/api/admin/data-quality", headers=ADMIN_HEADERS).json()
        assert report["total_tools"] == 2
        assert report["valid_tools"] == 1
        assert report["tools_with_errors"] == 1


class TestEnrich:
    """Test website enrichment through the admin API."""

    def test_enrich(self, app, client):
        html = (
            '<html><head><title>Acme AI</title>'
            '<meta name="description" content="Writes things">'
            '<link rel="icon" href="/favicon.ico"></head></html>'
        )
        session = FakeSession(FakeResponse(html))
        app.dependency_overrides[get_enricher] = lambda: WebsiteEnricher(session=session)

        response = client.post("/api/admin/tools/enrich", json={"url": "https://acme.ai"}, headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert response.json() == {
            "name": "Acme AI",
            "description": "Writes things",
            "og_image_url": "",
            "favicon_url": "https://acme.ai/favicon.ico",
            "website": "https://acme.ai",
        }
        assert session.calls == ["https://acme.ai"]

    @pytest.mark.parametrize("url,status_code", [("not a url", 400), ("https://down.example", 502)])
    def test_enrich_errors(self, app, client, url, status_code):
        session = FakeSession(FakeResponse("", status_code=503))
        app.dependency_overrides[get_enricher] = lambda: WebsiteEnricher(session=session)

        response = client.post("/api/admin/tools/enrich", json={"url": url}, headers=ADMIN_HEADERS)
        assert response.status_code == status_code


class TestCategories:
    """Test category administration."""

    def test_create_update_delete(self, client, make_tool):
        tool_id = make_tool(category="Writing")

        created = client.post("/api/admin/categories", json={"name": "Writing", "icon": "W"}, headers=ADMIN_HEADERS)
        assert created.status_code == 201
        category_id = created.json()["id"]
        assert created.json()["slug"] == "writing"

        duplicate = client.post("/api/admin/categories", json={"name": "Writing"}, headers=ADMIN_HEADERS)
        assert duplicate.status_code == 409

        renamed = client.put(
            f"/api/admin/categories/{category_id}", json={"name": "Copywriting"}, headers=ADMIN_HEADERS
        )
        assert renamed.json()["name"] == "Copywriting"
        assert client.get(f"/api/tools/{tool_id}").json()["category"] == "Copywriting"

        assert client.delete(f"/api/admin/categories/{category_id}", headers=ADMIN_HEADERS).status_code == 200
        assert client.delete(f"/api/admin/categories/{category_id}", headers=ADMIN_HEADERS).status_code == 404

    @pytest.mark.parametrize("name", [None, "   "])
    def test_rename_to_empty_is_rejected(self, client, name):
        category_id = client.post(
            "/api/admin/categories", json={"name": "Video"}, headers=ADMIN_HEADERS
        ).json()["id"]

        response = client.put(f"/api/admin/categories/{category_id}", json={"name": name}, headers=ADMIN_HEADERS)

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"
        assert response.json()["context"]["field"] == "name"

    def test_blank_slug_keeps_existing(self, client):
        category_id = client.post(
            "/api/admin/categories", json={"name": "Audio Tools"}, headers=ADMIN_HEADERS
        ).json()["id"]

        response = client.put(
            f"/api/admin/categories/{category_id}", json={"slug": None, "icon": "A"}, headers=ADMIN_HEADERS
        )

        assert response.status_code == 200
        assert response.json()["slug"] == "audio-tools"
        assert response.json()["icon"] == "A"


class TestModeration:
    """Test report listing and resolution."""

    def test_resolve_and_hide_review(self, client, make_tool):
        tool_id = make_tool()
        review_id = client.post("/api/reviews", headers=USER_HEADERS, json={
            "tool_id": tool_id, "rating": 5, "title": "Nice", "content": CONTENT
        }).json()["id"]
        report_id = client.post(
            f"/api/reviews/{review_id}/report", json={"reason": "Spam"}, headers=OTHER_HEADERS
        ).json()["id"]

        pending = client.get("/api/admin/reports", params={"status": "pending"}, headers=ADMIN_HEADERS).json()
        assert pending["total"] == 1
        assert pending["reports"][0]["id"] == report_id

        response = client.put(
            f"/api/admin/reports/{report_id}",
            json={"status": "resolved", "admin_notes": "Removed", "hide_review": True},
            headers=ADMIN_HEADERS
        )

        assert response.status_code == 200
        assert response.json()["status"] == "resolved"
        assert response.json()["resolved_at"] is not None
        assert client.get(f"/api/tools/{tool_id}").json()["review_count"] == 0
        listed = client.get("/api/reviews", params={"tool_id": tool_id}).json()
        assert listed["total"] == 0

    def test_unknown_report(self, client):
        response = client.put("/api/admin/reports/missing", json={"status": "dismissed"}, headers=ADMIN_HEADERS)
        assert response.status_code == 404


class TestUserAdministration:
    """Test user listing, role changes and deletion."""

    def test_list_users_with_roles(self, client):
        users = client.get("/api/admin/users", headers=ADMIN_HEADERS).json()["users"]
        assert {user["id"] for user in users} == {"user-1", "user-2", "admin-1"}
        assert all(user["role"] == "user" for user in users)

    def test_set_role(self, client):
        response = client.put("/api/admin/users/user-2/role", json={"role": "admin"}, headers=ADMIN_HEADERS)
        assert response.json()["success"] is True

        session = client.get("/api/auth/session", headers=OTHER_HEADERS).json()
        assert session["role"] == "admin"

    def test_role_change_rules(self, client):
        assert client.put(
            "/api/admin/users/user-2/role", json={"role": "owner"}, headers=ADMIN_HEADERS
        ).status_code == 400
        assert client.put(
            "/api/admin/users/admin-1/role", json={"role": "user"}, headers=ADMIN_HEADERS
        ).status_code == 403

    def test_delete_user(self, client, auth_provider):
        assert client.delete("/api/admin/users/admin-1", headers=ADMIN_HEADERS).status_code == 403

        response = client.delete("/api/admin/users/user-2", headers=ADMIN_HEADERS)

        assert response.json()["success"] is True
        assert auth_provider.deleted == ["user-2"]

    def test_disable_and_enable_user(self, client, auth_provider):
        response = client.put("/api/admin/users/user-2/status", json={"disabled": True}, headers=ADMIN_HEADERS)

        assert response.json() == {"success": True, "disabled": True}
        users = {user["id"]: user for user in client.get("/api/admin/users", headers=ADMIN_HEADERS).json()["users"]}
        assert users["user-2"]["disabled"] is True
        assert users["user-1"]["disabled"] is False

        client.put("/api/admin/users/user-2/status", json={"disabled": False}, headers=ADMIN_HEADERS)

        assert auth_provider.status_changes == [("user-2", True), ("user-2", False)]
        logs = client.get(
            "/api/admin/audit-logs", params={"action": "user.status_update"}, headers=ADMIN_HEADERS
        ).json()["logs"]
        assert [entry["details"]["disabled"] for entry in logs] == [False, True]

    def test_status_change_rules(self, client, auth_provider):
        assert client.put(
            "/api/admin/users/admin-1/status", json={"disabled": True}, headers=ADMIN_HEADERS
        ).status_code == 403
        assert client.put(
            "/api/admin/users/admin-1/status", json={"disabled": True}, headers=USER_HEADERS
        ).status_code == 403
        assert client.put("/api/admin/users/user-2/status", json={}, headers=ADMIN_HEADERS).status_code == 422
        assert auth_provider.status_changes == []

    def test_user_admin_needs_provider(self):
        with pytest.raises(ConfigurationError) as exc_info:
            require_auth_provider(None)
        assert exc_info.value.status_code == 500


class TestAuditLog:
    """Test that admin mutations are audited."""

    def test_mutations_are_logged(self, client, make_tool):
        tool_id = client.post("/api/admin/tools", json={"name": "Logged"}, headers=ADMIN_HEADERS).json()["tool"]["id"]
        client.put(f"/api/admin/tools/{tool_id}", json={"description": "x"}, headers=ADMIN_HEADERS)

        data = client.get("/api/admin/audit-logs", headers=ADMIN_HEADERS).json()

        assert data["total"] == 2
        assert [entry["action"] for entry in data["logs"]] == ["tool.update", "tool.create"]
        update = data["logs"][0]
        assert update["user_email"] == "admin@vaultx.test"
        assert update["resource_id"] == tool_id
        assert update["details"] == {"fields": ["description"]}
        assert update["ip_address"] == "testclient"

        filtered = client.get(
            "/api/admin/audit-logs", params={"action": "tool.create"}, headers=ADMIN_HEADERS
        ).json()
        assert filtered["total"] == 1
