"""Tests for configuration loading, error responses, health endpoints and the CLI."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from vaultx.config import AppConfig, get_config, reset_config, validate_config, get_production_config
from vaultx.core.exceptions import (
    NotFoundError,
    RateLimitExceededError,
    ValidationError,
    create_error_response,
)
from vaultx.startup import create_argument_parser, load_configuration
from vaultx.storage.models import BlogPostModel


class TestAppConfig:
    """Test configuration validation and environment loading."""

    def test_defaults(self):
        config = AppConfig()
        assert config.is_sqlite
        assert not config.auth_configured
        assert config.trending_default_limit == 12

    def test_rejects_bad_values(self):
        with pytest.raises(PydanticValidationError):
            AppConfig(database_url="oracle://db")
        with pytest.raises(PydanticValidationError):
            AppConfig(port=70000)
        with pytest.raises(PydanticValidationError):
            AppConfig(auth_url="auth.example.com")

    def test_admin_emails_normalized(self):
        config = AppConfig(admin_emails=[" Admin@Example.com ", ""])
        assert config.admin_emails == ["admin@example.com"]

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("VAULTX_PORT", "9001")
        monkeypatch.setenv("VAULTX_AUTH_URL", "https://auth.example.com/")
        monkeypatch.setenv("VAULTX_AUTH_ANON_KEY", "anon")
        monkeypatch.setenv("VAULTX_ADMIN_EMAILS", "a@x.y,b@x.y")
        reset_config()
        try:
            config = get_config()
            assert config.port == 9001
            assert config.auth_url == "https://auth.example.com"
            assert config.auth_configured
            assert config.admin_emails == ["a@x.y", "b@x.y"]
        finally:
            reset_config()

    def test_validate_config_warnings(self):
        warnings = validate_config(get_production_config().model_copy(update={"cors_origins": ["*"]}))
        assert any("Auth provider is not configured" in w for w in warnings)
        assert any("CORS" in w for w in warnings)


class TestErrorResponses:
    """Test the uniform error body."""

    def test_error_body_shape(self):
        error = NotFoundError("Tool not found", resource_type="tool", resource_id="t1")
        body = create_error_response(error)
        assert body["error"] == "NotFoundError"
        assert body["message"] == "Tool not found"
        assert body["context"] == {"resource_type": "tool", "resource_id": "t1"}
        assert body["details"]["category"] == "not_found"

    def test_status_codes(self):
        assert ValidationError("bad").status_code == 400
        assert RateLimitExceededError(retry_after=5).details["retry_after"] == 5

    def test_not_found_over_http(self, client):
        response = client.get("/api/tools/missing")
        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"
        assert "X-Request-ID" in response.headers

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "trace-1"})
        assert response.headers["X-Request-ID"] == "trace-1"

    def test_domain_validation_is_400(self, client):
        response = client.get("/api/tools", params={"sort_by": "color"})
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    def test_storage_failure_hides_database_error(self, client, db_session):
        BlogPostModel.__table__.drop(db_session.get_bind())

        response = client.get("/api/blog")

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "StorageError"
        assert body["message"] == "Failed to list posts"
        assert body["context"] == {"operation": "list posts", "table": "blog_posts"}
        assert "no such table" not in response.text


class TestHealthEndpoints:
    """Test health endpoints."""

    def test_basic(self, client):
        assert client.get("/health").json()["status"] == "healthy"
        assert client.get("/health/live").json()["alive"] is True
        assert client.get("/").status_code == 200

    def test_detailed_lists_components(self, client):
        response = client.get("/health/detailed")
        checks = response.json()["checks"]
        assert {"database", "action_registry", "auth_provider"} <= set(checks)
        assert checks["action_registry"]["registered_actions"] >= 4

    def test_ready_runs_database_check(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["ready"] is True
        assert list(response.json()["checks"]) == ["database"]


class TestHealthChecker:
    """Test check outcomes outside the app."""

    def test_failing_and_slow_checks(self):
        import asyncio
        from vaultx.core.health import HealthChecker

        async def slow():
            await asyncio.sleep(1)

        def broken():
            raise RuntimeError("disk gone")

        checker = HealthChecker()
        checker.register_check("ok", lambda: {"message": "fine", "items": 3})
        checker.register_check("broken", broken)
        checker.register_check("slow", slow, timeout=0.01)

        report = asyncio.run(checker.run_all_checks())
        assert report["overall_status"] == "unhealthy"
        assert report["checks"]["ok"]["status"] == "healthy"
        assert report["checks"]["ok"]["items"] == 3
        assert report["checks"]["broken"]["status"] == "unhealthy"
        assert report["checks"]["broken"]["message"] == "disk gone"
        assert report["checks"]["slow"]["status"] == "timeout"

    def test_unknown_check(self):
        import asyncio
        from vaultx.core.health import HealthChecker

        assert asyncio.run(HealthChecker().run_check("nope"))["status"] == "error"


class TestCommandLine:
    """Test argument parsing and configuration overrides."""

    def test_parses_subcommands(self):
        args = create_argument_parser().parse_args(["--port", "8100", "db", "seed"])
        assert args.command == "db"
        assert args.db_command == "seed"
        assert args.port == 8100

    def test_overrides_are_validated(self):
        parser = create_argument_parser()
        config = load_configuration(parser.parse_args(["--env", "testing", "--port", "8100", "--debug"]))
        try:
            assert config.port == 8100
            assert config.debug
            assert config.database_url == "sqlite:///:memory:"
        finally:
            reset_config()
