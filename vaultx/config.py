"""Settings for the VaultX service, read from VAULTX_* environment variables."""

import os
from enum import Enum
from typing import Any, Dict, List, Optional, get_args, get_origin
from pydantic import BaseModel, Field, field_validator


ENV_PREFIX = "VAULTX_"

SUPPORTED_DATABASES = ("sqlite", "postgresql", "mysql")

_TRUTHY = ("1", "true", "yes", "on")


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DatabaseType(str, Enum):
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"


class AppConfig(BaseModel):
    """
    Service settings.

    Every field can be set through an environment variable named after it,
    upper-cased and prefixed with ``VAULTX_`` (``VAULTX_DATABASE_URL``,
    ``VAULTX_ADMIN_EMAILS``...). List fields take comma-separated values.
    """

    app_name: str = Field(default="VaultX AI Tools", description="Name shown in the API docs and health output")
    app_version: str = "1.0.0"
    debug: bool = False

    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = Field(default=False, description="Restart uvicorn when sources change")

    database_url: str = Field(default="sqlite:///./vaultx.db", description="SQLAlchemy URL of the directory database")
    database_echo: bool = False
    database_pool_size: int = 5
    database_max_overflow: int = 10

    auth_url: str = Field(default="", description="Base URL of the hosted auth service")
    auth_anon_key: str = Field(default="", description="Public key sent with session lookups")
    auth_service_role_key: str = Field(default="", description="Privileged key for listing and deleting users")
    admin_emails: List[str] = Field(
        default_factory=list,
        description="Accounts treated as admins when they have no stored role"
    )
    outbound_timeout: float = Field(default=10.0, description="Seconds to wait on the auth service and tool websites")

    log_level: LogLevel = LogLevel.INFO
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Optional[str] = None
    log_structured: bool = Field(default=False, description="Write one JSON object per log line")
    log_max_size: int = 10 * 1024 * 1024
    log_backup_count: int = 5

    slow_request_threshold: float = Field(default=5.0, description="Requests slower than this many seconds are logged")
    enable_performance_monitoring: bool = True

    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    cors_methods: List[str] = Field(default_factory=lambda: ["GET", "POST", "PUT", "DELETE"])

    trending_default_limit: int = Field(default=12, description="Trending tools returned when no limit is given")

    @field_validator('database_url')
    @classmethod
    def check_database_url(cls, url):
        if not url:
            raise ValueError("Database URL cannot be empty")
        backend = url.split("://")[0].lower().split("+")[0]
        if backend not in SUPPORTED_DATABASES:
            raise ValueError(f"Unsupported database '{backend}', expected one of {', '.join(SUPPORTED_DATABASES)}")
        return url

    @field_validator('port')
    @classmethod
    def check_port(cls, port):
        if not 1 <= port <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return port

    @field_validator('auth_url')
    @classmethod
    def check_auth_url(cls, url):
        if url and not url.startswith(("http://", "https://")):
            raise ValueError("Auth URL must start with http:// or https://")
        return url.rstrip("/")

    @field_validator('admin_emails')
    @classmethod
    def normalize_admin_emails(cls, emails):
        return [email.strip().lower() for email in emails if email and email.strip()]

    @field_validator('trending_default_limit')
    @classmethod
    def check_trending_limit(cls, limit):
        if limit < 1:
            raise ValueError("Trending limit must be at least 1")
        return limit

    @property
    def database_type(self) -> DatabaseType:
        return DatabaseType(self.database_url.split("://")[0].lower().split("+")[0])

    @property
    def is_sqlite(self) -> bool:
        return self.database_type == DatabaseType.SQLITE

    @property
    def is_production(self) -> bool:
        return not self.debug and not self.reload

    @property
    def auth_configured(self) -> bool:
        """Sessions can only be resolved with both the auth URL and the anon key."""
        return bool(self.auth_url and self.auth_anon_key)

    def get_database_connect_args(self) -> Dict[str, Any]:
        # Request sessions may be used from the threadpool
        return {"check_same_thread": False} if self.is_sqlite else {}

    def get_uvicorn_config(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "reload": self.reload,
            "log_level": self.log_level.value.lower(),
            "access_log": self.debug
        }

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Build settings from VAULTX_* variables; unset variables keep their defaults."""
        values = {}
        for name, field in cls.model_fields.items():
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = _parse_env_value(raw, field.annotation)
        return cls(**values)


def _parse_env_value(raw: str, annotation: Any) -> Any:
    """Convert an environment string according to the field's annotation."""
    if get_origin(annotation) is not None and type(None) in get_args(annotation):
        # Optional[X]: an empty variable means None
        if not raw.strip():
            return None
        annotation = next(arg for arg in get_args(annotation) if arg is not type(None))

    if annotation is bool:
        return raw.strip().lower() in _TRUTHY
    if get_origin(annotation) in (list, List):
        return [item.strip() for item in raw.split(",") if item.strip()]
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return annotation(raw.strip().upper())
    return raw


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Active settings, read from the environment on first use."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    global _config
    _config = config


def load_config(config_file: Optional[str] = None) -> AppConfig:
    """Load a .env file (the given one, else ./.env) into the environment, then read settings."""
    global _config
    from dotenv import load_dotenv

    env_file = config_file if config_file and os.path.exists(config_file) else ".env"
    if os.path.exists(env_file):
        load_dotenv(env_file)

    _config = AppConfig.from_env()
    return _config


def reset_config():
    global _config
    _config = None


def _ensure_parent_dir(path: str, purpose: str, errors: List[str]) -> None:
    directory = os.path.dirname(path)
    if directory and not os.path.exists(directory):
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            errors.append(f"Cannot create {purpose} directory {directory}: {e}")


def validate_config(config: AppConfig) -> List[str]:
    """
    Check settings that pydantic cannot check on its own.

    Creates missing directories for the SQLite file and the log file.

    Returns:
        Non-fatal warnings

    Raises:
        ValueError: If a required directory cannot be created
    """
    errors: List[str] = []
    warnings: List[str] = []

    if config.is_sqlite and ":memory:" not in config.database_url:
        _ensure_parent_dir(config.database_url.replace("sqlite:///", ""), "database", errors)
    if config.log_file:
        _ensure_parent_dir(config.log_file, "log", errors)

    if not config.auth_configured:
        warnings.append("Auth provider is not configured; authenticated endpoints will reject every request")
    elif not config.auth_service_role_key:
        warnings.append("Auth service-role key missing; admin user management is unavailable")

    if config.is_production and "*" in config.cors_origins:
        warnings.append("CORS allows every origin in production mode")

    if errors:
        raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")
    return warnings


def get_development_config() -> AppConfig:
    return AppConfig(debug=True, reload=True, log_level=LogLevel.DEBUG, database_echo=True)


def get_production_config() -> AppConfig:
    # No CORS origins unless explicitly configured
    return AppConfig(log_structured=True, cors_origins=[])


def get_testing_config() -> AppConfig:
    return AppConfig(
        debug=True,
        database_url="sqlite:///:memory:",
        log_level=LogLevel.WARNING,
        admin_emails=["admin@vaultx.test"]
    )
