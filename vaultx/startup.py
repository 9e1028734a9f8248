"""Command line entry point: serve the API, manage the database, check health."""

import argparse
import asyncio
import sys
from typing import Callable, Dict

from .config import (
    AppConfig,
    LogLevel,
    load_config,
    get_development_config,
    get_production_config,
    get_testing_config,
    set_config,
    validate_config
)
from .core.logging import setup_logging, get_logger

logger = get_logger(__name__)

PRESETS: Dict[str, Callable[[], AppConfig]] = {
    "development": get_development_config,
    "production": get_production_config,
    "testing": get_testing_config,
}

# CLI flag -> AppConfig field
_OVERRIDES = {
    "host": "host",
    "port": "port",
    "reload": "reload",
    "database_url": "database_url",
    "log_level": "log_level",
    "log_file": "log_file",
    "debug": "debug",
}


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vaultx",
        description="VaultX AI Tools API server and maintenance commands"
    )

    parser.add_argument("--env", choices=sorted(PRESETS), help="Use a built-in configuration preset instead of the environment")
    parser.add_argument("--config", help=".env file to read VAULTX_* settings from")
    parser.add_argument("--host", help="Interface to listen on")
    parser.add_argument("--port", type=int, help="Port to listen on")
    parser.add_argument("--reload", action="store_true", help="Restart the server when source files change")
    parser.add_argument("--database-url", help="SQLAlchemy database URL")
    parser.add_argument("--log-level", choices=[level.value for level in LogLevel])
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--debug", action="store_true")

    commands = parser.add_subparsers(dest="command")

    serve = commands.add_parser("run", help="Serve the API (default)")
    serve.add_argument("--workers", type=int, default=1)

    db = commands.add_parser("db", help="Database maintenance")
    db_commands = db.add_subparsers(dest="db_command")
    db_commands.add_parser("init", help="Create missing tables")
    db_commands.add_parser("migrate", help="Create indexes and tune the backend")
    db_commands.add_parser("reset", help="Drop every table and start over")
    db_commands.add_parser("seed", help="Insert starter categories, tools and workflow templates")

    commands.add_parser("health", help="Run the component checks once and report")
    commands.add_parser("validate-config", help="Check the effective configuration")

    return parser


def load_configuration(args: argparse.Namespace) -> AppConfig:
    """Preset or environment config, with command line flags applied on top."""
    preset = PRESETS.get(args.env)
    config = preset() if preset else load_config(args.config)

    overrides = {}
    for flag, field in _OVERRIDES.items():
        value = getattr(args, flag, None)
        if value not in (None, False):
            overrides[field] = value

    if overrides:
        # Rebuild rather than model_copy so the field validators run
        config = AppConfig(**{**config.model_dump(), **overrides})
    set_config(config)
    return config


def run_server(config: AppConfig, workers: int = 1):
    import uvicorn
    from .factory import create_app

    logger.info(f"Serving on {config.host}:{config.port} with {workers} worker(s)")
    options = config.get_uvicorn_config()

    if workers > 1 or config.reload:
        # Workers import the factory themselves and read VAULTX_* from the environment
        uvicorn.run("vaultx.factory:create_app", factory=True, workers=workers, **options)
    else:
        uvicorn.run(create_app(config), **options)


def _db_init():
    from .storage.database import create_tables
    create_tables()
    logger.info("Tables created")


def _db_migrate():
    from .storage.migrations import run_migrations
    run_migrations()


def _db_reset():
    from .storage.database import create_tables, drop_tables
    from .storage.migrations import run_migrations

    logger.warning("Dropping all tables")
    drop_tables()
    create_tables()
    run_migrations()
    logger.info("Database recreated")


def _db_seed():
    from .storage.database import create_tables, get_session_factory
    from .storage.seed import seed_database

    create_tables()
    session = get_session_factory()()
    try:
        created = seed_database(session)
    finally:
        session.close()
    print("Inserted " + ", ".join(f"{count} {kind}" for kind, count in created.items()))


DB_COMMANDS: Dict[str, Callable[[], None]] = {
    "init": _db_init,
    "migrate": _db_migrate,
    "reset": _db_reset,
    "seed": _db_seed,
}


def run_database_command(command: str) -> None:
    handler = DB_COMMANDS.get(command)
    if handler is None:
        raise ValueError(f"Unknown database command: {command}")
    handler()


async def run_health_check(config: AppConfig) -> bool:
    """Print one line per component; True when every check passed."""
    from .core.action_registry import get_action_registry
    from .core.health import health_checker
    from .factory import create_auth_provider, setup_health_checks

    setup_health_checks(get_action_registry(), create_auth_provider(config))
    report = await health_checker.run_all_checks()

    print(f"{config.app_name} {config.app_version}: {report['overall_status']}")
    for name, result in report["checks"].items():
        print(f"  [{result['status']}] {name}: {result.get('message', '')} ({result['duration_ms']}ms)")

    return report["overall_status"] == "healthy"


def validate_configuration_command(config: AppConfig) -> None:
    try:
        warnings = validate_config(config)
    except ValueError as e:
        print(f"Invalid configuration: {e}")
        sys.exit(1)

    print("Configuration OK" + (f" with {len(warnings)} warning(s)" if warnings else ""))
    for warning in warnings:
        print(f"  - {warning}")


def main(argv=None):
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        config = load_configuration(args)
        setup_logging(
            level=config.log_level.value,
            log_file=config.log_file,
            log_format=config.log_format,
            structured=config.log_structured
        )

        if args.command == "validate-config":
            validate_configuration_command(config)
            return
        validate_config(config)

        if args.command in (None, "run"):
            run_server(config, getattr(args, "workers", 1))
        elif args.command == "db":
            if not args.db_command:
                parser.error("db needs one of: " + ", ".join(DB_COMMANDS))
            run_database_command(args.db_command)
        elif args.command == "health":
            if not asyncio.run(run_health_check(config)):
                sys.exit(1)

    except Exception as e:
        logger.error(f"{args.command or 'run'} failed: {e}")
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
