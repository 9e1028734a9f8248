"""Database migrations for query performance."""

from typing import Optional
from sqlalchemy import text, Engine
from .database import get_database_engine
from ..core.logging import get_logger

logger = get_logger(__name__)


INDEX_STATEMENTS = [
    # Public listing filters on status and category, sorted by rating
    "CREATE INDEX IF NOT EXISTS idx_tools_status_category ON tools(status, category)",
    "CREATE INDEX IF NOT EXISTS idx_tools_status_rating ON tools(status, rating DESC)",
    # Review listings per tool, newest first
    "CREATE INDEX IF NOT EXISTS idx_reviews_tool_status_created ON reviews(tool_id, status, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_review_reports_status ON review_reports(status, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_blog_posts_category_published ON blog_posts(category, published_at DESC)",
    # Run history per workflow
    "CREATE INDEX IF NOT EXISTS idx_workflow_runs_workflow_started ON workflow_runs(workflow_id, started_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_workflows_status_type ON workflows(status, type)",
    "CREATE INDEX IF NOT EXISTS idx_audit_logs_created ON audit_logs(created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_contact_messages_status ON contact_messages(status, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_analytics_events_type_time ON analytics_events(event_type, timestamp DESC)",
]


def create_indexes(engine: Optional[Engine] = None):
    """Create secondary indexes used by listing and history queries."""
    engine = engine or get_database_engine()
    try:
        with engine.connect() as connection:
            for statement in INDEX_STATEMENTS:
                connection.execute(text(statement))
            connection.commit()
            logger.info(f"Created {len(INDEX_STATEMENTS)} database indexes")

    except Exception as e:
        logger.error(f"Failed to create database indexes: {str(e)}")
        raise


def optimize_database(engine: Optional[Engine] = None):
    """Apply backend-specific tuning."""
    engine = engine or get_database_engine()
    try:
        with engine.connect() as connection:
            if engine.url.get_backend_name() == "sqlite":
                database = engine.url.database or ""
                # WAL is not available for in-memory databases
                if database and database != ":memory:":
                    connection.execute(text("PRAGMA journal_mode=WAL"))

                connection.execute(text("PRAGMA cache_size=10000"))
                connection.execute(text("PRAGMA optimize"))

                logger.info("Applied SQLite optimizations")

            connection.commit()

    except Exception as e:
        logger.error(f"Failed to optimize database: {str(e)}")
        raise


def run_migrations(engine: Optional[Engine] = None):
    """Run all migrations."""
    try:
        logger.info("Starting database migrations")
        create_indexes(engine)
        optimize_database(engine)
        logger.info("Database migrations completed successfully")

    except Exception as e:
        logger.error(f"Database migrations failed: {str(e)}")
        raise
