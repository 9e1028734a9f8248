"""Database models and storage layer."""

from .database import Base, get_db, create_tables, drop_tables, get_database_engine, reset_database_engine
from .models import (
    ToolModel,
    CategoryModel,
    ReviewModel,
    ReviewVoteModel,
    ReviewReportModel,
    ProfileModel,
    UserRoleModel,
    FavoriteModel,
    BlogPostModel,
    WorkflowModel,
    WorkflowTemplateModel,
    WorkflowRunModel,
    AuditLogModel,
    ContactMessageModel,
    AnalyticsEventModel,
    SearchStatisticModel,
    ToolInteractionStatModel,
)

__all__ = [
    "Base",
    "get_db",
    "create_tables",
    "drop_tables",
    "get_database_engine",
    "reset_database_engine",
    "ToolModel",
    "CategoryModel",
    "ReviewModel",
    "ReviewVoteModel",
    "ReviewReportModel",
    "ProfileModel",
    "UserRoleModel",
    "FavoriteModel",
    "BlogPostModel",
    "WorkflowModel",
    "WorkflowTemplateModel",
    "WorkflowRunModel",
    "AuditLogModel",
    "ContactMessageModel",
    "AnalyticsEventModel",
    "SearchStatisticModel",
    "ToolInteractionStatModel",
]
