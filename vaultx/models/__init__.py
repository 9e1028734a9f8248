"""Data models for the VaultX API."""

from .schemas import (
    ToolStatus,
    ReviewStatus,
    VoteType,
    ReportStatus,
    ExperienceLevel,
    WorkflowStatus,
    RunStatus,
    ToolCreate,
    ToolUpdate,
    ToolOut,
    CategoryOut,
    ReviewOut,
    ProfileOut,
    BlogPostOut,
    WorkflowOut,
    WorkflowRunOut,
    TemplateOut,
    Pagination,
    slugify,
    tool_to_dict,
)

__all__ = [
    "ToolStatus",
    "ReviewStatus",
    "VoteType",
    "ReportStatus",
    "ExperienceLevel",
    "WorkflowStatus",
    "RunStatus",
    "ToolCreate",
    "ToolUpdate",
    "ToolOut",
    "CategoryOut",
    "ReviewOut",
    "ProfileOut",
    "BlogPostOut",
    "WorkflowOut",
    "WorkflowRunOut",
    "TemplateOut",
    "Pagination",
    "slugify",
    "tool_to_dict",
]
