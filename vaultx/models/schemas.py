"""Pydantic request and response models for the VaultX API."""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator


class ToolStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ReviewStatus(str, Enum):
    ACTIVE = "active"
    HIDDEN = "hidden"


class VoteType(str, Enum):
    HELPFUL = "helpful"
    UNHELPFUL = "unhelpful"


class ReportStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ExperienceLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class WorkflowStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


class RunStatus(str, Enum):
    """Enumeration of workflow run statuses."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ContactStatus(str, Enum):
    UNREAD = "unread"
    READ = "read"
    REPLIED = "replied"
    ARCHIVED = "archived"


_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Lowercase, hyphen-separated slug of a title or name."""
    return _SLUG_STRIP.sub("-", value.lower()).strip("-")


# Tools and categories

class ToolBase(BaseModel):
    name: Optional[str] = Field(None, description="Display name of the tool")
    slug: Optional[str] = None
    logo: Optional[str] = None
    description: Optional[str] = None
    long_description: Optional[str] = None
    category: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    review_count: Optional[int] = Field(None, ge=0)
    weekly_users: Optional[int] = Field(None, ge=0)
    growth: Optional[str] = None
    website: Optional[str] = None
    pricing: Optional[str] = None
    features: Optional[List[str]] = None
    pros: Optional[List[str]] = None
    cons: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    integrations: Optional[List[str]] = None
    og_image_url: Optional[str] = None
    favicon_url: Optional[str] = None
    status: Optional[ToolStatus] = None
    featured: Optional[bool] = None


class ToolCreate(ToolBase):
    """Request model for creating a tool."""
    name: str = Field(..., min_length=1, description="Display name of the tool")

    @field_validator('name')
    @classmethod
    def validate_name(cls, name):
        if not name.strip():
            raise ValueError("Tool name cannot be empty")
        return name.strip()


class ToolUpdate(ToolBase):
    """Request model for a partial tool update."""


class ToolOut(BaseModel):
    """Tool as returned by the API."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: Optional[str] = None
    logo: Optional[str] = None
    description: Optional[str] = None
    long_description: Optional[str] = None
    category: Optional[str] = None
    rating: float = 0.0
    review_count: int = 0
    weekly_users: int = 0
    growth: Optional[str] = None
    website: Optional[str] = None
    pricing: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    integrations: List[str] = Field(default_factory=list)
    rating_distribution: Dict[str, int] = Field(default_factory=dict)
    og_image_url: Optional[str] = None
    favicon_url: Optional[str] = None
    status: str
    featured: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('features', 'pros', 'cons', 'tags', 'integrations', 'rating_distribution', mode='before')
    @classmethod
    def none_to_empty(cls, value, info):
        if value is None:
            return {} if info.field_name == 'rating_distribution' else []
        return value


class ToolWriteResponse(BaseModel):
    """Response for tool create/update, carrying non-blocking data-quality warnings."""
    tool: ToolOut
    warnings: List[str] = Field(default_factory=list)


class EnrichRequest(BaseModel):
    url: str = Field(..., description="Website to fetch metadata from")


class EnrichResponse(BaseModel):
    name: str
    description: Optional[str] = None
    og_image_url: Optional[str] = None
    favicon_url: Optional[str] = None
    website: str


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    created_at: Optional[datetime] = None


# Reviews

class ReviewCreate(BaseModel):
    """Request model for submitting a review. Domain rules are checked by the review manager."""
    tool_id: str
    rating: Any = None
    title: Optional[str] = None
    content: Optional[str] = None
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)
    use_case: Optional[str] = None
    experience_level: Optional[str] = None


class ReviewUpdate(BaseModel):
    rating: Any = None
    title: Optional[str] = None
    content: Optional[str] = None
    pros: Optional[List[str]] = None
    cons: Optional[List[str]] = None
    use_case: Optional[str] = None
    experience_level: Optional[str] = None


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tool_id: str
    user_id: str
    user_name: Optional[str] = None
    rating: int
    title: str
    content: str
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)
    use_case: Optional[str] = None
    experience_level: Optional[str] = None
    helpful_count: int = 0
    verified: bool = False
    is_edited: bool = False
    edited_at: Optional[datetime] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class VoteRequest(BaseModel):
    vote_type: VoteType


class ReportRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class ReportUpdate(BaseModel):
    status: ReportStatus
    admin_notes: Optional[str] = None
    hide_review: bool = False


class ReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    review_id: str
    reporter_id: str
    reporter_name: Optional[str] = None
    reason: str
    status: str
    admin_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None


# Users

class ProfileUpdate(BaseModel):
    display_name: Optional[str] = None
    organization: Optional[str] = None
    bio: Optional[str] = None
    newsletter_opt_in: Optional[bool] = None


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    display_name: Optional[str] = None
    organization: Optional[str] = None
    bio: Optional[str] = None
    newsletter_opt_in: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FavoriteRequest(BaseModel):
    tool_id: str
    action: str = Field(..., description="add or remove")


class RoleUpdate(BaseModel):
    role: str


class UserStatusUpdate(BaseModel):
    disabled: bool


class AdminUserOut(BaseModel):
    id: str
    email: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None
    last_sign_in_at: Optional[datetime] = None
    disabled: bool = False


class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None


# Blog

class BlogPostCreate(BaseModel):
    title: str = Field(..., min_length=1)
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    content: str = Field(..., min_length=1)
    author: Optional[str] = None
    category: Optional[str] = None
    read_time: Optional[str] = None
    featured: bool = False
    tags: List[str] = Field(default_factory=list)
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    featured_image: Optional[str] = None
    published_at: Optional[datetime] = None


class BlogPostUpdate(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    content: Optional[str] = None
    author: Optional[str] = None
    category: Optional[str] = None
    read_time: Optional[str] = None
    featured: Optional[bool] = None
    tags: Optional[List[str]] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    featured_image: Optional[str] = None
    published_at: Optional[datetime] = None


class BlogPostOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    slug: str
    excerpt: Optional[str] = None
    content: str
    author: Optional[str] = None
    category: Optional[str] = None
    read_time: Optional[str] = None
    featured: bool = False
    tags: List[str] = Field(default_factory=list)
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    featured_image: Optional[str] = None
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Workflows

class WorkflowCondition(BaseModel):
    """A predicate over run metadata."""
    field: str
    operator: str = "eq"
    value: Any = None


class WorkflowAction(BaseModel):
    """One step of a workflow: a registered action name plus parameters."""
    type: str
    params: Dict[str, Any] = Field(default_factory=dict)


class WorkflowCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    triggers: List[Dict[str, Any]] = Field(default_factory=list)
    actions: List[WorkflowAction] = Field(default_factory=list)
    conditions: List[WorkflowCondition] = Field(default_factory=list)
    schedule: Optional[Dict[str, Any]] = None
    is_active: bool = True


class WorkflowUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    status: Optional[WorkflowStatus] = None
    config: Optional[Dict[str, Any]] = None
    triggers: Optional[List[Dict[str, Any]]] = None
    actions: Optional[List[WorkflowAction]] = None
    conditions: Optional[List[WorkflowCondition]] = None
    schedule: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class WorkflowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    type: str
    status: str
    config: Dict[str, Any] = Field(default_factory=dict)
    triggers: List[Dict[str, Any]] = Field(default_factory=list)
    actions: List[Dict[str, Any]] = Field(default_factory=list)
    conditions: List[Dict[str, Any]] = Field(default_factory=list)
    schedule: Optional[Dict[str, Any]] = None
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    run_count: int = 0
    success_count: int = 0
    error_count: int = 0
    created_by: Optional[str] = None
    is_active: bool = True
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ExecuteWorkflowRequest(BaseModel):
    triggered_by: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class WorkflowRunOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workflow_id: str
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    result: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    triggered_by: Optional[str] = None
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("run_metadata", "metadata")
    )


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    is_public: bool = False
    tags: List[str] = Field(default_factory=list)


class InstantiateTemplateRequest(BaseModel):
    name: Optional[str] = None


class TemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    is_public: bool = False
    created_by: Optional[str] = None
    usage_count: int = 0
    rating: Optional[float] = None
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Contact and analytics

class ContactRequest(BaseModel):
    """Contact form submission. Required fields are checked by the contact manager."""
    name: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None


class ContactStatusUpdate(BaseModel):
    status: str


class ContactMessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    subject: str
    message: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TrackEventRequest(BaseModel):
    """Analytics event as sent by the browser (camelCase or snake_case keys)."""
    event_type: Optional[str] = Field(None, validation_alias=AliasChoices("event_type", "eventType"))
    data: Optional[Dict[str, Any]] = None
    timestamp: Optional[datetime] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


def tool_to_dict(tool) -> Dict[str, Any]:
    """Serialise a ToolModel into the plain dict the analytics helpers consume."""
    return ToolOut.model_validate(tool).model_dump(mode="json")
