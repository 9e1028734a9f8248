"""SQLAlchemy database models for the VaultX directory."""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, DateTime, Text, JSON, Integer, Float, Boolean,
    ForeignKey, CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship
from .database import Base


def generate_id() -> str:
    return str(uuid.uuid4())


def empty_distribution() -> dict:
    return {"1": 0, "2": 0, "3": 0, "4": 0, "5": 0}


class ToolModel(Base):
    """Database model for AI tool listings."""
    __tablename__ = "tools"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(200), nullable=False, unique=True)
    slug = Column(String(220), index=True)
    logo = Column(String(500))
    description = Column(Text)
    long_description = Column(Text)
    category = Column(String(100), index=True)
    rating = Column(Float, default=0.0, nullable=False)
    review_count = Column(Integer, default=0, nullable=False)
    weekly_users = Column(Integer, default=0, nullable=False)
    growth = Column(String(20), default="0%")  # e.g. "+25%"
    website = Column(String(500))
    pricing = Column(String(100))
    features = Column(JSON, default=list)
    pros = Column(JSON, default=list)
    cons = Column(JSON, default=list)
    tags = Column(JSON, default=list)
    integrations = Column(JSON, default=list)
    rating_distribution = Column(JSON, default=empty_distribution)
    og_image_url = Column(String(500))
    favicon_url = Column(String(500))
    status = Column(String(20), default="draft", nullable=False)  # draft, published, archived
    featured = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("rating >= 0 AND rating <= 5", name="ck_tools_rating_range"),
        CheckConstraint("status IN ('draft', 'published', 'archived')", name="ck_tools_status"),
    )

    reviews = relationship("ReviewModel", back_populates="tool", cascade="all, delete-orphan", passive_deletes=True)
    favorites = relationship("FavoriteModel", back_populates="tool", cascade="all, delete-orphan", passive_deletes=True)


class CategoryModel(Base):
    """Database model for tool categories."""
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(100), nullable=False, unique=True)
    slug = Column(String(120))
    icon = Column(String(50))
    description = Column(Text)
    color = Column(String(50))
    created_at = Column(DateTime, default=datetime.utcnow)


class ReviewModel(Base):
    """Database model for user reviews of tools."""
    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True, default=generate_id)
    tool_id = Column(String(36), ForeignKey("tools.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    user_name = Column(String(200))
    user_email = Column(String(320))
    rating = Column(Integer, nullable=False)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    pros = Column(JSON, default=list)
    cons = Column(JSON, default=list)
    use_case = Column(Text)
    experience_level = Column(String(20), default="intermediate")
    helpful_count = Column(Integer, default=0, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    is_edited = Column(Boolean, default=False, nullable=False)
    edited_at = Column(DateTime)
    status = Column(String(20), default="active", nullable=False)  # active, hidden
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("tool_id", "user_id", name="uq_reviews_tool_user"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
        CheckConstraint("length(content) > 0", name="ck_reviews_content_not_empty"),
    )

    tool = relationship("ToolModel", back_populates="reviews")
    votes = relationship("ReviewVoteModel", back_populates="review", cascade="all, delete-orphan", passive_deletes=True)
    reports = relationship("ReviewReportModel", back_populates="review", cascade="all, delete-orphan", passive_deletes=True)


class ReviewVoteModel(Base):
    """Database model for helpful/unhelpful votes on reviews."""
    __tablename__ = "review_votes"

    id = Column(String(36), primary_key=True, default=generate_id)
    review_id = Column(String(36), ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False)
    vote_type = Column(String(20), nullable=False)  # helpful, unhelpful
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("review_id", "user_id", name="uq_review_votes_review_user"),
        CheckConstraint("vote_type IN ('helpful', 'unhelpful')", name="ck_review_votes_type"),
    )

    review = relationship("ReviewModel", back_populates="votes")


class ReviewReportModel(Base):
    """Database model for abuse reports filed against reviews."""
    __tablename__ = "review_reports"

    id = Column(String(36), primary_key=True, default=generate_id)
    review_id = Column(String(36), ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False, index=True)
    reporter_id = Column(String(36), nullable=False)
    reporter_name = Column(String(200))
    reason = Column(Text, nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, reviewed, resolved, dismissed
    admin_notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    resolved_at = Column(DateTime)

    review = relationship("ReviewModel", back_populates="reports")


class ProfileModel(Base):
    """Database model for user profiles (id matches the auth user id)."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)
    display_name = Column(String(200))
    organization = Column(String(200))
    bio = Column(Text)
    newsletter_opt_in = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class UserRoleModel(Base):
    """Database model for role assignments."""
    __tablename__ = "user_roles"

    user_id = Column(String(36), primary_key=True)
    role = Column(String(20), nullable=False, default="user")  # admin, user
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'user')", name="ck_user_roles_role"),
    )


class FavoriteModel(Base):
    """Database model for a user's favourite tools."""
    __tablename__ = "favorites"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), nullable=False, index=True)
    tool_id = Column(String(36), ForeignKey("tools.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "tool_id", name="uq_favorites_user_tool"),
    )

    tool = relationship("ToolModel", back_populates="favorites")


class BlogPostModel(Base):
    """Database model for blog posts."""
    __tablename__ = "blog_posts"

    id = Column(String(36), primary_key=True, default=generate_id)
    title = Column(String(300), nullable=False)
    slug = Column(String(320), nullable=False, unique=True)
    excerpt = Column(Text)
    content = Column(Text, nullable=False)
    author = Column(String(200))
    category = Column(String(100), index=True)
    read_time = Column(String(50))
    featured = Column(Boolean, default=False, nullable=False)
    tags = Column(JSON, default=list)
    seo_title = Column(String(300))
    seo_description = Column(Text)
    featured_image = Column(String(500))
    published_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class WorkflowModel(Base):
    """Database model for admin automation workflows."""
    __tablename__ = "workflows"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    type = Column(String(50), nullable=False)
    status = Column(String(20), default="draft", nullable=False)  # draft, active, paused, archived
    config = Column(JSON, default=dict)
    triggers = Column(JSON, default=list)
    actions = Column(JSON, default=list)
    conditions = Column(JSON, default=list)
    schedule = Column(JSON)
    last_run = Column(DateTime)
    next_run = Column(DateTime)
    run_count = Column(Integer, default=0, nullable=False)
    success_count = Column(Integer, default=0, nullable=False)
    error_count = Column(Integer, default=0, nullable=False)
    created_by = Column(String(36))
    is_active = Column(Boolean, default=True, nullable=False)
    version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    runs = relationship("WorkflowRunModel", back_populates="workflow", cascade="all, delete-orphan", passive_deletes=True)


class WorkflowTemplateModel(Base):
    """Database model for reusable workflow templates."""
    __tablename__ = "workflow_templates"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    category = Column(String(100))
    config = Column(JSON, default=dict)
    is_public = Column(Boolean, default=False, nullable=False)
    created_by = Column(String(36))
    usage_count = Column(Integer, default=0, nullable=False)
    rating = Column(Float, default=0.0)
    tags = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class WorkflowRunModel(Base):
    """Database model for workflow execution runs."""
    __tablename__ = "workflow_runs"

    id = Column(String(36), primary_key=True, default=generate_id)
    workflow_id = Column(String(36), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False)  # running, completed, failed
    started_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime)
    duration_ms = Column(Integer)
    result = Column(JSON)
    error_message = Column(Text)
    triggered_by = Column(String(36))
    # "metadata" is reserved on declarative classes
    run_metadata = Column("metadata", JSON, default=dict)

    workflow = relationship("WorkflowModel", back_populates="runs")


class AuditLogModel(Base):
    """Database model for the admin audit trail."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), index=True)
    user_email = Column(String(320))
    action = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(36))
    details = Column(JSON, default=dict)
    ip_address = Column(String(64))
    user_agent = Column(String(500))
    created_at = Column(DateTime, default=datetime.utcnow)


class ContactMessageModel(Base):
    """Database model for messages sent through the contact form."""
    __tablename__ = "contact_messages"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=False)
    subject = Column(String(300), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(20), default="unread", nullable=False)  # unread, read, replied, archived
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('unread', 'read', 'replied', 'archived')", name="ck_contact_messages_status"),
    )


class AnalyticsEventModel(Base):
    """Database model for raw client analytics events."""
    __tablename__ = "analytics_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String(50), nullable=False, index=True)
    event_data = Column(JSON, default=dict)
    user_id = Column(String(36), index=True)
    session_id = Column(String(100))
    timestamp = Column(DateTime, nullable=False)
    user_agent = Column(String(500))
    ip_address = Column(String(64))
    referrer = Column(String(500))
    page = Column(String(500), default="unknown")
    created_at = Column(DateTime, default=datetime.utcnow)


class SearchStatisticModel(Base):
    """Aggregated counters per search query."""
    __tablename__ = "search_statistics"

    query = Column(String(200), primary_key=True)
    search_count = Column(Integer, default=0, nullable=False)
    total_results = Column(Integer, default=0, nullable=False)
    average_results = Column(Float, default=0.0, nullable=False)
    filters_used = Column(JSON, default=list)
    last_searched = Column(DateTime, default=datetime.utcnow)


class ToolInteractionStatModel(Base):
    """Aggregated interaction counters per tool."""
    __tablename__ = "tool_interaction_stats"

    # Client supplied and not necessarily a tool in the catalogue
    tool_id = Column(String(36), primary_key=True)
    tool_name = Column(String(200))
    view_count = Column(Integer, default=0, nullable=False)
    favorite_count = Column(Integer, default=0, nullable=False)
    share_count = Column(Integer, default=0, nullable=False)
    bookmark_count = Column(Integer, default=0, nullable=False)
    click_external_count = Column(Integer, default=0, nullable=False)
    last_interaction = Column(DateTime, default=datetime.utcnow)
