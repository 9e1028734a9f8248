"""Starter content for a fresh database."""

from typing import Dict
from sqlalchemy.orm import Session

from ..core.logging import get_logger
from .models import CategoryModel, ToolModel, WorkflowTemplateModel

logger = get_logger(__name__)

SEED_CATEGORIES = [
    {"name": "Language", "slug": "language", "icon": "💬", "color": "from-blue-500 to-cyan-500",
     "description": "AI tools for text generation, translation, and language processing"},
    {"name": "Design", "slug": "design", "icon": "🎨", "color": "from-purple-500 to-pink-500",
     "description": "AI-powered design tools for graphics, UI/UX, and creative work"},
    {"name": "Development", "slug": "development", "icon": "💻", "color": "from-green-500 to-emerald-500",
     "description": "AI tools for coding, debugging, and software development"},
    {"name": "Productivity", "slug": "productivity", "icon": "⚡", "color": "from-yellow-500 to-orange-500",
     "description": "AI assistants and tools to boost your productivity"},
]

SEED_TOOLS = [
    {
        "name": "ChatGPT", "slug": "chatgpt", "logo": "🤖", "category": "Language",
        "description": "Advanced language model for conversation and text generation",
        "rating": 4.7, "review_count": 1247, "weekly_users": 15420, "growth": "+45%",
        "website": "https://chat.openai.com", "pricing": "Freemium",
        "features": ["Natural language conversations", "Code generation and debugging"],
        "tags": ["chatbot", "writing"],
    },
    {
        "name": "Midjourney", "slug": "midjourney", "logo": "🎨", "category": "Design",
        "description": "AI image generation from text prompts",
        "rating": 4.6, "review_count": 892, "weekly_users": 12850, "growth": "+32%",
        "website": "https://midjourney.com", "pricing": "Paid",
        "features": ["Text-to-image generation", "Style variations"],
        "tags": ["images", "art"],
    },
    {
        "name": "GitHub Copilot", "slug": "github-copilot", "logo": "💻", "category": "Development",
        "description": "AI pair programmer that suggests code in your editor",
        "rating": 4.6, "review_count": 1563, "weekly_users": 18230, "growth": "+38%",
        "website": "https://github.com/features/copilot", "pricing": "Paid",
        "features": ["Inline code completion", "Chat in the IDE"],
        "tags": ["coding", "ide"],
    },
]

SEED_TEMPLATES = [
    {
        "name": "Content Review Workflow",
        "description": "Automated workflow for reviewing and approving content before publication",
        "category": "content-management",
        "config": {
            "type": "content",
            "steps": ["draft", "review", "approve", "publish"],
            "actions": [{"type": "publish_valid_tools", "params": {"limit": 10}}],
        },
        "tags": ["content", "approval", "workflow"],
    },
    {
        "name": "Data Quality Check",
        "description": "Automated data validation and quality assurance workflow",
        "category": "data-management",
        "config": {
            "type": "data_quality",
            "steps": ["validate", "clean", "verify", "report"],
            "thresholds": {"quality": 0.9},
            "actions": [
                {"type": "recalculate_tool_stats", "params": {}},
                {"type": "flag_mock_data", "params": {"unpublish": False}},
            ],
        },
        "tags": ["data", "quality", "validation"],
    },
    {
        "name": "Trending Snapshot",
        "description": "Record the current trending ranking for reporting",
        "category": "analytics",
        "config": {
            "type": "analytics",
            "steps": ["rank", "record"],
            "actions": [{"type": "snapshot_trending", "params": {"limit": 10}}],
        },
        "tags": ["trending", "analytics"],
    },
]


def seed_database(db: Session) -> Dict[str, int]:
    """Insert starter categories, published tools and public templates that are not present yet."""
    created = {"categories": 0, "tools": 0, "templates": 0}

    existing = {name for (name,) in db.query(CategoryModel.name).all()}
    for data in SEED_CATEGORIES:
        if data["name"] not in existing:
            db.add(CategoryModel(**data))
            created["categories"] += 1

    existing = {name for (name,) in db.query(ToolModel.name).all()}
    for data in SEED_TOOLS:
        if data["name"] not in existing:
            db.add(ToolModel(status="published", **data))
            created["tools"] += 1

    existing = {name for (name,) in db.query(WorkflowTemplateModel.name).all()}
    for data in SEED_TEMPLATES:
        if data["name"] not in existing:
            db.add(WorkflowTemplateModel(is_public=True, **data))
            created["templates"] += 1

    db.commit()
    logger.info(
        f"Seeded {created['categories']} categories, {created['tools']} tools, "
        f"{created['templates']} templates"
    )
    return created
