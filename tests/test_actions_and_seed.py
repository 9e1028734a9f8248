"""Tests for built-in workflow actions and database seeding."""

from datetime import datetime

from vaultx.actions.builtin import (
    flag_mock_data,
    publish_valid_tools,
    recalculate_tool_stats,
    snapshot_trending,
)
from vaultx.storage.models import ReviewModel, ToolModel, WorkflowTemplateModel
from vaultx.storage.seed import seed_database


def add_tool(session, **values):
    defaults = {
        "name": "Tool", "description": "An AI tool", "category": "Language", "rating": 4.3,
        "review_count": 120, "weekly_users": 5000, "growth": "+20%",
        "website": "https://example.com", "status": "published",
    }
    defaults.update(values)
    tool = ToolModel(**defaults)
    session.add(tool)
    session.commit()
    return tool


class TestBuiltinActions:
    """Test the directory maintenance actions."""

    def test_recalculate_tool_stats(self, db_session):
        tool = add_tool(db_session, rating=0.0, review_count=0)
        for index, rating in enumerate((5, 3)):
            db_session.add(ReviewModel(
                tool_id=tool.id, user_id=f"u{index}", rating=rating, title="t", content="c" * 60
            ))
        db_session.commit()

        result = recalculate_tool_stats(db_session, {"tool_id": tool.id})
        db_session.commit()

        assert result == {"tools_updated": 1}
        assert tool.rating == 4.0
        assert tool.review_count == 2
        assert tool.rating_distribution["5"] == 1

    def test_flag_mock_data(self, db_session):
        mock = add_tool(db_session, name="Mock", weekly_users=150000)
        add_tool(db_session, name="Real")

        result = flag_mock_data(db_session, {"unpublish": True})

        assert result["flagged"] == [mock.id]
        assert result["unpublished"] == [mock.id]
        assert mock.status == "draft"

    def test_publish_valid_tools_respects_limit(self, db_session):
        first = add_tool(db_session, name="First", status="draft", created_at=datetime(2024, 1, 1))
        add_tool(db_session, name="Second", status="draft", created_at=datetime(2024, 1, 2))
        add_tool(db_session, name="Broken", status="draft", growth="lots")

        result = publish_valid_tools(db_session, {"limit": 1})

        assert result["published"] == [first.id]
        assert result["drafts_checked"] == 3
        assert first.status == "published"

    def test_snapshot_trending(self, db_session):
        add_tool(db_session, name="Slow", growth="+1%", weekly_users=200)
        add_tool(db_session, name="Fast", growth="+80%", weekly_users=9000)
        add_tool(db_session, name="Hidden", status="draft")

        result = snapshot_trending(db_session, {"limit": 1})

        assert [tool["name"] for tool in result["tools"]] == ["Fast"]
        assert result["categories"][0]["name"] == "Language"


class TestSeed:
    """Test starter content."""

    def test_seed_is_idempotent(self, db_session):
        first = seed_database(db_session)
        second = seed_database(db_session)

        assert first == {"categories": 4, "tools": 3, "templates": 3}
        assert second == {"categories": 0, "tools": 0, "templates": 0}
        assert db_session.query(ToolModel).filter(ToolModel.status == "published").count() == 3
        assert all(template.is_public for template in db_session.query(WorkflowTemplateModel).all())
