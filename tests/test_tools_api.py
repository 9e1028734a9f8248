"""Tests for the public tool, search and category endpoints."""

from datetime import datetime, timedelta


class TestToolListing:
    """Test GET /api/tools and GET /api/tools/{id}."""

    def test_lists_only_published(self, client, make_tool):
        make_tool(name="Visible")
        make_tool(name="Hidden", status="draft")

        data = client.get("/api/tools").json()

        assert [tool["name"] for tool in data["tools"]] == ["Visible"]
        assert data["pagination"] == {"page": 1, "limit": 20, "total": 1, "pages": 1}

    def test_filters_and_sorting(self, client, make_tool):
        make_tool(name="Alpha Writer", category="Language", rating=4.1)
        make_tool(name="Beta Painter", category="Design", rating=4.6)
        make_tool(name="Gamma Writer", category="Language", rating=4.4)

        by_category = client.get("/api/tools", params={"category": "Language", "sort_by": "name", "sort_order": "asc"})
        assert [t["name"] for t in by_category.json()["tools"]] == ["Alpha Writer", "Gamma Writer"]

        by_text = client.get("/api/tools", params={"search": "painter"})
        assert [t["name"] for t in by_text.json()["tools"]] == ["Beta Painter"]

        by_rating = client.get("/api/tools")
        assert [t["rating"] for t in by_rating.json()["tools"]] == [4.6, 4.4, 4.1]

    def test_pagination(self, client, make_tool):
        for index in range(5):
            make_tool(name=f"Tool {index}")
        data = client.get("/api/tools", params={"page": 2, "limit": 2}).json()
        assert len(data["tools"]) == 2
        assert data["pagination"]["pages"] == 3

    def test_get_tool(self, client, make_tool):
        tool_id = make_tool(name="Solo", features=["a"])
        data = client.get(f"/api/tools/{tool_id}").json()
        assert data["name"] == "Solo"
        assert data["features"] == ["a"]
        assert data["pros"] == []

    def test_draft_tool_is_not_found(self, client, make_tool):
        tool_id = make_tool(status="draft")
        assert client.get(f"/api/tools/{tool_id}").status_code == 404


class TestTrendingEndpoints:
    """Test the trending endpoints."""

    def test_trending_with_badges(self, client, make_tool):
        make_tool(name="Quiet", rating=3.0, review_count=2, weekly_users=150, growth="+1%")
        make_tool(name="Star", rating=4.8, review_count=900, weekly_users=20000, growth="+60%")

        data = client.get("/api/tools/trending").json()

        assert data["time_filter"] == "week"
        assert data["total"] == 2
        assert data["tools"][0]["name"] == "Star"
        assert data["tools"][0]["badge"]["text"] == "🔥 Hot"
        assert data["tools"][1]["badge"]["text"] == "⚡ Rising"
        assert data["tools"][0]["trending_score"] > data["tools"][1]["trending_score"]

    def test_limit_and_day_window(self, client, make_tool):
        make_tool(name="Slow", growth="+2%")
        make_tool(name="Fast", growth="+90%")
        make_tool(name="Medium", growth="+30%")

        data = client.get("/api/tools/trending", params={"time_filter": "day", "limit": 2}).json()
        assert [t["name"] for t in data["tools"]] == ["Fast", "Medium"]

    def test_invalid_window(self, client):
        assert client.get("/api/tools/trending", params={"time_filter": "year"}).status_code == 400

    def test_categories_and_insights(self, client, make_tool):
        make_tool(name="Chat", category="Language", weekly_users=9000)
        make_tool(name="Paint", category="Design", weekly_users=3000, growth="+80%")

        categories = client.get("/api/tools/trending/categories").json()["categories"]
        assert {c["name"] for c in categories} == {"Language", "Design"}

        insights = client.get("/api/tools/trending/insights").json()
        assert insights["most_popular"]["name"] == "Chat"
        assert insights["fastest_growing"]["name"] == "Paint"


class TestSearch:
    """Test GET /api/search."""

    def test_relevance_order_and_filters(self, client, make_tool):
        make_tool(name="Writer Pro", description="chat helper", rating=4.0, weekly_users=500, pricing="Paid")
        make_tool(name="ChatBot", description="talks", rating=4.7, weekly_users=20000, pricing="Paid")
        make_tool(name="Chat Lite", description="small", rating=3.2, weekly_users=100, pricing="Free")

        data = client.get("/api/search", params={"q": "chat"}).json()
        assert [t["name"] for t in data["tools"]] == ["ChatBot", "Chat Lite", "Writer Pro"]
        assert data["total"] == 3
        assert data["tools"][0]["relevance_score"] == 17

        filtered = client.get("/api/search", params={"q": "chat", "minRating": 4, "minUsers": 1000}).json()
        assert [t["name"] for t in filtered["tools"]] == ["ChatBot"]
        assert filtered["filters"]["min_rating"] == 4

        free = client.get("/api/search", params={"pricing": "free"}).json()
        assert [t["name"] for t in free["tools"]] == ["Chat Lite"]

    def test_offset_and_limit(self, client, make_tool):
        for index in range(4):
            make_tool(name=f"Item {index}")
        data = client.get("/api/search", params={"limit": 2, "offset": 1}).json()
        assert len(data["tools"]) == 2
        assert data["total"] == 4


class TestCategories:
    """Test category statistics."""

    def test_category_stats(self, client, make_tool):
        make_tool(category="Language", rating=4.0, review_count=10)
        make_tool(category="Language", rating=5.0, review_count=30)
        make_tool(category="Design", rating=3.0, review_count=5)
        make_tool(category="Design", status="draft")

        categories = client.get("/api/categories").json()["categories"]

        assert categories[0] == {
            "name": "Language", "icon": None, "tool_count": 2, "avg_rating": 4.5, "total_reviews": 40
        }
        assert categories[1]["name"] == "Design"
        assert categories[1]["tool_count"] == 1

    def test_category_detail(self, client, make_tool):
        make_tool(category="Language", weekly_users=100)
        make_tool(category="Language", weekly_users=250)

        data = client.get("/api/categories/Language").json()

        assert data["stats"]["tool_count"] == 2
        assert data["stats"]["total_weekly_users"] == 350
        assert len(data["tools"]) == 2

    def test_unknown_category(self, client):
        assert client.get("/api/categories/Nothing").status_code == 404
