"""Tests for trending scores, categories, insights and badges."""

import pytest

from vaultx.analytics.trending import (
    calculate_trending_score,
    get_time_based_trending,
    get_trending_badge,
    get_trending_categories,
    get_trending_insights,
    get_trending_tools,
    parse_growth,
    CATEGORY_COLORS,
    MAX_TRENDING_CATEGORIES,
)
from vaultx.core.exceptions import ValidationError


def tool(name, **values):
    data = {"name": name, "category": "Language", "rating": 0, "review_count": 0, "weekly_users": 0, "growth": "0%"}
    data.update(values)
    return data


class TestParseGrowth:
    """Test growth label parsing."""

    @pytest.mark.parametrize("label,expected", [
        ("+25%", 25.0),
        ("-10%", -10.0),
        ("12.5%", 12.5),
        ("40", 40.0),
        ("n/a", 0.0),
        ("", 0.0),
        (None, 0.0),
    ])
    def test_parse_growth(self, label, expected):
        assert parse_growth(label) == expected

    def test_numbers_pass_through(self):
        assert parse_growth(15) == 15.0
        assert parse_growth(True) == 0.0


class TestTrendingScore:
    """Test the weighted trending score."""

    def test_perfect_tool_scores_one(self):
        score = calculate_trending_score(tool(
            "Max", rating=5, review_count=100, weekly_users=10000, growth="+100%"
        ))
        assert score.score == pytest.approx(1.0)

    def test_empty_tool_scores_recency_only(self):
        score = calculate_trending_score({})
        assert score.score == pytest.approx(0.1)
        assert score.factors.rating == 0

    def test_saturation_caps_reviews_and_users(self):
        low = calculate_trending_score(tool("A", review_count=100, weekly_users=10000))
        high = calculate_trending_score(tool("B", review_count=5000, weekly_users=900000))
        assert low.score == pytest.approx(high.score)

    def test_negative_growth_contributes_nothing(self):
        score = calculate_trending_score(tool("Down", growth="-30%"))
        assert score.factors.growth == 0

    def test_known_value(self):
        score = calculate_trending_score(tool(
            "ChatGPT", rating=4.7, review_count=1247, weekly_users=15420, growth="+45%"
        ))
        # 0.235 + 0.2 + 0.25 + 0.09 + 0.1
        assert score.score == pytest.approx(0.875)


class TestTrendingTools:
    """Test ranking and time windows."""

    def test_ranks_by_score_and_limits(self):
        tools = [
            tool("Low", rating=1),
            tool("High", rating=5, review_count=100),
            tool("Mid", rating=4),
        ]
        ranked = get_trending_tools(tools, limit=2)
        assert [t["name"] for t in ranked] == ["High", "Mid"]

    def test_zero_limit_returns_nothing(self):
        assert get_trending_tools([tool("A")], limit=0) == []

    def test_ties_keep_input_order(self):
        tools = [tool("First"), tool("Second"), tool("Third")]
        assert [t["name"] for t in get_trending_tools(tools)] == ["First", "Second", "Third"]

    def test_day_window_sorts_by_growth(self):
        tools = [tool("Slow", growth="+5%"), tool("Fast", growth="+80%"), tool("Mid", growth="+20%")]
        assert [t["name"] for t in get_time_based_trending(tools, "day")] == ["Fast", "Mid", "Slow"]

    def test_month_window_sorts_by_reviews(self):
        tools = [tool("Few", review_count=3), tool("Many", review_count=900)]
        assert [t["name"] for t in get_time_based_trending(tools, "month")][0] == "Many"

    def test_invalid_window_rejected(self):
        with pytest.raises(ValidationError):
            get_time_based_trending([], "year")


class TestTrendingCategories:
    """Test category aggregation."""

    def test_groups_and_averages_growth(self):
        tools = [
            tool("A", category="Design", growth="+10%"),
            tool("B", category="Design", growth="+21%"),
            tool("C", category="Language", growth="-40%"),
        ]
        categories = {c.name: c for c in get_trending_categories(tools)}
        assert categories["Design"].tool_count == 2
        # 15.5 rounds half up
        assert categories["Design"].growth == "+16%"
        assert categories["Language"].growth == "-40%"

    def test_colors_follow_first_seen_order(self):
        tools = [tool("A", category="Small"), tool("B", category="Big", rating=5, review_count=100)]
        categories = get_trending_categories(tools)
        assert categories[0].name == "Big"
        assert categories[0].color == CATEGORY_COLORS[1]
        assert categories[1].color == CATEGORY_COLORS[0]

    def test_caps_category_count(self):
        tools = [tool(f"T{i}", category=f"Cat {i}") for i in range(12)]
        assert len(get_trending_categories(tools)) == MAX_TRENDING_CATEGORIES

    def test_missing_category_is_uncategorized(self):
        categories = get_trending_categories([tool("A", category=None)])
        assert categories[0].name == "Uncategorized"


class TestInsightsAndBadges:
    """Test headline insights and position badges."""

    def test_insights_pick_first_maximum(self):
        tools = [
            tool("A", weekly_users=500, rating=4.8),
            tool("B", weekly_users=500, growth="+90%", review_count=20),
        ]
        insights = get_trending_insights(tools)
        assert insights.most_popular["name"] == "A"
        assert insights.fastest_growing["name"] == "B"
        assert insights.highest_rated["name"] == "A"
        assert insights.most_reviewed["name"] == "B"

    def test_insights_empty(self):
        insights = get_trending_insights([])
        assert insights.most_popular is None

    @pytest.mark.parametrize("index,text", [
        (0, "🔥 Hot"),
        (1, "⚡ Rising"),
        (2, "📈 Trending"),
        (3, "⭐ Popular"),
        (5, "⭐ Popular"),
        (6, "💫 Trending"),
    ])
    def test_badges(self, index, text):
        assert get_trending_badge(index).text == text
