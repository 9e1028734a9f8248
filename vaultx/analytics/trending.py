"""Trending-score heuristics for ranking tools and categories."""

import math
import re
from typing import Any, Dict, List, Mapping, Optional
from pydantic import BaseModel

from ..core.exceptions import ValidationError

# Factor weights; they sum to 1.0 so a perfect tool scores 1.0
RATING_WEIGHT = 0.25
REVIEW_WEIGHT = 0.20
USER_WEIGHT = 0.25
GROWTH_WEIGHT = 0.20
RECENCY_WEIGHT = 0.10

REVIEW_SATURATION = 100
USER_SATURATION = 10000
MAX_TRENDING_CATEGORIES = 8

CATEGORY_COLORS = [
    "from-blue-500 to-blue-600",
    "from-purple-500 to-purple-600",
    "from-green-500 to-green-600",
    "from-red-500 to-red-600",
    "from-yellow-500 to-yellow-600",
    "from-pink-500 to-pink-600",
    "from-indigo-500 to-indigo-600",
    "from-teal-500 to-teal-600",
]

CATEGORY_ICONS = ["🚀", "🎨", "📊", "✍️", "🎬", "💬", "🔧", "🎯"]

TIME_FILTERS = ("day", "week", "month")

_LEADING_NUMBER = re.compile(r"^\s*([+-]?\d+(?:\.\d+)?)")


class TrendingFactors(BaseModel):
    """Weighted contribution of each input to a trending score."""
    rating: float
    reviews: float
    users: float
    growth: float
    recency: float


class TrendingScore(BaseModel):
    """A tool paired with its trending score."""
    tool: Dict[str, Any]
    score: float
    factors: TrendingFactors


class TrendingCategory(BaseModel):
    """Aggregated trending statistics for one category."""
    name: str
    growth: str
    tool_count: int
    color: str
    icon: str
    total_score: float


class TrendingBadge(BaseModel):
    text: str
    color: str


class TrendingInsights(BaseModel):
    most_popular: Optional[Dict[str, Any]] = None
    fastest_growing: Optional[Dict[str, Any]] = None
    highest_rated: Optional[Dict[str, Any]] = None
    most_reviewed: Optional[Dict[str, Any]] = None


def _number(tool: Mapping[str, Any], key: str) -> float:
    value = tool.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def parse_growth(growth: Any) -> float:
    """Parse a growth label such as "+25%" into a float; unparsable values are 0."""
    if isinstance(growth, bool):
        return 0.0
    if isinstance(growth, (int, float)):
        return float(growth)
    if not isinstance(growth, str):
        return 0.0

    match = _LEADING_NUMBER.match(growth.replace("%", ""))
    if not match:
        return 0.0
    return float(match.group(1))


def calculate_trending_score(tool: Mapping[str, Any]) -> TrendingScore:
    """
    Calculate the trending score for a tool.

    Args:
        tool: Tool record with rating, review_count, weekly_users and growth

    Returns:
        TrendingScore with the total and each weighted factor
    """
    factors = TrendingFactors(
        rating=(_number(tool, "rating") / 5) * RATING_WEIGHT,
        reviews=min(_number(tool, "review_count") / REVIEW_SATURATION, 1) * REVIEW_WEIGHT,
        users=min(_number(tool, "weekly_users") / USER_SATURATION, 1) * USER_WEIGHT,
        growth=max(parse_growth(tool.get("growth")) / 100, 0) * GROWTH_WEIGHT,
        # Constant until tools carry activity timestamps
        recency=RECENCY_WEIGHT,
    )

    score = factors.rating + factors.reviews + factors.users + factors.growth + factors.recency

    return TrendingScore(tool=dict(tool), score=score, factors=factors)


def _rank(tools: List[Mapping[str, Any]]) -> List[TrendingScore]:
    # sorted() is stable, so equal scores keep input order
    return sorted(
        (calculate_trending_score(tool) for tool in tools),
        key=lambda item: item.score,
        reverse=True
    )


def get_trending_tools(tools: List[Mapping[str, Any]], limit: int = 12) -> List[Dict[str, Any]]:
    """Return the top `limit` tools by trending score."""
    if limit <= 0:
        return []
    return [item.tool for item in _rank(tools)[:limit]]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def get_trending_categories(tools: List[Mapping[str, Any]]) -> List[TrendingCategory]:
    """
    Aggregate tools per category and rank categories by summed trending score.

    Colours and icons are assigned by the order in which categories are first
    seen, before ranking, so a category keeps its look across rankings of the
    same input.
    """
    stats: Dict[str, Dict[str, float]] = {}

    for tool in tools:
        category = tool.get("category") or "Uncategorized"
        entry = stats.setdefault(category, {"count": 0, "total_growth": 0.0, "total_score": 0.0})
        entry["count"] += 1
        entry["total_growth"] += parse_growth(tool.get("growth"))
        entry["total_score"] += calculate_trending_score(tool).score

    categories = []
    for index, (name, entry) in enumerate(stats.items()):
        mean_growth = _round_half_up(entry["total_growth"] / entry["count"])
        categories.append(TrendingCategory(
            name=name,
            growth=f"+{mean_growth}%" if mean_growth >= 0 else f"{mean_growth}%",
            tool_count=int(entry["count"]),
            color=CATEGORY_COLORS[index % len(CATEGORY_COLORS)],
            icon=CATEGORY_ICONS[index % len(CATEGORY_ICONS)],
            total_score=entry["total_score"]
        ))

    categories.sort(key=lambda category: category.total_score, reverse=True)
    return categories[:MAX_TRENDING_CATEGORIES]


def _first_max(tools: List[Mapping[str, Any]], key) -> Optional[Dict[str, Any]]:
    best = None
    best_value = None
    for tool in tools:
        value = key(tool)
        if best is None or value > best_value:
            best, best_value = tool, value
    return dict(best) if best is not None else None


def get_trending_insights(tools: List[Mapping[str, Any]]) -> TrendingInsights:
    """Pick the headline tools for the trending page."""
    return TrendingInsights(
        most_popular=_first_max(tools, lambda t: _number(t, "weekly_users")),
        fastest_growing=_first_max(tools, lambda t: parse_growth(t.get("growth"))),
        highest_rated=_first_max(tools, lambda t: _number(t, "rating")),
        most_reviewed=_first_max(tools, lambda t: _number(t, "review_count")),
    )


def get_trending_badge(index: int) -> TrendingBadge:
    """Badge shown next to a tool at the given trending position."""
    if index == 0:
        return TrendingBadge(text="🔥 Hot", color="bg-red-500 text-white")
    if index == 1:
        return TrendingBadge(text="⚡ Rising", color="bg-orange-500 text-white")
    if index == 2:
        return TrendingBadge(text="📈 Trending", color="bg-green-500 text-white")
    if index < 6:
        return TrendingBadge(text="⭐ Popular", color="bg-blue-500 text-white")
    return TrendingBadge(text="💫 Trending", color="bg-purple-500 text-white")


def get_time_based_trending(tools: List[Mapping[str, Any]], time_filter: str = "week") -> List[Dict[str, Any]]:
    """
    Order tools for a time window.

    day sorts by growth, month by review count, week by trending score.

    Raises:
        ValidationError: If time_filter is not day, week or month
    """
    if time_filter not in TIME_FILTERS:
        raise ValidationError(
            f"Invalid time filter '{time_filter}'",
            field="time_filter",
            validation_errors=[f"time_filter must be one of {', '.join(TIME_FILTERS)}"]
        )

    if time_filter == "day":
        ordered = sorted(tools, key=lambda t: parse_growth(t.get("growth")), reverse=True)
        return [dict(tool) for tool in ordered]
    if time_filter == "month":
        ordered = sorted(tools, key=lambda t: _number(t, "review_count"), reverse=True)
        return [dict(tool) for tool in ordered]
    return [item.tool for item in _rank(tools)]
