"""Pure ranking and data-quality helpers."""

from .trending import (
    calculate_trending_score,
    get_trending_tools,
    get_trending_categories,
    get_trending_insights,
    get_trending_badge,
    get_time_based_trending,
    parse_growth,
)
from .validation import (
    DEFAULT_VALIDATION_RULES,
    validate_tool_data,
    generate_realistic_data_suggestions,
    is_mock_data,
    build_data_quality_report,
)
from .search import score_relevance, rank_by_relevance

__all__ = [
    "calculate_trending_score",
    "get_trending_tools",
    "get_trending_categories",
    "get_trending_insights",
    "get_trending_badge",
    "get_time_based_trending",
    "parse_growth",
    "DEFAULT_VALIDATION_RULES",
    "validate_tool_data",
    "generate_realistic_data_suggestions",
    "is_mock_data",
    "build_data_quality_report",
    "score_relevance",
    "rank_by_relevance",
]
