"""Data-quality validation for tool records."""

import math
import random
import re
from typing import Any, Dict, List, Mapping, Optional
from pydantic import BaseModel, Field

GROWTH_PATTERN = re.compile(r"^([+-]?)(\d+(?:\.\d+)?)%?$")

REALISTIC_GROWTH_OPTIONS = ["+12%", "+18%", "+23%", "+31%", "+45%", "+52%"]


class RangeRule(BaseModel):
    """Accepted range for a numeric field plus the level above which it looks suspicious."""
    min: float
    max: float
    warning_threshold: float


class ToolValidationRules(BaseModel):
    rating: RangeRule
    review_count: RangeRule
    weekly_users: RangeRule
    growth: RangeRule  # percent values; the warning applies to the magnitude


DEFAULT_VALIDATION_RULES = ToolValidationRules(
    rating=RangeRule(min=1.0, max=5.0, warning_threshold=4.8),
    review_count=RangeRule(min=1, max=100000, warning_threshold=50000),
    weekly_users=RangeRule(min=100, max=2000000, warning_threshold=500000),
    growth=RangeRule(min=-50, max=200, warning_threshold=100),
)


class ToolValidationResult(BaseModel):
    """Outcome of validating one tool record."""
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class ToolQualityEntry(BaseModel):
    tool_id: Optional[str] = None
    name: Optional[str] = None
    validation: ToolValidationResult
    is_mock: bool
    suggested_values: Dict[str, Any] = Field(default_factory=dict)


class DataQualityReport(BaseModel):
    """Aggregate data-quality statistics over a set of tools."""
    total_tools: int
    valid_tools: int
    tools_with_warnings: int
    tools_with_errors: int
    suspicious_tools: int
    mock_data_tools: int
    results: List[ToolQualityEntry] = Field(default_factory=list)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _fmt(value: float) -> str:
    """Format a number with thousands separators and no trailing .0."""
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,}"


def _round_tenth(value: float) -> float:
    """One decimal, halves rounded up."""
    return math.floor(value * 10 + 0.5) / 10


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def _check_range(
    label: str,
    value: Any,
    rule: RangeRule,
    errors: List[str],
    warnings: List[str],
    severity: str = "unusually high"
):
    if not _is_number(value):
        errors.append(f"{label} must be a number")
    elif value < rule.min or value > rule.max:
        errors.append(f"{label} must be between {_fmt(rule.min)} and {_fmt(rule.max)}")
    elif value > rule.warning_threshold:
        warnings.append(f"{label} {_fmt(value)} is {severity}. Consider verifying this value.")


def parse_growth_percent(growth: Any) -> Optional[float]:
    """Return the signed percentage of a well-formed growth label, else None."""
    if not isinstance(growth, str):
        return None
    match = GROWTH_PATTERN.match(growth)
    if not match:
        return None
    value = float(match.group(2))
    return -value if match.group(1) == "-" else value


def validate_tool_data(
    tool: Mapping[str, Any],
    rules: ToolValidationRules = DEFAULT_VALIDATION_RULES
) -> ToolValidationResult:
    """
    Validate a tool record against range rules and known mock-data patterns.

    Args:
        tool: Tool record (snake_case keys)
        rules: Range rules to apply

    Returns:
        ToolValidationResult; is_valid is True when there are no errors
    """
    errors: List[str] = []
    warnings: List[str] = []
    suggestions: List[str] = []

    rating = tool.get("rating")
    review_count = tool.get("review_count")
    weekly_users = tool.get("weekly_users")
    growth = tool.get("growth")

    _check_range("Rating", rating, rules.rating, errors, warnings)
    _check_range("Review count", review_count, rules.review_count, errors, warnings, "very high")
    _check_range("Weekly users", weekly_users, rules.weekly_users, errors, warnings, "very high")

    if not isinstance(growth, str):
        errors.append("Growth must be a string")
    else:
        growth_value = parse_growth_percent(growth)
        if growth_value is None:
            errors.append('Growth must be in format like "+25%" or "-10%"')
        elif growth_value < rules.growth.min or growth_value > rules.growth.max:
            errors.append(f"Growth must be between {_fmt(rules.growth.min)}% and {_fmt(rules.growth.max)}%")
        elif abs(growth_value) > rules.growth.warning_threshold:
            warnings.append(f"Growth {growth} is unusually high. Consider verifying this value.")

    if _is_blank(tool.get("name")):
        errors.append("Tool name is required")
    if _is_blank(tool.get("description")):
        errors.append("Tool description is required")
    if _is_blank(tool.get("category")):
        errors.append("Tool category is required")

    website = tool.get("website")
    if not isinstance(website, str) or not website.startswith("http"):
        errors.append("Valid website URL is required")

    if _is_number(rating) and rating and rating < 3.5:
        suggestions.append("Consider if this tool really deserves such a low rating")
    if _is_number(review_count) and review_count and review_count < 10:
        suggestions.append("Very few reviews might indicate a new or unpopular tool")
    if _is_number(weekly_users) and weekly_users and weekly_users < 1000:
        suggestions.append("Low user count might indicate a niche or new tool")

    if rating == 4.2 and review_count == 189 and weekly_users == 150000:
        warnings.append("This data pattern matches known mock data. Please verify all values.")
    if rating == 4.2 and review_count == 189:
        warnings.append("Rating 4.2 with exactly 189 reviews is suspicious. Please verify.")
    if weekly_users == 150000:
        warnings.append("Weekly users of exactly 150,000 is suspicious. Please verify.")

    return ToolValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        suggestions=suggestions
    )


def generate_realistic_data_suggestions(
    tool: Mapping[str, Any],
    rng: Optional[random.Random] = None
) -> Dict[str, Any]:
    """Propose plausible replacements for out-of-range or malformed values."""
    rng = rng or random.Random()
    suggestions: Dict[str, Any] = {}

    rating = tool.get("rating")
    if _is_number(rating) and rating and (rating < 1 or rating > 5):
        suggestions["rating"] = _round_tenth(rng.random() * 1.1 + 3.8)

    review_count = tool.get("review_count")
    if _is_number(review_count) and review_count and (review_count < 1 or review_count > 100000):
        base_reviews = rng.randrange(500) + 50
        popularity = rng.random() * 3 + 0.5
        suggestions["review_count"] = int(base_reviews * popularity)

    weekly_users = tool.get("weekly_users")
    if _is_number(weekly_users) and weekly_users and (weekly_users < 100 or weekly_users > 2000000):
        base_users = rng.randrange(5000) + 1000
        multiplier = rng.random() * 2 + 0.5
        suggestions["weekly_users"] = int(base_users * multiplier)

    growth = tool.get("growth")
    if isinstance(growth, str) and growth and parse_growth_percent(growth) is None:
        suggestions["growth"] = rng.choice(REALISTIC_GROWTH_OPTIONS)

    return suggestions


def is_mock_data(tool: Mapping[str, Any]) -> bool:
    """Whether a record matches placeholder values seeded before curation."""
    rating = tool.get("rating")
    review_count = tool.get("review_count")
    weekly_users = tool.get("weekly_users")
    growth = tool.get("growth")

    patterns = [
        rating == 4.2 and review_count == 189,
        weekly_users == 150000,
        growth in ("28%", "+28%"),
        weekly_users in (100000, 50000),
        review_count in (100, 500),
        _is_number(rating) and rating in (4.0, 4.5, 5.0),
    ]
    return any(patterns)


def build_data_quality_report(
    tools: List[Mapping[str, Any]],
    rules: ToolValidationRules = DEFAULT_VALIDATION_RULES,
    rng: Optional[random.Random] = None
) -> DataQualityReport:
    """Validate every tool and summarise the results."""
    results = []
    valid = with_warnings = with_errors = mock = 0

    for tool in tools:
        validation = validate_tool_data(tool, rules)
        mock_flag = is_mock_data(tool)

        if validation.is_valid and not validation.warnings:
            valid += 1
        if validation.warnings:
            with_warnings += 1
        if validation.errors:
            with_errors += 1
        if mock_flag:
            mock += 1

        results.append(ToolQualityEntry(
            tool_id=tool.get("id"),
            name=tool.get("name"),
            validation=validation,
            is_mock=mock_flag,
            suggested_values=generate_realistic_data_suggestions(tool, rng)
        ))

    return DataQualityReport(
        total_tools=len(tools),
        valid_tools=valid,
        tools_with_warnings=with_warnings,
        tools_with_errors=with_errors,
        # Every mock-looking record is treated as suspicious
        suspicious_tools=mock,
        mock_data_tools=mock,
        results=results
    )
