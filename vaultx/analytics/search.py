"""Relevance scoring for directory search."""

from typing import Any, Dict, List, Mapping


def score_relevance(tool: Mapping[str, Any], query: str) -> int:
    """Score how well a tool matches a search query, favouring well-rated popular tools."""
    score = 0
    name = (tool.get("name") or "").lower()
    if query and query.lower() in name:
        score += 10

    rating = tool.get("rating") or 0
    if rating >= 4.5:
        score += 5
    elif rating >= 4.0:
        score += 3

    users = tool.get("weekly_users") or 0
    if users >= 1000000:
        score += 4
    elif users >= 100000:
        score += 3
    elif users >= 10000:
        score += 2

    return score


def rank_by_relevance(tools: List[Mapping[str, Any]], query: str) -> List[Dict[str, Any]]:
    """Attach `relevance_score` to each tool and sort best first (ties keep input order)."""
    scored = [{**tool, "relevance_score": score_relevance(tool, query)} for tool in tools]
    scored.sort(key=lambda tool: tool["relevance_score"], reverse=True)
    return scored
