"""Review, vote and report endpoints."""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.auth import AuthContext
from ..core.logging import get_logger
from ..core.rate_limit import public_event_rate_limiter
from ..core.review_manager import ReviewManager
from ..models.schemas import (
    ReviewCreate, ReviewUpdate, ReviewOut, VoteRequest, ReportRequest, ReportOut
)
from ..storage.database import get_db
from .dependencies import get_current_user

logger = get_logger(__name__)

router = APIRouter(prefix="/api/reviews", tags=["reviews"])


@router.get("/stats", summary="Review statistics across published tools")
async def review_stats(db: Session = Depends(get_db)) -> Dict[str, Any]:
    return ReviewManager(db).review_stats()


@router.get(
    "",
    summary="List reviews of a tool",
    description="Active reviews for `tool_id`, newest first unless another sort is requested."
)
async def list_reviews(
    tool_id: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort_by: str = "created_at",
    sort_order: str = "desc",
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    reviews, total = ReviewManager(db).list_reviews(
        tool_id, limit=limit, offset=offset, sort_by=sort_by, sort_order=sort_order
    )
    return {
        "reviews": [ReviewOut.model_validate(review).model_dump(mode="json") for review in reviews],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.post(
    "",
    response_model=ReviewOut,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a review",
    dependencies=[Depends(public_event_rate_limiter)],
    responses={
        400: {"description": "Invalid rating, title or content"},
        401: {"description": "Not signed in"},
        404: {"description": "Tool not found"},
        409: {"description": "Tool already reviewed by this user"},
    }
)
async def create_review(
    request: ReviewCreate,
    user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ReviewOut:
    """
    Submit a review for a tool.

    The reviewer's name comes from the session, not the request body. The
    tool's rating, review count and distribution are refreshed immediately.
    """
    review = ReviewManager(db).create_review(request, user)
    return ReviewOut.model_validate(review)


@router.put("/{review_id}", response_model=ReviewOut, summary="Edit your review")
async def update_review(
    review_id: str,
    request: ReviewUpdate,
    user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ReviewOut:
    return ReviewOut.model_validate(ReviewManager(db).update_review(review_id, request, user))


@router.delete("/{review_id}", summary="Delete a review (author or admin)")
async def delete_review(
    review_id: str,
    user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    ReviewManager(db).delete_review(review_id, user)
    return {"success": True, "message": "Review deleted"}


@router.post("/{review_id}/vote", summary="Vote a review helpful or unhelpful")
async def vote_review(
    review_id: str,
    request: VoteRequest,
    user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    review = ReviewManager(db).vote(review_id, user.user_id, request.vote_type)
    return {"review_id": review.id, "vote_type": request.vote_type.value, "helpful_count": review.helpful_count}


@router.delete("/{review_id}/vote", summary="Remove your vote")
async def remove_vote(
    review_id: str,
    user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    review = ReviewManager(db).remove_vote(review_id, user.user_id)
    return {"review_id": review.id, "helpful_count": review.helpful_count}


@router.post(
    "/{review_id}/report",
    response_model=ReportOut,
    status_code=status.HTTP_201_CREATED,
    summary="Report a review",
    dependencies=[Depends(public_event_rate_limiter)]
)
async def report_review(
    review_id: str,
    request: ReportRequest,
    user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ReportOut:
    return ReportOut.model_validate(ReviewManager(db).report(review_id, user, request.reason))
