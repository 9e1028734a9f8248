"""Review Manager for user reviews, helpful votes and abuse reports."""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from ..models.schemas import (
    ReviewCreate, ReviewUpdate, ReportUpdate, ReviewStatus, ReportStatus,
    ExperienceLevel, VoteType, ToolStatus
)
from ..storage.models import (
    ToolModel, ReviewModel, ReviewVoteModel, ReviewReportModel, empty_distribution
)
from .auth import AuthContext
from .exceptions import (
    ValidationError, NotFoundError, ConflictError, AuthorizationError, StorageError
)
from .logging import get_logger

logger = get_logger(__name__)

MIN_CONTENT_LENGTH = 50
REVIEW_SORT_FIELDS = ("created_at", "rating", "helpful_count")


def recalculate_tool_rating(db: Session, tool: ToolModel) -> ToolModel:
    """
    Recompute a tool's rating, review_count and rating_distribution from its active reviews.

    The caller commits.
    """
    ratings = [
        rating for (rating,) in db.query(ReviewModel.rating)
        .filter(ReviewModel.tool_id == tool.id, ReviewModel.status == ReviewStatus.ACTIVE.value)
        .all()
    ]
    distribution = empty_distribution()
    for rating in ratings:
        distribution[str(rating)] += 1

    tool.review_count = len(ratings)
    tool.rating = round(sum(ratings) / len(ratings), 2) if ratings else 0.0
    tool.rating_distribution = distribution
    return tool


def recalculate_helpful_count(db: Session, review: ReviewModel) -> ReviewModel:
    """Set helpful_count to the number of helpful votes. The caller commits."""
    review.helpful_count = (
        db.query(func.count(ReviewVoteModel.id))
        .filter(ReviewVoteModel.review_id == review.id, ReviewVoteModel.vote_type == VoteType.HELPFUL.value)
        .scalar()
    )
    return review


def _validate_rating(rating: Any) -> int:
    valid = (
        isinstance(rating, (int, float))
        and not isinstance(rating, bool)
        and float(rating).is_integer()
        and 1 <= rating <= 5
    )
    if not valid:
        raise ValidationError("Rating must be between 1 and 5", field="rating")
    return int(rating)


def _validate_content(content: Optional[str]) -> str:
    content = (content or "").strip()
    if len(content) < MIN_CONTENT_LENGTH:
        raise ValidationError(
            f"Review content must be at least {MIN_CONTENT_LENGTH} characters",
            field="content"
        )
    return content


def _validate_experience_level(level: Optional[str]) -> str:
    if not level:
        return ExperienceLevel.INTERMEDIATE.value
    try:
        return ExperienceLevel(level).value
    except ValueError:
        raise ValidationError(
            f"Invalid experience level '{level}'",
            field="experience_level",
            validation_errors=[f"experience_level must be one of {', '.join(e.value for e in ExperienceLevel)}"]
        )


def _clean_list(items: Optional[List[str]]) -> List[str]:
    return [item.strip() for item in (items or []) if item and item.strip()]


class ReviewManager:
    """Manages reviews and keeps tool aggregates in step with them."""

    def __init__(self, db_session: Session):
        self._db = db_session

    def _storage_error(self, operation: str, error: Exception, table: str = "reviews") -> StorageError:
        self._db.rollback()
        logger.error(f"Database error during {operation}: {str(error)}")
        return StorageError(f"Failed to {operation}", operation=operation, table=table)

    def _get_tool(self, tool_id: str) -> ToolModel:
        tool = self._db.query(ToolModel).filter(ToolModel.id == tool_id).first()
        if not tool:
            raise NotFoundError("Tool not found", resource_type="tool", resource_id=tool_id)
        return tool

    def get_review(self, review_id: str) -> ReviewModel:
        try:
            review = self._db.query(ReviewModel).filter(ReviewModel.id == review_id).first()
        except SQLAlchemyError as e:
            raise self._storage_error("retrieve review", e)
        if not review:
            raise NotFoundError("Review not found", resource_type="review", resource_id=review_id)
        return review

    def list_reviews(
        self,
        tool_id: str,
        limit: int = 10,
        offset: int = 0,
        sort_by: str = "created_at",
        sort_order: str = "desc"
    ) -> Tuple[List[ReviewModel], int]:
        """
        List active reviews of a tool.

        Raises:
            ValidationError: If tool_id is missing or sort parameters are invalid
        """
        if not tool_id:
            raise ValidationError("Tool ID is required", field="tool_id")
        if sort_by not in REVIEW_SORT_FIELDS:
            raise ValidationError(
                f"Invalid sort field '{sort_by}'",
                field="sort_by",
                validation_errors=[f"sort_by must be one of {', '.join(REVIEW_SORT_FIELDS)}"]
            )
        if sort_order not in ("asc", "desc"):
            raise ValidationError("sort_order must be asc or desc", field="sort_order")

        try:
            query = self._db.query(ReviewModel).filter(
                ReviewModel.tool_id == tool_id,
                ReviewModel.status == ReviewStatus.ACTIVE.value
            )
            total = query.count()
            column = getattr(ReviewModel, sort_by)
            ordering = column.asc() if sort_order == "asc" else column.desc()
            reviews = query.order_by(ordering, ReviewModel.id).offset(offset).limit(limit).all()
            return reviews, total
        except SQLAlchemyError as e:
            raise self._storage_error("list reviews", e)

    def create_review(self, data: ReviewCreate, author: AuthContext) -> ReviewModel:
        """
        Submit a review and refresh the tool's aggregates.

        Raises:
            ValidationError: If rating, title or content are invalid
            NotFoundError: If the tool does not exist
            ConflictError: If the author already reviewed this tool
        """
        rating = _validate_rating(data.rating)
        title = (data.title or "").strip()
        if not title:
            raise ValidationError("Review title is required", field="title")
        content = _validate_content(data.content)
        experience_level = _validate_experience_level(data.experience_level)

        try:
            tool = self._get_tool(data.tool_id)

            existing = self._db.query(ReviewModel).filter(
                ReviewModel.tool_id == tool.id, ReviewModel.user_id == author.user_id
            ).first()
            if existing:
                raise ConflictError("You have already reviewed this tool", resource_type="review")

            review = ReviewModel(
                tool_id=tool.id,
                user_id=author.user_id,
                user_name=author.display_name,
                user_email=author.user.email,
                rating=rating,
                title=title,
                content=content,
                pros=_clean_list(data.pros),
                cons=_clean_list(data.cons),
                use_case=(data.use_case or "").strip() or None,
                experience_level=experience_level,
                status=ReviewStatus.ACTIVE.value
            )
            self._db.add(review)
            self._db.flush()
            recalculate_tool_rating(self._db, tool)
            self._db.commit()
            self._db.refresh(review)

        except IntegrityError:
            self._db.rollback()
            raise ConflictError("You have already reviewed this tool", resource_type="review")
        except SQLAlchemyError as e:
            raise self._storage_error("create review", e)

        logger.info(f"User {author.user_id} reviewed tool {data.tool_id} with rating {rating}")
        return review

    def update_review(self, review_id: str, data: ReviewUpdate, author: AuthContext) -> ReviewModel:
        """Edit a review; only its author may do so."""
        review = self.get_review(review_id)
        if review.user_id != author.user_id:
            raise AuthorizationError("You can only edit your own reviews", user_id=author.user_id)

        values = data.model_dump(exclude_unset=True)
        if "rating" in values:
            review.rating = _validate_rating(values["rating"])
        if "title" in values:
            title = (values["title"] or "").strip()
            if not title:
                raise ValidationError("Review title is required", field="title")
            review.title = title
        if "content" in values:
            review.content = _validate_content(values["content"])
        if "pros" in values:
            review.pros = _clean_list(values["pros"])
        if "cons" in values:
            review.cons = _clean_list(values["cons"])
        if "use_case" in values:
            review.use_case = (values["use_case"] or "").strip() or None
        if "experience_level" in values:
            review.experience_level = _validate_experience_level(values["experience_level"])

        try:
            now = datetime.utcnow()
            review.is_edited = True
            review.edited_at = now
            review.updated_at = now
            self._db.flush()
            recalculate_tool_rating(self._db, review.tool)
            self._db.commit()
            self._db.refresh(review)
        except SQLAlchemyError as e:
            raise self._storage_error("update review", e)

        logger.info(f"Review {review_id} edited by {author.user_id}")
        return review

    def delete_review(self, review_id: str, actor: AuthContext) -> None:
        """Delete a review; allowed for its author and for admins."""
        review = self.get_review(review_id)
        if review.user_id != actor.user_id and not actor.is_admin:
            raise AuthorizationError("You can only delete your own reviews", user_id=actor.user_id)

        try:
            tool = review.tool
            self._db.delete(review)
            self._db.flush()
            recalculate_tool_rating(self._db, tool)
            self._db.commit()
        except SQLAlchemyError as e:
            raise self._storage_error("delete review", e)

        logger.info(f"Review {review_id} deleted by {actor.user_id}")

    def vote(self, review_id: str, user_id: str, vote_type: VoteType) -> ReviewModel:
        """Record or change the caller's vote on a review."""
        review = self.get_review(review_id)
        try:
            vote = self._db.query(ReviewVoteModel).filter(
                ReviewVoteModel.review_id == review_id, ReviewVoteModel.user_id == user_id
            ).first()
            if vote:
                vote.vote_type = VoteType(vote_type).value
            else:
                self._db.add(ReviewVoteModel(
                    review_id=review_id, user_id=user_id, vote_type=VoteType(vote_type).value
                ))
            self._db.flush()
            recalculate_helpful_count(self._db, review)
            self._db.commit()
            self._db.refresh(review)
            return review
        except SQLAlchemyError as e:
            raise self._storage_error("record vote", e, table="review_votes")

    def remove_vote(self, review_id: str, user_id: str) -> ReviewModel:
        review = self.get_review(review_id)
        try:
            self._db.query(ReviewVoteModel).filter(
                ReviewVoteModel.review_id == review_id, ReviewVoteModel.user_id == user_id
            ).delete(synchronize_session=False)
            self._db.flush()
            recalculate_helpful_count(self._db, review)
            self._db.commit()
            self._db.refresh(review)
            return review
        except SQLAlchemyError as e:
            raise self._storage_error("remove vote", e, table="review_votes")

    def report(self, review_id: str, reporter: AuthContext, reason: str) -> ReviewReportModel:
        """File an abuse report against a review."""
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required", field="reason")
        self.get_review(review_id)

        try:
            report = ReviewReportModel(
                review_id=review_id,
                reporter_id=reporter.user_id,
                reporter_name=reporter.display_name,
                reason=reason,
                status=ReportStatus.PENDING.value
            )
            self._db.add(report)
            self._db.commit()
            self._db.refresh(report)
        except SQLAlchemyError as e:
            raise self._storage_error("create report", e, table="review_reports")

        logger.info(f"Review {review_id} reported by {reporter.user_id}")
        return report

    def list_reports(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> Tuple[List[ReviewReportModel], int]:
        if status:
            try:
                status = ReportStatus(status).value
            except ValueError:
                raise ValidationError(f"Invalid report status '{status}'", field="status")
        try:
            query = self._db.query(ReviewReportModel)
            if status:
                query = query.filter(ReviewReportModel.status == status)
            total = query.count()
            reports = (
                query.order_by(ReviewReportModel.created_at.desc(), ReviewReportModel.id)
                .offset(offset).limit(limit).all()
            )
            return reports, total
        except SQLAlchemyError as e:
            raise self._storage_error("list reports", e, table="review_reports")

    def resolve_report(self, report_id: str, data: ReportUpdate) -> ReviewReportModel:
        """Moderate a report; resolved and dismissed reports get a resolution time."""
        try:
            report = self._db.query(ReviewReportModel).filter(ReviewReportModel.id == report_id).first()
        except SQLAlchemyError as e:
            raise self._storage_error("retrieve report", e, table="review_reports")
        if not report:
            raise NotFoundError("Report not found", resource_type="review_report", resource_id=report_id)

        try:
            report.status = ReportStatus(data.status).value
            if data.admin_notes is not None:
                report.admin_notes = data.admin_notes
            if report.status in (ReportStatus.RESOLVED.value, ReportStatus.DISMISSED.value):
                report.resolved_at = datetime.utcnow()

            if data.hide_review:
                review = report.review
                review.status = ReviewStatus.HIDDEN.value
                self._db.flush()
                recalculate_tool_rating(self._db, review.tool)

            self._db.commit()
            self._db.refresh(report)
        except SQLAlchemyError as e:
            raise self._storage_error("update report", e, table="review_reports")

        logger.info(f"Report {report_id} set to {report.status}{' (review hidden)' if data.hide_review else ''}")
        return report

    def review_stats(self) -> Dict[str, Any]:
        """Directory-wide review statistics over published tools."""
        try:
            tools = (
                self._db.query(ToolModel.rating, ToolModel.review_count)
                .filter(ToolModel.status == ToolStatus.PUBLISHED.value)
                .all()
            )
        except SQLAlchemyError as e:
            raise self._storage_error("compute review stats", e, table="tools")

        distribution: Dict[int, int] = {}
        for rating, _ in tools:
            bucket = int(math.floor(rating or 0))
            distribution[bucket] = distribution.get(bucket, 0) + 1

        total_tools = len(tools)
        return {
            "stats": {
                "total_reviews": sum(count or 0 for _, count in tools),
                "avg_rating": round(sum(rating or 0 for rating, _ in tools) / total_tools, 2) if total_tools else 0,
                "total_tools": total_tools,
            },
            "rating_distribution": [
                {"rating": bucket, "count": distribution[bucket]} for bucket in sorted(distribution)
            ],
        }
