"""Tool Manager for directory listings and categories."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from ..analytics.search import rank_by_relevance
from ..analytics.validation import (
    ToolValidationResult,
    DataQualityReport,
    validate_tool_data,
    build_data_quality_report,
)
from ..models.schemas import (
    ToolCreate, ToolUpdate, CategoryCreate, CategoryUpdate, ToolStatus,
    slugify, tool_to_dict
)
from ..storage.models import ToolModel, CategoryModel
from .enrichment import validate_website_url
from .exceptions import ValidationError, NotFoundError, ConflictError, StorageError
from .logging import get_logger

logger = get_logger(__name__)

SORTABLE_FIELDS = {
    "rating": ToolModel.rating,
    "review_count": ToolModel.review_count,
    "weekly_users": ToolModel.weekly_users,
    "name": ToolModel.name,
    "created_at": ToolModel.created_at,
}

PUBLISH_REQUIRED_FIELDS = ("name", "website", "category", "description")

_LIST_FIELDS = ("features", "pros", "cons", "tags", "integrations")

_NOT_NULL_FIELDS = ("rating", "review_count", "weekly_users", "status", "featured")


class ToolManager:
    """Manages tool listings, categories and their data quality."""

    def __init__(self, db_session: Session):
        self._db = db_session

    def _storage_error(self, operation: str, error: Exception, table: str = "tools") -> StorageError:
        self._db.rollback()
        logger.error(f"Database error during {operation}: {str(error)}")
        return StorageError(f"Failed to {operation}", operation=operation, table=table)

    # Tools

    def list_tools(
        self,
        page: int = 1,
        limit: int = 20,
        category: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "rating",
        sort_order: str = "desc",
        status: Optional[str] = ToolStatus.PUBLISHED.value
    ) -> Tuple[List[ToolModel], int]:
        """
        List tools with filtering, sorting and pagination.

        Args:
            page: 1-based page number
            limit: Page size
            category: Exact category filter
            search: Case-insensitive match on name or description
            sort_by: One of rating, review_count, weekly_users, name, created_at
            sort_order: asc or desc
            status: Status filter; None lists every status

        Returns:
            Tuple of (tools on the page, total matching tools)

        Raises:
            ValidationError: If sort parameters are invalid
            StorageError: If the query fails
        """
        if sort_by not in SORTABLE_FIELDS:
            raise ValidationError(
                f"Invalid sort field '{sort_by}'",
                field="sort_by",
                validation_errors=[f"sort_by must be one of {', '.join(SORTABLE_FIELDS)}"]
            )
        if sort_order not in ("asc", "desc"):
            raise ValidationError("sort_order must be asc or desc", field="sort_order")

        try:
            query = self._db.query(ToolModel)
            if status:
                query = query.filter(ToolModel.status == status)
            if category:
                query = query.filter(ToolModel.category == category)
            if search:
                pattern = f"%{search.strip()}%"
                query = query.filter(or_(ToolModel.name.ilike(pattern), ToolModel.description.ilike(pattern)))

            total = query.count()

            column = SORTABLE_FIELDS[sort_by]
            ordering = column.asc() if sort_order == "asc" else column.desc()
            tools = (
                query.order_by(ordering, ToolModel.id)
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            return tools, total

        except SQLAlchemyError as e:
            raise self._storage_error("list tools", e)

    def published_tool_dicts(self) -> List[Dict[str, Any]]:
        """All published tools as plain dicts, in insertion order."""
        try:
            tools = (
                self._db.query(ToolModel)
                .filter(ToolModel.status == ToolStatus.PUBLISHED.value)
                .order_by(ToolModel.created_at, ToolModel.id)
                .all()
            )
            return [tool_to_dict(tool) for tool in tools]
        except SQLAlchemyError as e:
            raise self._storage_error("load published tools", e)

    def get_tool(self, tool_id: str, published_only: bool = False) -> ToolModel:
        """
        Retrieve a tool by id.

        Raises:
            NotFoundError: If the tool does not exist (or is unpublished when published_only)
        """
        try:
            tool = self._db.query(ToolModel).filter(ToolModel.id == tool_id).first()
        except SQLAlchemyError as e:
            raise self._storage_error("retrieve tool", e)

        if not tool or (published_only and tool.status != ToolStatus.PUBLISHED.value):
            raise NotFoundError("Tool not found", resource_type="tool", resource_id=tool_id)
        return tool

    def _ensure_unique_name(self, name: str, exclude_id: Optional[str] = None):
        query = self._db.query(ToolModel).filter(func.lower(ToolModel.name) == name.lower())
        if exclude_id:
            query = query.filter(ToolModel.id != exclude_id)
        if query.first():
            raise ConflictError(f"Tool with name '{name}' already exists", resource_type="tool")

    def _quality_warnings(self, tool: ToolModel) -> List[str]:
        result = validate_tool_data(tool_to_dict(tool))
        return result.errors + result.warnings

    def create_tool(self, data: ToolCreate) -> Tuple[ToolModel, List[str]]:
        """
        Create a tool in draft (unless a status is given).

        Returns:
            Tuple of (created tool, data-quality warnings)

        Raises:
            ConflictError: If a tool with the same name exists
            StorageError: If storage fails
        """
        logger.info(f"Creating tool: {data.name}")
        values = data.model_dump(exclude_none=True)
        values["slug"] = values.get("slug") or slugify(data.name)
        values["status"] = (data.status or ToolStatus.DRAFT).value
        for field in _LIST_FIELDS:
            values.setdefault(field, [])

        try:
            self._ensure_unique_name(data.name)
            tool = ToolModel(**values)
            self._db.add(tool)
            self._db.commit()
            self._db.refresh(tool)
        except IntegrityError:
            self._db.rollback()
            raise ConflictError(f"Tool with name '{data.name}' already exists", resource_type="tool")
        except SQLAlchemyError as e:
            raise self._storage_error("create tool", e)

        warnings = self._quality_warnings(tool)
        if warnings:
            logger.warning(f"Tool '{tool.name}' saved with data-quality warnings: {'; '.join(warnings)}")
        logger.info(f"Successfully created tool '{tool.name}' with ID: {tool.id}")
        return tool, warnings

    def update_tool(self, tool_id: str, data: ToolUpdate) -> Tuple[ToolModel, List[str]]:
        """Apply a partial update; returns the tool and its data-quality warnings."""
        tool = self.get_tool(tool_id)
        values = data.model_dump(exclude_unset=True)

        if "name" in values:
            name = (values["name"] or "").strip()
            if not name:
                raise ValidationError("Tool name cannot be empty", field="name")
            values["name"] = name

        try:
            if "name" in values:
                self._ensure_unique_name(values["name"], exclude_id=tool_id)
            for key, value in values.items():
                if value is None and key in _NOT_NULL_FIELDS:
                    continue
                if key == "status":
                    value = ToolStatus(value).value
                setattr(tool, key, value)
            tool.updated_at = datetime.utcnow()
            self._db.commit()
            self._db.refresh(tool)
        except IntegrityError:
            self._db.rollback()
            raise ConflictError("Tool with that name already exists", resource_type="tool")
        except SQLAlchemyError as e:
            raise self._storage_error("update tool", e)

        logger.info(f"Updated tool {tool_id}: {', '.join(values) or 'no fields'}")
        return tool, self._quality_warnings(tool)

    def delete_tool(self, tool_id: str) -> None:
        """Delete a tool together with its reviews, votes, reports and favorites."""
        tool = self.get_tool(tool_id)
        try:
            self._db.delete(tool)
            self._db.commit()
            logger.info(f"Deleted tool {tool_id}")
        except SQLAlchemyError as e:
            raise self._storage_error("delete tool", e)

    def publish_tool(self, tool_id: str) -> ToolModel:
        """
        Publish a tool once its listing is complete.

        Raises:
            ValidationError: If required fields are missing or the website is not http(s)
        """
        tool = self.get_tool(tool_id)

        missing = [
            field for field in PUBLISH_REQUIRED_FIELDS
            if not (getattr(tool, field) or "").strip()
        ]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                validation_errors=[f"{field} is required" for field in missing]
            )
        validate_website_url(tool.website)

        try:
            tool.status = ToolStatus.PUBLISHED.value
            tool.updated_at = datetime.utcnow()
            self._db.commit()
            self._db.refresh(tool)
        except SQLAlchemyError as e:
            raise self._storage_error("publish tool", e)

        logger.info(f"Published tool '{tool.name}' ({tool_id})")
        return tool

    def search(
        self,
        query: str = "",
        category: Optional[str] = None,
        pricing: Optional[str] = None,
        min_rating: Optional[float] = None,
        min_users: Optional[int] = None,
        limit: int = 20,
        offset: int = 0
    ) -> Dict[str, Any]:
        """Search published tools and order them by relevance."""
        try:
            db_query = self._db.query(ToolModel).filter(ToolModel.status == ToolStatus.PUBLISHED.value)
            if query:
                pattern = f"%{query.strip()}%"
                db_query = db_query.filter(or_(
                    ToolModel.name.ilike(pattern),
                    ToolModel.description.ilike(pattern),
                    ToolModel.category.ilike(pattern)
                ))
            if category:
                db_query = db_query.filter(ToolModel.category == category)
            if pricing:
                db_query = db_query.filter(ToolModel.pricing.ilike(f"%{pricing}%"))
            if min_rating is not None:
                db_query = db_query.filter(ToolModel.rating >= min_rating)
            if min_users is not None:
                db_query = db_query.filter(ToolModel.weekly_users >= min_users)

            tools = db_query.order_by(ToolModel.created_at, ToolModel.id).all()
        except SQLAlchemyError as e:
            raise self._storage_error("search tools", e)

        ranked = rank_by_relevance([tool_to_dict(tool) for tool in tools], query or "")
        return {
            "tools": ranked[offset:offset + limit],
            "total": len(ranked),
            "query": query,
            "filters": {
                "category": category,
                "pricing": pricing,
                "min_rating": min_rating,
                "min_users": min_users,
            },
            "limit": limit,
            "offset": offset,
        }

    def validate_tool(self, tool_id: str) -> ToolValidationResult:
        return validate_tool_data(tool_to_dict(self.get_tool(tool_id)))

    def data_quality_report(self) -> DataQualityReport:
        """Validate every tool regardless of status."""
        try:
            tools = self._db.query(ToolModel).order_by(ToolModel.name).all()
        except SQLAlchemyError as e:
            raise self._storage_error("load tools", e)
        return build_data_quality_report([tool_to_dict(tool) for tool in tools])

    # Categories

    def list_categories_with_stats(self) -> List[Dict[str, Any]]:
        """Categories of published tools with counts, average rating and review totals."""
        try:
            rows = (
                self._db.query(
                    ToolModel.category,
                    func.count(ToolModel.id),
                    func.avg(ToolModel.rating),
                    func.sum(ToolModel.review_count)
                )
                .filter(ToolModel.status == ToolStatus.PUBLISHED.value)
                .filter(ToolModel.category.isnot(None))
                .group_by(ToolModel.category)
                .all()
            )
            icons = {category.name: category.icon for category in self._db.query(CategoryModel).all()}
        except SQLAlchemyError as e:
            raise self._storage_error("list categories", e, table="categories")

        categories = [
            {
                "name": name,
                "icon": icons.get(name),
                "tool_count": count,
                "avg_rating": round(float(avg or 0), 1),
                "total_reviews": int(reviews or 0),
            }
            for name, count, avg, reviews in rows
        ]
        categories.sort(key=lambda category: (-category["tool_count"], category["name"]))
        return categories

    def get_category_detail(self, name: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        """Tools in a category plus aggregate statistics."""
        tools, total = self.list_tools(page=page, limit=limit, category=name)
        try:
            category = self._db.query(CategoryModel).filter(CategoryModel.name == name).first()
            avg, reviews, users = (
                self._db.query(
                    func.avg(ToolModel.rating),
                    func.sum(ToolModel.review_count),
                    func.sum(ToolModel.weekly_users)
                )
                .filter(ToolModel.status == ToolStatus.PUBLISHED.value, ToolModel.category == name)
                .one()
            )
        except SQLAlchemyError as e:
            raise self._storage_error("load category", e, table="categories")

        if total == 0 and category is None:
            raise NotFoundError(f"Category '{name}' not found", resource_type="category", resource_id=name)

        return {
            "category": {
                "name": name,
                "icon": category.icon if category else None,
                "description": category.description if category else None,
                "color": category.color if category else None,
            },
            "tools": [tool_to_dict(tool) for tool in tools],
            "stats": {
                "tool_count": total,
                "avg_rating": round(float(avg or 0), 1),
                "total_reviews": int(reviews or 0),
                "total_weekly_users": int(users or 0),
            },
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
        }

    def get_category(self, category_id: str) -> CategoryModel:
        try:
            category = self._db.query(CategoryModel).filter(CategoryModel.id == category_id).first()
        except SQLAlchemyError as e:
            raise self._storage_error("retrieve category", e, table="categories")
        if not category:
            raise NotFoundError("Category not found", resource_type="category", resource_id=category_id)
        return category

    def create_category(self, data: CategoryCreate) -> CategoryModel:
        name = data.name.strip()
        if not name:
            raise ValidationError("Category name cannot be empty", field="name")
        try:
            if self._db.query(CategoryModel).filter(CategoryModel.name == name).first():
                raise ConflictError(f"Category '{name}' already exists", resource_type="category")
            category = CategoryModel(
                name=name,
                slug=data.slug or slugify(name),
                icon=data.icon,
                description=data.description,
                color=data.color
            )
            self._db.add(category)
            self._db.commit()
            self._db.refresh(category)
            logger.info(f"Created category '{name}'")
            return category
        except IntegrityError:
            self._db.rollback()
            raise ConflictError(f"Category '{name}' already exists", resource_type="category")
        except SQLAlchemyError as e:
            raise self._storage_error("create category", e, table="categories")

    def update_category(self, category_id: str, data: CategoryUpdate) -> CategoryModel:
        """Update a category; renaming it also renames the category on its tools."""
        category = self.get_category(category_id)
        values = data.model_dump(exclude_unset=True)
        old_name = category.name

        if "name" in values:
            new_name = (values["name"] or "").strip()
            if not new_name:
                raise ValidationError("Category name cannot be empty", field="name")
            values["name"] = new_name
        else:
            new_name = old_name
        if "slug" in values and not (values["slug"] or "").strip():
            values.pop("slug")

        try:
            if new_name != old_name:
                clash = self._db.query(CategoryModel).filter(
                    CategoryModel.name == new_name, CategoryModel.id != category_id
                ).first()
                if clash:
                    raise ConflictError(f"Category '{new_name}' already exists", resource_type="category")
                self._db.query(ToolModel).filter(ToolModel.category == old_name).update(
                    {ToolModel.category: new_name}, synchronize_session=False
                )

            for key, value in values.items():
                setattr(category, key, value)
            self._db.commit()
            self._db.refresh(category)
            return category
        except SQLAlchemyError as e:
            raise self._storage_error("update category", e, table="categories")

    def delete_category(self, category_id: str) -> None:
        category = self.get_category(category_id)
        name = category.name
        try:
            self._db.delete(category)
            self._db.commit()
            logger.info(f"Deleted category '{name}'")
        except SQLAlchemyError as e:
            raise self._storage_error("delete category", e, table="categories")
