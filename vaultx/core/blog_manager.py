"""Blog Manager for editorial posts."""

from datetime import datetime
from typing import List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from ..models.schemas import BlogPostCreate, BlogPostUpdate, slugify
from ..storage.models import BlogPostModel
from .exceptions import ValidationError, NotFoundError, ConflictError, StorageError
from .logging import get_logger

logger = get_logger(__name__)


class BlogManager:
    """Manages blog posts."""

    def __init__(self, db_session: Session):
        self._db = db_session

    def _storage_error(self, operation: str, error: Exception) -> StorageError:
        self._db.rollback()
        logger.error(f"Database error during {operation}: {str(error)}")
        return StorageError(f"Failed to {operation}", operation=operation, table="blog_posts")

    def _slug_taken(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        query = self._db.query(BlogPostModel.id).filter(BlogPostModel.slug == slug)
        if exclude_id:
            query = query.filter(BlogPostModel.id != exclude_id)
        return query.first() is not None

    def list_posts(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        featured: Optional[bool] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[BlogPostModel]:
        """List published posts newest first."""
        try:
            query = self._db.query(BlogPostModel).filter(BlogPostModel.published_at <= datetime.utcnow())
            if category:
                query = query.filter(BlogPostModel.category == category)
            if search:
                pattern = f"%{search.strip()}%"
                query = query.filter(or_(
                    BlogPostModel.title.ilike(pattern),
                    BlogPostModel.excerpt.ilike(pattern),
                    BlogPostModel.content.ilike(pattern)
                ))
            if featured is not None:
                query = query.filter(BlogPostModel.featured == featured)
            return (
                query.order_by(BlogPostModel.published_at.desc(), BlogPostModel.id)
                .offset(offset).limit(limit).all()
            )
        except SQLAlchemyError as e:
            raise self._storage_error("list posts", e)

    def get_by_slug(self, slug: str, published_only: bool = False) -> BlogPostModel:
        """Look up a post by slug; with published_only, scheduled posts count as missing."""
        try:
            query = self._db.query(BlogPostModel).filter(BlogPostModel.slug == slug)
            if published_only:
                query = query.filter(BlogPostModel.published_at <= datetime.utcnow())
            post = query.first()
        except SQLAlchemyError as e:
            raise self._storage_error("retrieve post", e)
        if not post:
            raise NotFoundError("Post not found", resource_type="blog_post", resource_id=slug)
        return post

    def get_post(self, post_id: str) -> BlogPostModel:
        try:
            post = self._db.query(BlogPostModel).filter(BlogPostModel.id == post_id).first()
        except SQLAlchemyError as e:
            raise self._storage_error("retrieve post", e)
        if not post:
            raise NotFoundError("Post not found", resource_type="blog_post", resource_id=post_id)
        return post

    def create_post(self, data: BlogPostCreate) -> BlogPostModel:
        """
        Create a post; the slug is derived from the title when omitted.

        Raises:
            ValidationError: If no slug can be derived
            ConflictError: If the slug is already used
        """
        slug = slugify(data.slug or data.title)
        if not slug:
            raise ValidationError("Could not derive a slug from the title", field="slug")

        values = data.model_dump(exclude_none=True)
        values["slug"] = slug
        values.setdefault("published_at", datetime.utcnow())

        try:
            if self._slug_taken(slug):
                raise ConflictError(f"A post with slug '{slug}' already exists", resource_type="blog_post")
            post = BlogPostModel(**values)
            self._db.add(post)
            self._db.commit()
            self._db.refresh(post)
        except IntegrityError:
            self._db.rollback()
            raise ConflictError(f"A post with slug '{slug}' already exists", resource_type="blog_post")
        except SQLAlchemyError as e:
            raise self._storage_error("create post", e)

        logger.info(f"Created blog post '{post.title}' ({post.slug})")
        return post

    def update_post(self, post_id: str, data: BlogPostUpdate) -> BlogPostModel:
        post = self.get_post(post_id)
        values = data.model_dump(exclude_unset=True)

        if "slug" in values and values["slug"] is not None:
            values["slug"] = slugify(values["slug"])
            if not values["slug"]:
                raise ValidationError("Slug cannot be empty", field="slug")
        if values.get("title") is not None and not values["title"].strip():
            raise ValidationError("Title cannot be empty", field="title")
        if values.get("content") is not None and not values["content"].strip():
            raise ValidationError("Content cannot be empty", field="content")

        try:
            if values.get("slug") and self._slug_taken(values["slug"], exclude_id=post_id):
                raise ConflictError(f"A post with slug '{values['slug']}' already exists", resource_type="blog_post")
            for key, value in values.items():
                if value is None and key in ("title", "slug", "content", "featured"):
                    continue
                setattr(post, key, value)
            post.updated_at = datetime.utcnow()
            self._db.commit()
            self._db.refresh(post)
        except SQLAlchemyError as e:
            raise self._storage_error("update post", e)

        logger.info(f"Updated blog post {post_id}")
        return post

    def delete_post(self, post_id: str) -> None:
        post = self.get_post(post_id)
        try:
            self._db.delete(post)
            self._db.commit()
        except SQLAlchemyError as e:
            raise self._storage_error("delete post", e)
        logger.info(f"Deleted blog post {post_id}")
