"""Blog endpoints: public reading and admin publishing."""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from ..core.auth import AuthContext
from ..core.blog_manager import BlogManager
from ..core.rate_limit import admin_rate_limiter
from ..models.schemas import BlogPostCreate, BlogPostUpdate, BlogPostOut
from ..storage.database import get_db
from .dependencies import require_admin, record_audit

router = APIRouter(tags=["blog"])


@router.get("/api/blog", summary="List published posts")
async def list_posts(
    category: Optional[str] = None,
    search: Optional[str] = None,
    featured: Optional[bool] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    posts = BlogManager(db).list_posts(
        category=category, search=search, featured=featured, limit=limit, offset=offset
    )
    return {"posts": [BlogPostOut.model_validate(post).model_dump(mode="json") for post in posts]}


@router.get("/api/blog/{slug}", response_model=BlogPostOut, summary="Get a post by slug")
async def get_post(slug: str, db: Session = Depends(get_db)) -> BlogPostOut:
    return BlogPostOut.model_validate(BlogManager(db).get_by_slug(slug, published_only=True))


@router.post(
    "/api/admin/blog",
    response_model=BlogPostOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a post",
    dependencies=[Depends(admin_rate_limiter)]
)
async def create_post(
    payload: BlogPostCreate,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> BlogPostOut:
    post = BlogManager(db).create_post(payload)
    record_audit(db, request, admin, "blog.create", "blog_post", post.id, {"slug": post.slug})
    return BlogPostOut.model_validate(post)


@router.put(
    "/api/admin/blog/{post_id}",
    response_model=BlogPostOut,
    summary="Update a post",
    dependencies=[Depends(admin_rate_limiter)]
)
async def update_post(
    post_id: str,
    payload: BlogPostUpdate,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> BlogPostOut:
    post = BlogManager(db).update_post(post_id, payload)
    record_audit(
        db, request, admin, "blog.update", "blog_post", post_id,
        {"fields": sorted(payload.model_dump(exclude_unset=True))}
    )
    return BlogPostOut.model_validate(post)


@router.delete(
    "/api/admin/blog/{post_id}",
    summary="Delete a post",
    dependencies=[Depends(admin_rate_limiter)]
)
async def delete_post(
    post_id: str,
    request: Request,
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    BlogManager(db).delete_post(post_id)
    record_audit(db, request, admin, "blog.delete", "blog_post", post_id)
    return {"success": True, "message": "Post deleted"}
