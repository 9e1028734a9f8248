"""HTTP API routers."""

from . import admin, analytics, blog, contact, health, reviews, tools, user, workflows

ROUTERS = [
    health.router,
    tools.router,
    reviews.router,
    user.router,
    blog.router,
    contact.router,
    analytics.router,
    admin.router,
    workflows.router,
]

__all__ = ["ROUTERS"]
