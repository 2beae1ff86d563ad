"""FastAPI route handlers for the Blog API.

This package contains route handlers organized by domain:
- health: Public health check
- auth: Current identity lookup
- users: Owner-only profile access
- admin: Admin-only service metrics
"""

from __future__ import annotations

from blog_api.routes.admin import router as admin_router
from blog_api.routes.auth import router as auth_router
from blog_api.routes.health import router as health_router
from blog_api.routes.users import router as users_router

__all__ = [
    "admin_router",
    "auth_router",
    "health_router",
    "users_router",
]
