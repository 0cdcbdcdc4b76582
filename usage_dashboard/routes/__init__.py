"""Routes module for the usage dashboard.

This module contains all route handlers organized by functionality.
"""

from usage_dashboard.routes.auth import router as auth_router
from usage_dashboard.routes.admin import router as admin_router

__all__ = ["auth_router", "admin_router"]
