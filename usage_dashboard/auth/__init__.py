"""Authentication module for the usage dashboard.

This module provides Cognito sign-in, JWT validation, and the middleware
that gates the dashboard behind a signed-in admin session.
"""

from usage_dashboard.auth.cognito import (
    CognitoAuth,
    TokenResponse,
    UserInfo,
    AuthenticationError,
    TokenExpiredError,
    TokenValidationError,
)
from usage_dashboard.auth.middleware import (
    AuthMiddleware,
    SESSION_COOKIE_NAME,
    REFRESH_COOKIE_NAME,
    set_session_cookies,
    clear_session_cookies,
    get_current_user,
)

__all__ = [
    "CognitoAuth",
    "TokenResponse",
    "UserInfo",
    "AuthenticationError",
    "TokenExpiredError",
    "TokenValidationError",
    "AuthMiddleware",
    "SESSION_COOKIE_NAME",
    "REFRESH_COOKIE_NAME",
    "set_session_cookies",
    "clear_session_cookies",
    "get_current_user",
]
