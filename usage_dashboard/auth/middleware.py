"""Session gate for the dashboard.

Every route outside PUBLIC_ROUTES requires a signed-in admin session held in
cookies. Being signed in is the only check made on reads; whether an admin
may approve users is decided by the store's own access policy.
"""

import json
import logging
from typing import Callable, Optional
from fastapi import Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from usage_dashboard.auth.cognito import (
    CognitoAuth,
    TokenExpiredError,
    TokenValidationError,
    AuthenticationError,
    UserInfo,
)

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "usage_dashboard_session"
REFRESH_COOKIE_NAME = f"{SESSION_COOKIE_NAME}_refresh"
SESSION_MAX_AGE = 86400 * 30  # 30 days

# Reachable without a session. Sign-out needs one.
PUBLIC_ROUTES = {
    "/",
    "/health",
    "/auth/login",
    "/docs",
    "/openapi.json",
    "/redoc",
}


def set_session_cookies(
    response: Response,
    session_data: dict,
    refresh_token: Optional[str],
    secure: bool = True,
) -> None:
    """Write the session and refresh-token cookies.

    The refresh token gets its own cookie so the session cookie stays under
    the 4KB browser limit.

    Args:
        response: Response to set cookies on
        session_data: Access token, ID token and username
        refresh_token: Refresh token, if one was issued
        secure: Whether to set the Secure flag
    """
    cookies = {SESSION_COOKIE_NAME: json.dumps(session_data)}
    if refresh_token:
        cookies[REFRESH_COOKIE_NAME] = refresh_token

    for name, value in cookies.items():
        response.set_cookie(
            key=name,
            value=value,
            httponly=True,
            secure=secure,
            samesite="lax",
            max_age=SESSION_MAX_AGE,
        )


def clear_session_cookies(response: Response) -> None:
    """Delete both session cookies."""
    response.delete_cookie(SESSION_COOKIE_NAME)
    response.delete_cookie(REFRESH_COOKIE_NAME)


def is_local_request(request: Request) -> bool:
    """Whether the request came in over localhost, where cookies skip Secure."""
    return request.url.hostname in ("localhost", "127.0.0.1")


def read_session(request: Request) -> Optional[dict]:
    """Decode the session cookie, or None if it is missing or unreadable."""
    raw = request.cookies.get(SESSION_COOKIE_NAME)
    if not raw:
        return None
    try:
        session = json.loads(raw)
    except ValueError:
        return None
    return session if isinstance(session, dict) else None


class AuthMiddleware(BaseHTTPMiddleware):
    """Attaches the signed-in admin to ``request.state.user``.

    Requests without a valid session are sent to the login page, or get a
    JSON 401 on ``/api/`` paths. An expired access token is renewed once
    with the refresh cookie before giving up. In dev mode every request is
    treated as a fixed local admin.

    The Cognito client and configuration are read from ``app.state`` on
    each request so tests can swap them.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in PUBLIC_ROUTES:
            return await call_next(request)

        config = request.app.state.config
        if config.dev_mode:
            request.state.user = UserInfo(
                user_id=config.dev_user_id,
                email="dev@localhost",
                username="dev-admin",
            )
            return await call_next(request)

        is_api = "/api/" in path
        session = read_session(request)
        if not session:
            return self._reject(is_api, "no_session")

        cognito: CognitoAuth = request.app.state.cognito
        try:
            request.state.user = cognito.validate_token(
                session.get("access_token", ""),
                id_token=session.get("id_token"),
            )
        except TokenExpiredError:
            return await self._renew_session(request, call_next, cognito, session, is_api)
        except TokenValidationError:
            return self._reject(is_api, "invalid_session")

        return await call_next(request)

    def _reject(self, is_api: bool, error: str) -> Response:
        """Build the not-signed-in response and drop the session cookies.

        Args:
            is_api: Whether the caller expects JSON
            error: Error code passed on to the login page
        """
        if is_api:
            response = JSONResponse(
                status_code=401,
                content={
                    "detail": "Not signed in",
                    "error": error,
                    "redirect": "/auth/login",
                },
            )
        else:
            response = RedirectResponse(url=f"/auth/login?error={error}", status_code=302)
        clear_session_cookies(response)
        return response

    async def _renew_session(
        self,
        request: Request,
        call_next: Callable,
        cognito: CognitoAuth,
        session: dict,
        is_api: bool,
    ) -> Response:
        """Trade the refresh cookie for new tokens and serve the request.

        The renewed tokens are written onto the handler's response.
        """
        refresh_token = request.cookies.get(REFRESH_COOKIE_NAME)
        username = session.get("username")
        if not refresh_token or not username:
            return self._reject(is_api, "session_expired")

        try:
            tokens = await cognito.refresh_tokens(refresh_token, username)
            request.state.user = cognito.validate_token(
                tokens.access_token,
                id_token=tokens.id_token,
            )
        except AuthenticationError as e:
            logger.info("Session refresh failed", extra={"error": str(e)})
            return self._reject(is_api, "session_expired")

        response = await call_next(request)
        set_session_cookies(
            response,
            {
                "access_token": tokens.access_token,
                "id_token": tokens.id_token,
                "username": username,
            },
            tokens.refresh_token,
            secure=not is_local_request(request),
        )
        return response


def get_current_user(request: Request) -> UserInfo:
    """Return the admin the middleware attached to this request.

    Raises:
        ValueError: If the request never passed through the session gate
    """
    user = getattr(request.state, "user", None)
    if not user:
        raise ValueError("No authenticated user found in request")
    return user
