"""Authentication routes for the usage dashboard.

This module provides admin sign-in and sign-out using Cognito's direct
InitiateAuth API (no hosted UI required). Login only - no signup or password reset.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Request, Form
from fastapi.responses import RedirectResponse, HTMLResponse

from usage_dashboard.auth.cognito import AuthenticationError
from usage_dashboard.auth.middleware import (
    clear_session_cookies,
    is_local_request,
    set_session_cookies,
)
from usage_dashboard.dependencies import CognitoDep, ConfigDep, ControllerDep
from usage_dashboard.templates_config import templates

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])

ERROR_MESSAGES = {
    "invalid_credentials": "Invalid email or password",
    "session_expired": "Your session has expired. Please sign in again.",
    "invalid_session": "Invalid session. Please sign in again.",
    "no_session": None,
    "auth_failed": "Failed to sign in. Please try again.",
}


@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, config: ConfigDep, error: Optional[str] = None):
    """Render the login page.

    Args:
        request: Incoming request
        config: Application configuration
        error: Optional error code to display

    Returns:
        HTML login page, or a redirect to the dashboard in dev mode
    """
    if config.dev_mode:
        return RedirectResponse(url="/admin/", status_code=302)

    error_message = ERROR_MESSAGES.get(error, ERROR_MESSAGES["auth_failed"]) if error else None

    return templates.TemplateResponse(
        request,
        "login.html",
        {"error": error_message},
    )


@router.post("/login")
async def login(
    request: Request,
    cognito: CognitoDep,
    email: str = Form(...),
    password: str = Form(...),
):
    """Handle login form submission.

    Args:
        request: Incoming request
        cognito: Shared Cognito client
        email: Admin's email address
        password: Admin's password

    Returns:
        Redirect to the dashboard on success, or back to login with error
    """
    try:
        token_response = await cognito.authenticate(email, password)

        # Take the username from the verified token, not the form input
        user_info = cognito.validate_token(
            token_response.access_token,
            verify_exp=True,
            id_token=token_response.id_token,
        )
    except AuthenticationError as e:
        logger.info("Admin sign-in rejected", extra={"error": str(e)})
        return RedirectResponse(
            url="/auth/login?error=invalid_credentials",
            status_code=302,
        )

    session_data = {
        "access_token": token_response.access_token,
        "id_token": token_response.id_token,
        "username": user_info.username or user_info.email or user_info.user_id,
    }

    response = RedirectResponse(url="/admin/", status_code=302)
    set_session_cookies(
        response,
        session_data,
        token_response.refresh_token,
        secure=not is_local_request(request),
    )
    logger.info("Admin signed in", extra={"user_id": user_info.user_id})
    return response


@router.post("/logout")
async def logout(controller: ControllerDep):
    """Sign out by clearing session cookies and the displayed data.

    POST only, and only for a signed-in session, since signing out also
    empties the snapshot every open dashboard reads from.

    Args:
        controller: Dashboard controller

    Returns:
        Redirect to login page
    """
    controller.sign_out()
    response = RedirectResponse(url="/auth/login", status_code=302)
    clear_session_cookies(response)
    return response
