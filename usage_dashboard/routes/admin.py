"""Admin routes for the usage dashboard.

This module provides the dashboard page, the HTMX panel used for manual and
periodic refresh, the user approval action, and a JSON API exposing the same
views. Every view is recomputed from the controller's snapshot on each
request.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request, Query
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from usage_dashboard.admin.aggregation import (
    USER_SORT_KEYS,
    calculate_aggregated_usage,
    calculate_usage_by_date,
    calculate_usage_by_model,
    get_top_users_by_cost,
    pending_users,
    sort_user_usage,
)
from usage_dashboard.admin.controller import APPROVE_ERROR_MESSAGE, DashboardSnapshot
from usage_dashboard.auth.middleware import get_current_user
from usage_dashboard.config import AppConfig
from usage_dashboard.dependencies import ConfigDep, ControllerDep
from usage_dashboard.templates_config import templates

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

# Recent entries shown per user in the expanded table row
RECENT_ENTRIES_SHOWN = 5

# Error codes carried across the redirect after a plain form post
ACTION_ERROR_MESSAGES = {
    "approve_failed": APPROVE_ERROR_MESSAGE,
}


def _normalize_sort(sort: str) -> str:
    """Fall back to cost ordering for unknown sort options."""
    return sort if sort in USER_SORT_KEYS else "cost"


def _dashboard_context(
    request: Request,
    snapshot: DashboardSnapshot,
    config: AppConfig,
    sort: str,
    error: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the template context for the dashboard.

    Args:
        request: Incoming request
        snapshot: Controller snapshot to render
        config: Application configuration
        sort: Per-user table sort option
        error: Message to show when the snapshot carries none

    Returns:
        Template context with all derived views
    """
    user_usage = snapshot.user_usage
    by_model = calculate_usage_by_model(user_usage)
    by_date = calculate_usage_by_date(user_usage)

    return {
        "user": get_current_user(request),
        "snapshot": snapshot,
        "error": snapshot.error or error,
        "aggregated": calculate_aggregated_usage(user_usage),
        "by_model": by_model,
        "by_date": by_date,
        "top_users": get_top_users_by_cost(user_usage),
        "users_table": sort_user_usage(user_usage, sort),
        "pending": pending_users(snapshot.users),
        "sort": sort,
        "sort_options": list(USER_SORT_KEYS),
        "recent_entries_shown": RECENT_ENTRIES_SHOWN,
        "refresh_interval": config.refresh_interval_seconds,
        "chart_data": {
            "by_model": [m.to_dict() for m in by_model],
            "by_date": [d.to_dict() for d in by_date],
        },
    }


def _is_htmx(request: Request) -> bool:
    return bool(request.headers.get("HX-Request"))


def _render(
    request: Request,
    snapshot: DashboardSnapshot,
    config: AppConfig,
    sort: str,
    error: Optional[str] = None,
):
    """Render the full page, or only the panel for HTMX requests."""
    template = "admin/_panel.html" if _is_htmx(request) else "admin/dashboard.html"
    return templates.TemplateResponse(
        request,
        template,
        _dashboard_context(request, snapshot, config, sort, error),
    )


@router.get("/", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    controller: ControllerDep,
    config: ConfigDep,
    sort: str = Query("cost", description="Per-user sort: cost, calls or tokens"),
    error: Optional[str] = Query(None, description="Error code from a redirected action"),
):
    """Main dashboard page.

    Loading the page triggers a refresh. If the refresh fails the previous
    data is rendered together with the error message.

    Displays:
    - Pending user approvals
    - Overview cards (totals and averages)
    - Cost by model and cost/calls over the last 30 days
    - Per-user usage table
    """
    snapshot = await controller.refresh()
    return _render(
        request,
        snapshot,
        config,
        _normalize_sort(sort),
        ACTION_ERROR_MESSAGES.get(error) if error else None,
    )


@router.get("/panel", response_class=HTMLResponse)
async def dashboard_panel(
    request: Request,
    controller: ControllerDep,
    config: ConfigDep,
    sort: str = Query("cost", description="Per-user sort: cost, calls or tokens"),
):
    """Refresh and return the dashboard panel.

    Used by the Refresh button and by the periodic auto-refresh.
    """
    snapshot = await controller.refresh()
    return templates.TemplateResponse(
        request,
        "admin/_panel.html",
        _dashboard_context(request, snapshot, config, _normalize_sort(sort)),
    )


@router.post("/users/{user_id}/approve", response_class=HTMLResponse)
async def approve_user(
    request: Request,
    user_id: str,
    controller: ControllerDep,
    config: ConfigDep,
    sort: str = Query("cost", description="Per-user sort: cost, calls or tokens"),
):
    """Approve a pending user.

    HTMX requests get the panel re-rendered from the current snapshot
    without a refetch, so a failed approval shows its error message next to
    the unchanged user list. Plain form posts are redirected back to the
    dashboard (303) so reloading the page does not repeat the approval.
    """
    sort = _normalize_sort(sort)
    approved = await controller.approve(user_id)
    if approved:
        logger.info("User approved from dashboard", extra={"user_id": user_id})

    if _is_htmx(request):
        return _render(request, controller.snapshot, config, sort)

    url = f"/admin/?sort={sort}"
    if not approved:
        url += "&error=approve_failed"
    return RedirectResponse(url=url, status_code=303)


@router.get("/api/usage")
async def api_usage(controller: ControllerDep) -> Dict[str, Any]:
    """JSON API endpoint for all dashboard views.

    Triggers a refresh and returns the resulting snapshot. When the refresh
    fails the previous data is returned with ``error`` set.

    Returns:
        JSON object with:
        - aggregate
        - by_model
        - by_date
        - top_users
        - users
        - pending_users
        - last_updated
        - error
    """
    snapshot = await controller.refresh()
    user_usage = snapshot.user_usage

    return {
        "aggregate": calculate_aggregated_usage(user_usage).to_dict(),
        "by_model": [m.to_dict() for m in calculate_usage_by_model(user_usage)],
        "by_date": [d.to_dict() for d in calculate_usage_by_date(user_usage)],
        "top_users": [r.to_dict() for r in get_top_users_by_cost(user_usage)],
        "users": [r.to_dict() for r in user_usage],
        "pending_users": [u.to_dict() for u in pending_users(snapshot.users)],
        "last_updated": snapshot.last_updated.isoformat() if snapshot.last_updated else None,
        "error": snapshot.error,
    }


@router.post("/api/users/{user_id}/approve")
async def api_approve_user(user_id: str, controller: ControllerDep):
    """JSON API endpoint for approving a user.

    Returns:
        200 with the approved user ID, or 502 if the store rejected the write
    """
    if not await controller.approve(user_id):
        return JSONResponse(
            status_code=502,
            content={"detail": APPROVE_ERROR_MESSAGE, "user_id": user_id},
        )
    return {"user_id": user_id, "is_approved": True}
