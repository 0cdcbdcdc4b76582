"""Main FastAPI application entry point for the usage dashboard."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import RedirectResponse
from dotenv import load_dotenv
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

# Load environment variables from .env file
load_dotenv()

from usage_dashboard import __version__
from usage_dashboard.admin.controller import DashboardController
from usage_dashboard.admin.repository import UsageRepository, create_dynamodb_client
from usage_dashboard.auth.cognito import CognitoAuth
from usage_dashboard.auth.middleware import AuthMiddleware
from usage_dashboard.config import AppConfig, ConfigurationError, get_config
from usage_dashboard.logger import setup_logger
from usage_dashboard.routes.admin import router as admin_router
from usage_dashboard.routes.auth import router as auth_router

logger = logging.getLogger(__name__)


def _initialize_state(app: FastAPI) -> None:
    """Create the shared client handles that were not injected.

    Args:
        app: Application whose state is filled in

    Raises:
        ConfigurationError: If configuration is invalid
    """
    if app.state.config is None:
        app.state.config = get_config()
    config: AppConfig = app.state.config

    setup_logger(level=config.log_level)

    if app.state.controller is None:
        repository = UsageRepository(
            client=create_dynamodb_client(config.aws_region),
            usage_table_name=config.usage_table_name,
            users_table_name=config.users_table_name,
            region=config.aws_region,
        )
        app.state.controller = DashboardController(repository)
    if app.state.cognito is None:
        app.state.cognito = CognitoAuth(config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    try:
        _initialize_state(app)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        raise

    config: AppConfig = app.state.config
    mode = "DEV MODE" if config.dev_mode else "PRODUCTION"
    logger.info(f"[{mode}] Configuration loaded for region: {config.aws_region}")
    if config.dev_mode:
        logger.warning(f"[DEV MODE] Auth bypassed, using user ID: {config.dev_user_id}")

    yield


def create_app(
    config: Optional[AppConfig] = None,
    controller: Optional[DashboardController] = None,
    cognito: Optional[CognitoAuth] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Handles passed in are used as-is; missing ones are created once at
    startup from the environment configuration.

    Args:
        config: Application configuration
        controller: Dashboard controller wrapping the usage repository
        cognito: Cognito auth client

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Usage Admin Dashboard",
        description="Per-user API usage, cost reporting and user approval",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.controller = controller
    app.state.cognito = cognito

    # Add proxy headers middleware (for ALB/reverse proxy HTTPS handling)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

    # Add authentication middleware
    app.add_middleware(AuthMiddleware)

    app.include_router(auth_router)
    app.include_router(admin_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for load balancers."""
        return {"status": "healthy", "version": __version__}

    @app.get("/")
    async def root():
        """Root endpoint - redirects to the dashboard."""
        return RedirectResponse(url="/admin/", status_code=302)

    return app


app = create_app()
