"""Request dependencies for the shared client handles.

The handles are created once when the application starts and stored on
``app.state``; routes receive them through these dependencies.
"""

from typing import Annotated

from fastapi import Depends, Request

from usage_dashboard.admin.controller import DashboardController
from usage_dashboard.auth.cognito import CognitoAuth
from usage_dashboard.config import AppConfig


def get_app_config(request: Request) -> AppConfig:
    """Application configuration for this process."""
    return request.app.state.config


def get_controller(request: Request) -> DashboardController:
    """Dashboard controller holding the last successful snapshot."""
    return request.app.state.controller


def get_cognito(request: Request) -> CognitoAuth:
    """Shared Cognito client."""
    return request.app.state.cognito


ConfigDep = Annotated[AppConfig, Depends(get_app_config)]
ControllerDep = Annotated[DashboardController, Depends(get_controller)]
CognitoDep = Annotated[CognitoAuth, Depends(get_cognito)]
