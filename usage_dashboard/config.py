"""Configuration module with environment variable validation.

This module provides configuration management for the usage dashboard,
loading settings from environment variables and validating required values.
"""

import os
from dataclasses import dataclass
from typing import Optional
from functools import lru_cache


class ConfigurationError(Exception):
    """Raised when a required configuration variable is missing or invalid."""

    def __init__(self, variable_name: str, message: Optional[str] = None):
        self.variable_name = variable_name
        if message:
            super().__init__(f"{variable_name}: {message}")
        else:
            super().__init__(f"Required environment variable '{variable_name}' is missing or empty")


@dataclass(frozen=True)
class AppConfig:
    """Application configuration loaded from environment variables.

    Attributes:
        cognito_user_pool_id: The Cognito User Pool ID
        cognito_client_id: The Cognito app client ID
        cognito_client_secret: The Cognito app client secret
        aws_region: The AWS region for services
        usage_table_name: DynamoDB table holding one usage document per user
        users_table_name: DynamoDB table holding user profiles
        refresh_interval_seconds: Dashboard auto-refresh period (0 disables)
        log_level: Log level for the application logger
        dev_mode: Enable development mode (bypasses auth)
        dev_user_id: User ID to use in dev mode
    """

    cognito_user_pool_id: str
    cognito_client_id: str
    cognito_client_secret: str
    aws_region: str
    usage_table_name: str = "admin-dashboard-usage"
    users_table_name: str = "admin-dashboard-users"
    refresh_interval_seconds: int = 60
    log_level: str = "INFO"
    dev_mode: bool = False
    dev_user_id: str = "dev-admin-001"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load configuration from environment variables.

        Returns:
            AppConfig instance with values from environment

        Raises:
            ConfigurationError: If a required environment variable is missing or invalid
        """
        dev_mode = os.environ.get("DEV_MODE", "").lower() in ("true", "1", "yes")
        dev_user_id = os.environ.get("DEV_USER_ID", "dev-admin-001").strip()

        # In dev mode, Cognito vars are optional
        if dev_mode:
            cognito_user_pool_id = os.environ.get("COGNITO_USER_POOL_ID", "").strip() or "dev-pool"
            cognito_client_id = os.environ.get("COGNITO_CLIENT_ID", "").strip() or "dev-client"
            cognito_client_secret = os.environ.get("COGNITO_CLIENT_SECRET", "").strip() or "dev-secret"
        else:
            cognito_user_pool_id = os.environ.get("COGNITO_USER_POOL_ID", "").strip()
            if not cognito_user_pool_id:
                raise ConfigurationError("COGNITO_USER_POOL_ID")
            cognito_client_id = os.environ.get("COGNITO_CLIENT_ID", "").strip()
            if not cognito_client_id:
                raise ConfigurationError("COGNITO_CLIENT_ID")
            cognito_client_secret = os.environ.get("COGNITO_CLIENT_SECRET", "").strip()
            if not cognito_client_secret:
                raise ConfigurationError("COGNITO_CLIENT_SECRET")

        aws_region = os.environ.get("AWS_REGION", "").strip()
        if not aws_region:
            raise ConfigurationError("AWS_REGION")

        refresh_raw = os.environ.get("DASHBOARD_REFRESH_SECONDS", "60").strip()
        try:
            refresh_interval_seconds = int(refresh_raw)
        except ValueError:
            raise ConfigurationError("DASHBOARD_REFRESH_SECONDS", f"expected an integer, got '{refresh_raw}'")
        if refresh_interval_seconds < 0:
            raise ConfigurationError("DASHBOARD_REFRESH_SECONDS", "must not be negative")

        return cls(
            cognito_user_pool_id=cognito_user_pool_id,
            cognito_client_id=cognito_client_id,
            cognito_client_secret=cognito_client_secret,
            aws_region=aws_region,
            usage_table_name=os.environ.get("USAGE_TABLE_NAME", "").strip() or "admin-dashboard-usage",
            users_table_name=os.environ.get("USERS_TABLE_NAME", "").strip() or "admin-dashboard-users",
            refresh_interval_seconds=refresh_interval_seconds,
            log_level=os.environ.get("LOG_LEVEL", "INFO").strip() or "INFO",
            dev_mode=dev_mode,
            dev_user_id=dev_user_id,
        )


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get the application configuration (cached).

    Returns:
        AppConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    return AppConfig.from_env()
