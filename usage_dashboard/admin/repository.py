"""Usage repository for reading usage documents and user profiles.

This module provides the UsageRepository class, which reads per-user usage
documents and user profiles from DynamoDB and performs the single approval
write the dashboard supports.
"""

import asyncio
import logging
import os
from typing import Any, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from usage_dashboard.models.usage import UserUsageRecord
from usage_dashboard.models.user import AppUser

logger = logging.getLogger(__name__)

DEFAULT_USAGE_TABLE_NAME = "admin-dashboard-usage"
DEFAULT_USERS_TABLE_NAME = "admin-dashboard-users"


class UsageStoreError(Exception):
    """Raised when the usage store cannot complete an operation.

    Attributes:
        operation: Name of the repository operation that failed
        error_code: DynamoDB error code, when the failure came from DynamoDB
    """

    def __init__(self, operation: str, message: str, error_code: Optional[str] = None):
        self.operation = operation
        self.error_code = error_code
        super().__init__(message)


def create_dynamodb_client(region: str) -> Any:
    """Create a DynamoDB client with adaptive retries.

    The client is created once at startup and shared by everything that
    talks to the store.

    Args:
        region: AWS region

    Returns:
        boto3 DynamoDB client
    """
    boto_config = Config(
        region_name=region,
        retries={"max_attempts": 3, "mode": "adaptive"},
    )
    return boto3.client("dynamodb", config=boto_config)


class UsageRepository:
    """Repository for usage documents and user profiles.

    Reads never return partial results: any failure is raised as
    UsageStoreError so the caller can report it and keep its previous data.
    """

    def __init__(
        self,
        client: Any = None,
        usage_table_name: Optional[str] = None,
        users_table_name: Optional[str] = None,
        region: Optional[str] = None,
    ):
        """Initialize the usage repository.

        Args:
            client: DynamoDB client (created from region if not provided)
            usage_table_name: Usage table (defaults to USAGE_TABLE_NAME env var)
            users_table_name: Users table (defaults to USERS_TABLE_NAME env var)
            region: AWS region (defaults to AWS_REGION env var)
        """
        self.usage_table_name = usage_table_name or os.environ.get(
            "USAGE_TABLE_NAME", DEFAULT_USAGE_TABLE_NAME
        )
        self.users_table_name = users_table_name or os.environ.get(
            "USERS_TABLE_NAME", DEFAULT_USERS_TABLE_NAME
        )
        self.region = region or os.environ.get("AWS_REGION", "us-east-1")
        self._client = client or create_dynamodb_client(self.region)

    async def get_all_user_usage(self) -> List[UserUsageRecord]:
        """Get every user's usage document, most recently updated first.

        Returns:
            List of usage records sorted by last_updated descending

        Raises:
            UsageStoreError: If the table cannot be read
        """
        items = await self._run("get_all_user_usage", self._scan_all_sync, self.usage_table_name)
        records = [UserUsageRecord.from_dynamodb_item(item) for item in items]
        records.sort(key=lambda r: r.last_updated, reverse=True)
        logger.info("Fetched usage records", extra={"count": len(records)})
        return records

    async def get_all_users(self) -> List[AppUser]:
        """Get every user profile, newest first.

        Returns:
            List of users sorted by created_at descending

        Raises:
            UsageStoreError: If the table cannot be read
        """
        items = await self._run("get_all_users", self._scan_all_sync, self.users_table_name)
        users = [AppUser.from_dynamodb_item(item) for item in items]
        users.sort(key=lambda u: u.created_at, reverse=True)
        logger.info("Fetched user profiles", extra={"count": len(users)})
        return users

    async def approve_user(self, user_id: str) -> None:
        """Set a user's approval flag to true.

        The update is conditional on the user existing so an unknown ID
        never creates a new item.

        Args:
            user_id: The user to approve

        Raises:
            UsageStoreError: If the update is rejected or fails
        """
        await self._run("approve_user", self._approve_user_sync, user_id)
        logger.info("Approved user", extra={"user_id": user_id})

    async def _run(self, operation: str, func, *args):
        """Run a blocking DynamoDB call in the default executor.

        Args:
            operation: Operation name used in logs and errors
            func: Synchronous callable to run
            *args: Arguments for func

        Returns:
            Whatever func returns

        Raises:
            UsageStoreError: Wrapping any failure raised by func
        """
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, func, *args)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            error_message = e.response.get("Error", {}).get("Message", str(e))
            logger.error(
                "Usage store operation failed (DynamoDB error)",
                extra={
                    "operation": operation,
                    "error_code": error_code,
                    "error_message": error_message,
                },
            )
            raise UsageStoreError(operation, error_message, error_code) from e
        except Exception as e:
            logger.error(
                "Usage store operation failed (unexpected error)",
                extra={"operation": operation, "error": str(e)},
            )
            raise UsageStoreError(operation, str(e)) from e

    def _scan_all_sync(self, table_name: str) -> List[dict]:
        """Synchronous helper to scan a whole table.

        Args:
            table_name: Table to scan

        Returns:
            List of DynamoDB items
        """
        items = []
        paginator = self._client.get_paginator("scan")

        for page in paginator.paginate(TableName=table_name):
            items.extend(page.get("Items", []))

        return items

    def _approve_user_sync(self, user_id: str) -> None:
        """Synchronous helper to flip the approval flag.

        Args:
            user_id: The user to approve
        """
        self._client.update_item(
            TableName=self.users_table_name,
            Key={"user_id": {"S": user_id}},
            UpdateExpression="SET is_approved = :approved",
            ConditionExpression="attribute_exists(user_id)",
            ExpressionAttributeValues={":approved": {"BOOL": True}},
        )
