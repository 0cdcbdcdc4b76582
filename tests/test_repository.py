"""Unit tests for the usage repository."""

import asyncio
import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from usage_dashboard.admin.repository import UsageRepository, UsageStoreError


def _client_with_pages(*pages):
    """Build a mock DynamoDB client whose scan paginator yields pages."""
    client = MagicMock()
    paginator = MagicMock()
    paginator.paginate.return_value = [{"Items": items} for items in pages]
    client.get_paginator.return_value = paginator
    return client


def _usage_item(user_id, last_updated, cost="1.0"):
    return {
        "user_id": {"S": user_id},
        "total_calls": {"N": "2"},
        "total_cost_usd": {"N": cost},
        "last_updated": {"S": last_updated},
        "recent_usage": {"S": json.dumps([])},
    }


def _user_item(user_id, created_at, approved=False):
    return {
        "user_id": {"S": user_id},
        "email": {"S": f"{user_id}@example.com"},
        "is_approved": {"BOOL": approved},
        "created_at": {"S": created_at},
    }


def _repository(client):
    return UsageRepository(
        client=client,
        usage_table_name="usage-table",
        users_table_name="users-table",
        region="us-east-1",
    )


class TestGetAllUserUsage:
    """Tests for get_all_user_usage."""

    def test_reads_every_page(self):
        """Test that all scan pages are collected."""
        client = _client_with_pages(
            [_usage_item("a", "2025-01-01T00:00:00Z")],
            [_usage_item("b", "2025-01-02T00:00:00Z")],
        )

        records = asyncio.run(_repository(client).get_all_user_usage())

        assert {r.user_id for r in records} == {"a", "b"}
        client.get_paginator.assert_called_once_with("scan")
        client.get_paginator.return_value.paginate.assert_called_once_with(TableName="usage-table")

    def test_sorted_by_last_updated_descending(self):
        """Test most recently updated users come first."""
        client = _client_with_pages([
            _usage_item("old", "2025-01-01T00:00:00Z"),
            _usage_item("new", "2025-01-05T00:00:00Z"),
            _usage_item("mid", "2025-01-03T00:00:00Z"),
        ])

        records = asyncio.run(_repository(client).get_all_user_usage())

        assert [r.user_id for r in records] == ["new", "mid", "old"]

    def test_empty_table(self):
        """Test that an empty table yields an empty list."""
        client = _client_with_pages([])

        assert asyncio.run(_repository(client).get_all_user_usage()) == []

    def test_client_error_is_wrapped(self):
        """Test that DynamoDB errors surface as UsageStoreError."""
        client = MagicMock()
        client.get_paginator.side_effect = ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "not allowed"}},
            "Scan",
        )

        with pytest.raises(UsageStoreError) as exc_info:
            asyncio.run(_repository(client).get_all_user_usage())

        assert exc_info.value.operation == "get_all_user_usage"
        assert exc_info.value.error_code == "AccessDeniedException"
        assert "not allowed" in str(exc_info.value)

    def test_unexpected_error_is_wrapped(self):
        """Test that non-DynamoDB failures also surface as UsageStoreError."""
        client = MagicMock()
        client.get_paginator.side_effect = RuntimeError("connection reset")

        with pytest.raises(UsageStoreError) as exc_info:
            asyncio.run(_repository(client).get_all_user_usage())

        assert exc_info.value.error_code is None
        assert "connection reset" in str(exc_info.value)


class TestGetAllUsers:
    """Tests for get_all_users."""

    def test_sorted_by_created_at_descending(self):
        """Test newest users come first."""
        client = _client_with_pages([
            _user_item("first", "2025-01-01T00:00:00Z"),
            _user_item("latest", "2025-02-01T00:00:00Z", approved=True),
        ])

        users = asyncio.run(_repository(client).get_all_users())

        assert [u.user_id for u in users] == ["latest", "first"]
        assert users[0].is_approved is True
        assert users[1].email == "first@example.com"
        client.get_paginator.return_value.paginate.assert_called_once_with(TableName="users-table")


class TestApproveUser:
    """Tests for approve_user."""

    def test_issues_conditional_update(self):
        """Test the approval write only flips the flag on existing users."""
        client = MagicMock()

        asyncio.run(_repository(client).approve_user("user-1"))

        client.update_item.assert_called_once()
        kwargs = client.update_item.call_args.kwargs
        assert kwargs["TableName"] == "users-table"
        assert kwargs["Key"] == {"user_id": {"S": "user-1"}}
        assert kwargs["UpdateExpression"] == "SET is_approved = :approved"
        assert kwargs["ConditionExpression"] == "attribute_exists(user_id)"
        assert kwargs["ExpressionAttributeValues"] == {":approved": {"BOOL": True}}

    def test_missing_user_raises(self):
        """Test that a failed condition surfaces as UsageStoreError."""
        client = MagicMock()
        client.update_item.side_effect = ClientError(
            {"Error": {"Code": "ConditionalCheckFailedException", "Message": "The conditional request failed"}},
            "UpdateItem",
        )

        with pytest.raises(UsageStoreError) as exc_info:
            asyncio.run(_repository(client).approve_user("ghost"))

        assert exc_info.value.operation == "approve_user"
        assert exc_info.value.error_code == "ConditionalCheckFailedException"


class TestRepositoryDefaults:
    """Tests for table name defaults."""

    def test_table_names_from_environment(self, monkeypatch):
        """Test that table names fall back to environment variables."""
        monkeypatch.setenv("USAGE_TABLE_NAME", "env-usage")
        monkeypatch.setenv("USERS_TABLE_NAME", "env-users")

        repository = UsageRepository(client=MagicMock())

        assert repository.usage_table_name == "env-usage"
        assert repository.users_table_name == "env-users"

    def test_default_table_names(self, monkeypatch):
        """Test the built-in table names."""
        monkeypatch.delenv("USAGE_TABLE_NAME", raising=False)
        monkeypatch.delenv("USERS_TABLE_NAME", raising=False)

        repository = UsageRepository(client=MagicMock())

        assert repository.usage_table_name == "admin-dashboard-usage"
        assert repository.users_table_name == "admin-dashboard-users"
