"""Data models for the usage admin dashboard."""

from usage_dashboard.models.usage import (
    UsageEntry,
    UserUsageRecord,
    AggregatedUsage,
    UsageByModel,
    UsageByDate,
    parse_timestamp,
)
from usage_dashboard.models.user import AppUser

__all__ = [
    # Usage
    "UsageEntry",
    "UserUsageRecord",
    "AggregatedUsage",
    "UsageByModel",
    "UsageByDate",
    "parse_timestamp",
    # Users
    "AppUser",
]
