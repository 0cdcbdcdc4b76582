"""Aggregation of per-user usage records into dashboard views.

All functions here are pure: they take the records fetched by the
repository and return freshly computed views. Nothing is cached between
calls.

The per-model and per-date rollups only see the entries kept in each
record's ``recent_usage`` window, not the cumulative totals. Their sums are
therefore totals of recently retained activity, not full history.
"""

from collections import defaultdict
from datetime import datetime, timedelta, UTC
from typing import Dict, Iterable, List, Optional

from usage_dashboard.models.usage import (
    AggregatedUsage,
    UsageByDate,
    UsageByModel,
    UserUsageRecord,
)
from usage_dashboard.models.user import AppUser

# Trailing window for the per-date rollup
USAGE_WINDOW_DAYS = 30

DEFAULT_TOP_USERS = 10

# Sort options offered by the per-user table
USER_SORT_KEYS = {
    "cost": lambda r: r.total_cost_usd,
    "calls": lambda r: r.total_calls,
    "tokens": lambda r: r.total_tokens,
}


def calculate_aggregated_usage(records: List[UserUsageRecord]) -> AggregatedUsage:
    """Sum usage across all users.

    Args:
        records: Usage records to aggregate (order does not matter)

    Returns:
        AggregatedUsage with totals and averages; all zero for empty input
    """
    aggregated = AggregatedUsage(user_count=len(records))

    for record in records:
        aggregated.total_calls += record.total_calls
        aggregated.total_input_tokens += record.total_input_tokens
        aggregated.total_output_tokens += record.total_output_tokens
        aggregated.total_tokens += record.total_tokens
        aggregated.total_cost_usd += record.total_cost_usd

    aggregated.average_cost_per_user = (
        aggregated.total_cost_usd / aggregated.user_count
        if aggregated.user_count > 0 else 0.0
    )
    aggregated.average_cost_per_call = (
        aggregated.total_cost_usd / aggregated.total_calls
        if aggregated.total_calls > 0 else 0.0
    )

    return aggregated


def calculate_usage_by_model(records: List[UserUsageRecord]) -> List[UsageByModel]:
    """Roll up recent usage entries by model name.

    Args:
        records: Usage records whose recent entries are rolled up

    Returns:
        One UsageByModel per model seen, sorted by cost descending
    """
    model_data: Dict[str, UsageByModel] = {}

    for record in records:
        for entry in record.recent_usage:
            stats = model_data.get(entry.model)
            if stats is None:
                stats = model_data[entry.model] = UsageByModel(model=entry.model)

            stats.calls += entry.calls
            stats.input_tokens += entry.input_tokens
            stats.output_tokens += entry.output_tokens
            stats.total_tokens += entry.total_tokens
            stats.cost_usd += entry.cost_usd

    # sorted() is stable, so equal costs keep first-seen order
    return sorted(model_data.values(), key=lambda m: m.cost_usd, reverse=True)


def calculate_usage_by_date(
    records: List[UserUsageRecord],
    now: Optional[datetime] = None,
) -> List[UsageByDate]:
    """Roll up recent usage entries by UTC calendar date.

    Only entries at or after ``now - USAGE_WINDOW_DAYS`` are counted. The
    cutoff compares full timestamps; only the bucket key is truncated to a
    date. Dates without entries are omitted.

    Args:
        records: Usage records whose recent entries are rolled up
        now: Reference time (defaults to the current UTC time; naive values
            are taken as UTC)

    Returns:
        One UsageByDate per date with qualifying entries, oldest first
    """
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    cutoff = now - timedelta(days=USAGE_WINDOW_DAYS)

    date_data: Dict[str, Dict] = defaultdict(lambda: {
        "calls": 0,
        "cost_usd": 0.0,
        "tokens": 0,
    })

    for record in records:
        for entry in record.recent_usage:
            if entry.timestamp < cutoff:
                continue
            date_key = entry.timestamp.astimezone(UTC).date().isoformat()
            date_data[date_key]["calls"] += entry.calls
            date_data[date_key]["cost_usd"] += entry.cost_usd
            date_data[date_key]["tokens"] += entry.total_tokens

    return [
        UsageByDate(date=date_key, **data)
        for date_key, data in sorted(date_data.items())
    ]


def get_top_users_by_cost(
    records: List[UserUsageRecord],
    n: int = DEFAULT_TOP_USERS,
) -> List[UserUsageRecord]:
    """Return the ``n`` users with the highest total cost.

    Args:
        records: Usage records to rank
        n: Number of users to return

    Returns:
        Up to ``n`` records sorted by total cost descending
    """
    return sorted(records, key=lambda r: r.total_cost_usd, reverse=True)[:n]


def sort_user_usage(
    records: List[UserUsageRecord],
    sort_by: str = "cost",
) -> List[UserUsageRecord]:
    """Sort usage records for the per-user table.

    Args:
        records: Usage records to sort
        sort_by: One of "cost", "calls" or "tokens"

    Returns:
        New list sorted descending by the chosen field

    Raises:
        ValueError: If sort_by is not a known sort key
    """
    try:
        key = USER_SORT_KEYS[sort_by]
    except KeyError:
        raise ValueError(f"Unknown sort key: {sort_by}")
    return sorted(records, key=key, reverse=True)


def pending_users(users: Iterable[AppUser]) -> List[AppUser]:
    """Users still waiting for approval."""
    return [user for user in users if not user.is_approved]
