"""Usage data models for DynamoDB storage.

This module defines dataclasses for the per-user usage documents read by the
admin dashboard and for the views derived from them. Usage documents are
stored in DynamoDB with user_id as partition key; the bounded list of recent
usage entries is kept as a JSON string attribute.
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime, UTC
from typing import Dict, Any, Optional, List


def parse_timestamp(value: Optional[str], default: Optional[datetime] = None) -> datetime:
    """Parse an ISO 8601 string into a timezone-aware UTC datetime.

    Naive values are treated as UTC. Missing or unparseable values fall back
    to ``default`` (or the current time when no default is given).

    Args:
        value: ISO 8601 timestamp string
        default: Value to return when parsing is not possible

    Returns:
        Timezone-aware datetime in UTC
    """
    if value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                return parsed.replace(tzinfo=UTC)
            return parsed.astimezone(UTC)
        except (TypeError, ValueError):
            pass
    return default if default is not None else datetime.now(UTC)


def _int_attr(item: Dict[str, Any], key: str) -> int:
    """Read a DynamoDB number attribute as int, defaulting to 0."""
    raw = item.get(key, {}).get("N")
    try:
        return int(float(raw)) if raw is not None else 0
    except ValueError:
        return 0


def _float_attr(item: Dict[str, Any], key: str) -> float:
    """Read a DynamoDB number attribute as float, defaulting to 0.0."""
    raw = item.get(key, {}).get("N")
    try:
        return float(raw) if raw is not None else 0.0
    except ValueError:
        return 0.0


@dataclass(frozen=True)
class UsageEntry:
    """One logged batch of API calls.

    Attributes:
        timestamp: When the calls were made (UTC)
        model: Model name the calls were made against
        input_tokens: Prompt tokens
        output_tokens: Completion tokens
        total_tokens: Total tokens
        cost_usd: Cost in US dollars
        calls: Number of calls in the batch
    """
    timestamp: datetime
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float = 0.0
    calls: int = 1

    def __post_init__(self):
        # Naive timestamps are taken as UTC, like parse_timestamp does
        if self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=UTC))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "cost_usd": self.cost_usd,
            "calls": self.calls,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageEntry":
        """Create instance from dictionary.

        Absent numbers default to 0 and an absent or zero call count
        defaults to 1.
        """
        return cls(
            timestamp=parse_timestamp(data.get("timestamp")),
            model=data.get("model") or "unknown",
            input_tokens=data.get("input_tokens") or 0,
            output_tokens=data.get("output_tokens") or 0,
            total_tokens=data.get("total_tokens") or 0,
            cost_usd=data.get("cost_usd") or 0.0,
            calls=data.get("calls") or 1,
        )


@dataclass
class UserUsageRecord:
    """Cumulative usage summary for one user.

    Stored in DynamoDB with user_id as partition key. ``recent_usage`` is the
    bounded trailing log of entries, most recent first; how many entries it
    holds is decided by whoever writes the document.

    Attributes:
        user_id: Partition key - the user the usage belongs to
        total_calls: Cumulative number of API calls
        total_input_tokens: Cumulative input tokens
        total_output_tokens: Cumulative output tokens
        total_tokens: Cumulative tokens (expected input + output, not enforced)
        total_cost_usd: Cumulative cost in USD
        last_updated: When the document was last written
        created_at: When the document was created
        recent_usage: Most recent usage entries, newest first
    """
    user_id: str
    total_calls: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    total_cost_usd: float = 0.0
    last_updated: datetime = field(default_factory=lambda: datetime.now(UTC))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    recent_usage: List[UsageEntry] = field(default_factory=list)

    @property
    def cost_per_call(self) -> float:
        """Average cost of a single call for this user."""
        return self.total_cost_usd / max(self.total_calls, 1)

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            Dictionary suitable for DynamoDB put_item operation
        """
        recent_usage_json = json.dumps([entry.to_dict() for entry in self.recent_usage])

        return {
            "user_id": {"S": self.user_id},
            "total_calls": {"N": str(self.total_calls)},
            "total_input_tokens": {"N": str(self.total_input_tokens)},
            "total_output_tokens": {"N": str(self.total_output_tokens)},
            "total_tokens": {"N": str(self.total_tokens)},
            "total_cost_usd": {"N": str(self.total_cost_usd)},
            "last_updated": {"S": self.last_updated.isoformat()},
            "created_at": {"S": self.created_at.isoformat()},
            "recent_usage": {"S": recent_usage_json},
        }

    @classmethod
    def from_dynamodb_item(cls, item: Dict[str, Any]) -> "UserUsageRecord":
        """Create instance from DynamoDB item.

        Every absent numeric attribute defaults to 0 and every absent
        timestamp defaults to the current time. An unreadable recent_usage
        attribute is treated as empty.

        Args:
            item: DynamoDB item with typed attribute values

        Returns:
            UserUsageRecord instance
        """
        recent_usage_json = item.get("recent_usage", {}).get("S") or "[]"
        try:
            raw_entries = json.loads(recent_usage_json)
        except json.JSONDecodeError:
            raw_entries = []
        recent_usage = [
            UsageEntry.from_dict(entry) for entry in raw_entries if isinstance(entry, dict)
        ]

        return cls(
            user_id=item.get("user_id", {}).get("S", ""),
            total_calls=_int_attr(item, "total_calls"),
            total_input_tokens=_int_attr(item, "total_input_tokens"),
            total_output_tokens=_int_attr(item, "total_output_tokens"),
            total_tokens=_int_attr(item, "total_tokens"),
            total_cost_usd=_float_attr(item, "total_cost_usd"),
            last_updated=parse_timestamp(item.get("last_updated", {}).get("S")),
            created_at=parse_timestamp(item.get("created_at", {}).get("S")),
            recent_usage=recent_usage,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to plain dictionary.

        Returns:
            Dictionary representation of the record
        """
        return {
            "user_id": self.user_id,
            "total_calls": self.total_calls,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_tokens": self.total_tokens,
            "total_cost_usd": self.total_cost_usd,
            "last_updated": self.last_updated.isoformat(),
            "created_at": self.created_at.isoformat(),
            "recent_usage": [entry.to_dict() for entry in self.recent_usage],
        }


@dataclass
class AggregatedUsage:
    """Usage totals across all users.

    Attributes:
        total_calls: Sum of calls across all users
        total_input_tokens: Sum of input tokens
        total_output_tokens: Sum of output tokens
        total_tokens: Sum of all tokens
        total_cost_usd: Sum of cost in USD
        user_count: Number of usage records aggregated
        average_cost_per_user: total_cost_usd / user_count (0 when no users)
        average_cost_per_call: total_cost_usd / total_calls (0 when no calls)
    """
    total_calls: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    total_cost_usd: float = 0.0
    user_count: int = 0
    average_cost_per_user: float = 0.0
    average_cost_per_call: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class UsageByModel:
    """Usage rolled up for one model.

    Attributes:
        model: The model name
        calls: Calls made against this model
        input_tokens: Input tokens for this model
        output_tokens: Output tokens for this model
        total_tokens: Total tokens for this model
        cost_usd: Cost in USD for this model
    """
    model: str
    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class UsageByDate:
    """Usage rolled up for one UTC calendar date.

    Attributes:
        date: Date in YYYY-MM-DD format
        calls: Calls made on this date
        cost_usd: Cost in USD on this date
        tokens: Total tokens on this date
    """
    date: str
    calls: int = 0
    cost_usd: float = 0.0
    tokens: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)
