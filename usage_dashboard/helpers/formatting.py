"""Display formatting helpers registered as Jinja2 filters.

These only shape values for display; aggregation never depends on them.
"""

from datetime import datetime, UTC
from typing import Optional


def format_cost(amount: float) -> str:
    """Format a dollar amount.

    Amounts below one cent keep four decimals so small per-call costs stay
    visible.

    Examples: "$12.50", "$0.0042", "$0.00"
    """
    amount = amount or 0.0
    if 0 < abs(amount) < 0.01:
        return f"${amount:.4f}"
    return f"${amount:,.2f}"


def format_tokens(count: int) -> str:
    """Format a token count with K/M suffixes for readability."""
    count = count or 0
    if count < 1000:
        return str(count)
    if count < 1_000_000:
        return f"{count / 1000:.1f}K"
    return f"{count / 1_000_000:.1f}M"


def format_number(value: int) -> str:
    """Format an integer with thousands separators."""
    return f"{value or 0:,}"


def format_datetime(value: Optional[datetime]) -> str:
    """Format a datetime as a readable UTC date and time.

    Example: "Jan 03, 2025, 14:30"
    """
    if value is None:
        return ""
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime("%b %d, %Y, %H:%M")


def short_id(value: str, length: int = 12) -> str:
    """Truncate an identifier for table display."""
    if not value or len(value) <= length:
        return value or ""
    return f"{value[:length]}..."
