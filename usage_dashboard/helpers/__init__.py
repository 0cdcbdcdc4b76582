"""Helper functions for templates."""

from usage_dashboard.helpers.formatting import (
    format_cost,
    format_tokens,
    format_number,
    format_datetime,
    short_id,
)

__all__ = [
    "format_cost",
    "format_tokens",
    "format_number",
    "format_datetime",
    "short_id",
]
