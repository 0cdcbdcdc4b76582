"""Shared Jinja2 templates configuration.

This module provides a centralized templates instance with the display
formatting helpers registered as filters, so every page formats costs,
token counts and timestamps the same way.
"""

from pathlib import Path
from fastapi.templating import Jinja2Templates

from usage_dashboard.helpers.formatting import (
    format_cost,
    format_tokens,
    format_number,
    format_datetime,
    short_id,
)

# Set up templates directory
BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"

# Create shared templates instance
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

templates.env.filters.update({
    "cost": format_cost,
    "tokens": format_tokens,
    "number": format_number,
    "datetime": format_datetime,
    "short_id": short_id,
})

templates.env.globals.update({
    "app_title": "Usage Dashboard",
    "app_subtitle": "Monitor and track API usage and costs",
})
