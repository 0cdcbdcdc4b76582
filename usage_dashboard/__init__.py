"""Admin dashboard for per-user API usage, cost reporting and user approval."""

__version__ = "0.1.0"
