"""Admin module for the usage dashboard.

This module provides the admin functionality for viewing per-user API usage
and approving pending users. It includes:

- UsageRepository: Read usage documents and user profiles from DynamoDB
- DashboardController: Parallel refresh and optimistic approval
- aggregation: Pure functions deriving totals, per-model and per-date views

Routes are defined in usage_dashboard/routes/admin.py and templates in
usage_dashboard/templates/admin/.
"""

from usage_dashboard.admin.repository import UsageRepository, UsageStoreError
from usage_dashboard.admin.controller import DashboardController, DashboardSnapshot

__all__ = ["UsageRepository", "UsageStoreError", "DashboardController", "DashboardSnapshot"]
