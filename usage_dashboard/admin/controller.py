"""Dashboard controller holding the last successful fetch.

The controller is the only stateful piece of the dashboard. It refreshes
usage records and user profiles together, keeps the last successful
snapshot in memory, and applies approvals optimistically with rollback.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import List, Optional

from usage_dashboard.admin.repository import UsageRepository, UsageStoreError
from usage_dashboard.models.usage import UserUsageRecord
from usage_dashboard.models.user import AppUser

logger = logging.getLogger(__name__)

FETCH_ERROR_MESSAGE = "Failed to fetch dashboard data"
APPROVE_ERROR_MESSAGE = "Failed to approve user. Do you have admin permissions?"


@dataclass
class DashboardSnapshot:
    """In-memory state rendered by the dashboard.

    Attributes:
        user_usage: Usage records from the last successful refresh
        users: User profiles from the last successful refresh
        last_updated: When the last successful refresh finished
        error: Message describing the most recent failure, if any
    """
    user_usage: List[UserUsageRecord] = field(default_factory=list)
    users: List[AppUser] = field(default_factory=list)
    last_updated: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def has_data(self) -> bool:
        """Whether at least one refresh has succeeded."""
        return self.last_updated is not None


class DashboardController:
    """Coordinates refreshes and approvals against the usage repository.

    Overlapping refreshes are allowed; whichever settles last wins.
    """

    def __init__(self, repository: UsageRepository):
        """Initialize the controller.

        Args:
            repository: Repository used for reads and the approval write
        """
        self.repository = repository
        self.snapshot = DashboardSnapshot()

    async def refresh(self) -> DashboardSnapshot:
        """Fetch usage records and user profiles in parallel.

        Both reads must succeed for the snapshot to change. On failure the
        previous data stays in place and the error message is set.

        Returns:
            The current snapshot
        """
        try:
            user_usage, users = await asyncio.gather(
                self.repository.get_all_user_usage(),
                self.repository.get_all_users(),
            )
        except UsageStoreError as e:
            logger.error(
                "Dashboard refresh failed",
                extra={"operation": e.operation, "error": str(e)},
            )
            self.snapshot.error = f"{FETCH_ERROR_MESSAGE}: {e}"
            return self.snapshot

        self.snapshot = DashboardSnapshot(
            user_usage=user_usage,
            users=users,
            last_updated=datetime.now(UTC),
        )
        return self.snapshot

    async def approve(self, user_id: str) -> bool:
        """Approve a user, patching the snapshot before the write lands.

        If the write fails only the entry this call patched is rolled back,
        on whatever list is current by then, so approvals of other users and
        refreshes that settled during the write are kept. Failures are not
        retried.

        Args:
            user_id: The user to approve

        Returns:
            True if the store accepted the approval
        """
        original = next((u for u in self.snapshot.users if u.user_id == user_id), None)
        patched = original.approved() if original is not None else None
        self._swap(original, patched)

        try:
            await self.repository.approve_user(user_id)
        except UsageStoreError as e:
            logger.error(
                "Failed to approve user",
                extra={"user_id": user_id, "error_code": e.error_code, "error": str(e)},
            )
            # A refresh that replaced the patched entry already reflects the store
            self._swap(patched, original)
            self.snapshot.error = APPROVE_ERROR_MESSAGE
            return False

        return True

    def _swap(self, old: Optional[AppUser], new: Optional[AppUser]) -> None:
        """Replace the entry that is ``old`` (by identity) with ``new``."""
        if old is None:
            return
        self.snapshot.users = [new if user is old else user for user in self.snapshot.users]

    def sign_out(self) -> None:
        """Drop all displayed data."""
        self.snapshot = DashboardSnapshot()
