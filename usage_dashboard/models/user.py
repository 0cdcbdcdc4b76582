"""Application user data model for DynamoDB storage.

Users are created outside the dashboard. The only change the dashboard ever
makes to a user is flipping ``is_approved`` from false to true.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, UTC
from typing import Dict, Any, Optional

from usage_dashboard.models.usage import parse_timestamp


@dataclass
class AppUser:
    """An account that an admin can approve.

    Attributes:
        user_id: Partition key - identifier of the user item
        email: User's email address
        username: Display name
        is_approved: Whether an admin has approved the account
        created_at: When the account was created
    """
    user_id: str
    email: Optional[str] = None
    username: Optional[str] = None
    is_approved: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def approved(self) -> "AppUser":
        """Return a copy of this user with the approval flag set."""
        return replace(self, is_approved=True)

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            Dictionary suitable for DynamoDB put_item operation
        """
        item = {
            "user_id": {"S": self.user_id},
            "is_approved": {"BOOL": self.is_approved},
            "created_at": {"S": self.created_at.isoformat()},
        }
        if self.email:
            item["email"] = {"S": self.email}
        if self.username:
            item["username"] = {"S": self.username}
        return item

    @classmethod
    def from_dynamodb_item(cls, item: Dict[str, Any]) -> "AppUser":
        """Create instance from DynamoDB item.

        ``created_at`` is stored as a plain ISO string, not a number.

        Args:
            item: DynamoDB item with typed attribute values

        Returns:
            AppUser instance
        """
        return cls(
            user_id=item.get("user_id", {}).get("S", ""),
            email=item.get("email", {}).get("S"),
            username=item.get("username", {}).get("S"),
            is_approved=item.get("is_approved", {}).get("BOOL", False),
            created_at=parse_timestamp(item.get("created_at", {}).get("S")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "user_id": self.user_id,
            "email": self.email,
            "username": self.username,
            "is_approved": self.is_approved,
            "created_at": self.created_at.isoformat(),
        }
