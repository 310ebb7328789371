"""Resource metadata models.

Read-only views of the Azure metadata the reaper works from: subscriptions,
resource groups and individually tagged resources.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


def identity_key(identity: str) -> str:
    """Normalize an identity for comparisons.

    ARM resource group names and resource ids are case-insensitive.
    """
    return identity.casefold()


@dataclass(frozen=True)
class AccountContext:
    """Subscription currently being processed.

    Attributes:
        subscription_id: Azure subscription ID (GUID)
        display_name: Human-readable subscription name (optional)
    """

    subscription_id: str
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        if self.display_name:
            return f"{self.display_name} ({self.subscription_id})"
        return self.subscription_id


@dataclass
class ResourceGroupMetadata:
    """Resource group metadata entity.

    Attributes:
        name: Resource group name (unique within a subscription)
        tags: Resource group tags
        created_time: When the group was created (None if not reported)
        location: Azure region of the group (optional)
    """

    name: str
    tags: dict[str, str] = field(default_factory=dict)
    created_time: Optional[datetime] = None
    location: Optional[str] = None

    @property
    def identity(self) -> str:
        return self.name

    def validate(self) -> bool:
        """Validate resource group invariants.

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        if not self.name:
            raise ValueError("Resource group name cannot be empty")

        if not isinstance(self.tags, dict):
            raise ValueError("Tags must be a dictionary")

        return True


@dataclass
class ResourceMetadata:
    """Individually tagged resource entity.

    The owning resource group is referenced by name only; it may not be part of
    the current fetch.

    Attributes:
        resource_id: Full ARM resource ID
        name: Resource name
        resource_group_name: Name of the owning resource group
        tags: Resource tags
        created_time: When the resource was created (None if not reported)
        resource_type: ARM resource type (e.g., "Microsoft.Storage/storageAccounts")
    """

    resource_id: str
    name: str
    resource_group_name: str
    tags: dict[str, str] = field(default_factory=dict)
    created_time: Optional[datetime] = None
    resource_type: Optional[str] = None

    @property
    def identity(self) -> str:
        return self.resource_id

    def validate(self) -> bool:
        """Validate resource invariants.

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        if not self.resource_id.startswith("/subscriptions/"):
            raise ValueError("Invalid resource ID format")

        if not self.resource_group_name:
            raise ValueError("Resource group name cannot be empty")

        return True
