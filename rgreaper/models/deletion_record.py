"""Deletion record model.

Outcome of one attempted (or dry-run) deletion.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from rgreaper.models.candidate import EntityKind, SelectionStrategy


class DeletionStatus(Enum):
    """Individual deletion status."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DRY_RUN = "dry-run"


@dataclass
class DeletionRecord:
    """Deletion record entity.

    Each record belongs to a DeletionOperation and tracks the outcome for a
    single resource group or resource.

    Validation rules:
        - status=failed: requires error_message
        - status=succeeded or dry-run: no error_code or error_message
        - kind=resource: identity must be a full ARM resource ID

    Attributes:
        record_id: Unique identifier for this record
        operation_id: Parent operation identifier
        identity: Resource group name or ARM resource ID
        kind: Entity kind
        status: Deletion outcome
        timestamp: When deletion was attempted (UTC)
        message: Human-readable outcome line
        strategy: Strategy that selected the entity (optional)
        error_code: Azure error code if failed (optional)
        error_message: Human-readable error if failed (optional)
    """

    record_id: str
    operation_id: str
    identity: str
    kind: EntityKind
    status: DeletionStatus
    timestamp: datetime
    message: str = ""
    strategy: Optional[SelectionStrategy] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def validate(self) -> bool:
        """Validate record invariants.

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        if self.status == DeletionStatus.FAILED:
            if not self.error_message:
                raise ValueError("Failed status requires error_message")
        elif self.error_code or self.error_message:
            raise ValueError(f"{self.status.value} status cannot have an error")

        if self.kind == EntityKind.RESOURCE and not self.identity.startswith("/subscriptions/"):
            raise ValueError("Invalid resource ID format")

        return True
