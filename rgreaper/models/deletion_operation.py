"""Deletion operation model.

Represents the reap of a single subscription: selection traces, candidates and
deletion outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from rgreaper.models.candidate import DeletionCandidateSet, EntityKind, TraceEntry
from rgreaper.models.deletion_record import DeletionRecord, DeletionStatus
from rgreaper.models.metadata import AccountContext


class OperationMode(Enum):
    """Operation execution mode."""

    DRY_RUN = "dry-run"
    EXECUTE = "execute"


class OperationStatus(Enum):
    """Operation status.

    State transitions:
        planned (dry-run, or selection only)
        planned → completed (all deletions succeeded)
        planned → partial (some deletions failed)
        planned → failed (metadata fetch failed, or every deletion failed)
    """

    PLANNED = "planned"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class DeletionOperation:
    """Per-subscription reap result.

    Attributes:
        operation_id: Unique identifier for the operation
        account: Subscription processed
        timestamp: When the operation was initiated (UTC)
        mode: dry-run or execute
        status: Final status
        traces: Selection trace entries, in evaluation order
        group_candidates: Resource groups selected for deletion
        resource_candidates: Standalone resources selected for deletion
        records: Deletion outcomes, groups first
        error: Account-level error (metadata fetch failure)
        started_at: When processing started (optional)
        completed_at: When processing completed (optional)
        duration_seconds: Total duration (optional)
    """

    operation_id: str
    account: AccountContext
    timestamp: datetime
    mode: OperationMode
    status: OperationStatus = OperationStatus.PLANNED
    traces: list[TraceEntry] = field(default_factory=list)
    group_candidates: DeletionCandidateSet = field(
        default_factory=lambda: DeletionCandidateSet(EntityKind.RESOURCE_GROUP)
    )
    resource_candidates: DeletionCandidateSet = field(
        default_factory=lambda: DeletionCandidateSet(EntityKind.RESOURCE)
    )
    records: list[DeletionRecord] = field(default_factory=list)
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    @property
    def total_candidates(self) -> int:
        return len(self.group_candidates) + len(self.resource_candidates)

    @property
    def succeeded_count(self) -> int:
        return sum(1 for r in self.records if r.status == DeletionStatus.SUCCEEDED)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.records if r.status == DeletionStatus.FAILED)

    @property
    def dry_run_count(self) -> int:
        return sum(1 for r in self.records if r.status == DeletionStatus.DRY_RUN)

    def finalize_status(self) -> OperationStatus:
        """Derive the final status from the deletion records."""
        if self.error:
            self.status = OperationStatus.FAILED
        elif self.mode == OperationMode.DRY_RUN:
            self.status = OperationStatus.PLANNED
        elif self.failed_count > 0:
            self.status = OperationStatus.PARTIAL if self.succeeded_count > 0 else OperationStatus.FAILED
        else:
            self.status = OperationStatus.COMPLETED
        return self.status

    def validate(self) -> bool:
        """Validate operation invariants.

        Validation rules:
            - every candidate has at most one record
            - completed_at must be after started_at
            - dry-run mode must have planned or failed status
            - dry-run mode cannot have succeeded records

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        if len(self.records) > self.total_candidates:
            raise ValueError("More deletion records than candidates")

        if self.completed_at and self.started_at:
            if self.completed_at < self.started_at:
                raise ValueError("Completion time before start time")

        if self.mode == OperationMode.DRY_RUN:
            if self.status not in (OperationStatus.PLANNED, OperationStatus.FAILED):
                raise ValueError("Dry-run mode must have planned status")
            if self.succeeded_count > 0:
                raise ValueError("Dry-run mode cannot delete resources")

        return True
