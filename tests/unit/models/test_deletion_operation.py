"""Tests for DeletionOperation model.

Test coverage for per-subscription operation status derivation and validation.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from rgreaper.models.candidate import DeletionCandidate, EntityKind, SelectionStrategy
from rgreaper.models.deletion_operation import DeletionOperation, OperationMode, OperationStatus
from rgreaper.models.deletion_record import DeletionRecord, DeletionStatus
from rgreaper.models.metadata import AccountContext
from rgreaper.models.verdict import ExpirationVerdict
from tests.fixtures.metadata import create_resource_group

STARTED = datetime(2025, 11, 11, 10, 0, 0, tzinfo=timezone.utc)


def _operation(mode: OperationMode = OperationMode.EXECUTE, groups: int = 0) -> DeletionOperation:
    operation = DeletionOperation(
        operation_id="op_123",
        account=AccountContext(subscription_id="sub-1"),
        timestamp=STARTED,
        mode=mode,
    )
    for i in range(groups):
        operation.group_candidates.add(
            DeletionCandidate(
                entity=create_resource_group(f"rg-{i}", age_days=10),
                kind=EntityKind.RESOURCE_GROUP,
                strategy=SelectionStrategy.NAME_MATCH,
                verdict=ExpirationVerdict(expired=True, pinned=False, remaining_days=-7.0),
            )
        )
    return operation


def _record(identity: str, status: DeletionStatus) -> DeletionRecord:
    return DeletionRecord(
        record_id=f"rec_{identity}",
        operation_id="op_123",
        identity=identity,
        kind=EntityKind.RESOURCE_GROUP,
        status=status,
        timestamp=STARTED,
        error_message="boom" if status == DeletionStatus.FAILED else None,
    )


class TestDeletionOperation:
    """Test suite for DeletionOperation model."""

    def test_defaults(self) -> None:
        operation = _operation()

        assert operation.status == OperationStatus.PLANNED
        assert operation.total_candidates == 0
        assert operation.records == []
        assert operation.traces == []
        assert operation.error is None

    def test_counts(self) -> None:
        operation = _operation(groups=3)
        operation.records = [
            _record("rg-0", DeletionStatus.SUCCEEDED),
            _record("rg-1", DeletionStatus.FAILED),
            _record("rg-2", DeletionStatus.SUCCEEDED),
        ]

        assert operation.total_candidates == 3
        assert operation.succeeded_count == 2
        assert operation.failed_count == 1
        assert operation.dry_run_count == 0

    @pytest.mark.parametrize(
        "statuses, expected",
        [
            ([DeletionStatus.SUCCEEDED, DeletionStatus.SUCCEEDED], OperationStatus.COMPLETED),
            ([DeletionStatus.SUCCEEDED, DeletionStatus.FAILED], OperationStatus.PARTIAL),
            ([DeletionStatus.FAILED, DeletionStatus.FAILED], OperationStatus.FAILED),
            ([], OperationStatus.COMPLETED),
        ],
    )
    def test_finalize_status_execute(self, statuses: list, expected: OperationStatus) -> None:
        operation = _operation(groups=len(statuses))
        operation.records = [_record(f"rg-{i}", status) for i, status in enumerate(statuses)]

        assert operation.finalize_status() == expected

    def test_finalize_status_dry_run(self) -> None:
        operation = _operation(mode=OperationMode.DRY_RUN, groups=1)
        operation.records = [_record("rg-0", DeletionStatus.DRY_RUN)]

        assert operation.finalize_status() == OperationStatus.PLANNED

    def test_finalize_status_account_error(self) -> None:
        operation = _operation()
        operation.error = "AuthorizationFailed"

        assert operation.finalize_status() == OperationStatus.FAILED

    def test_validate_more_records_than_candidates(self) -> None:
        operation = _operation(groups=1)
        operation.records = [_record("rg-0", DeletionStatus.SUCCEEDED), _record("rg-x", DeletionStatus.SUCCEEDED)]

        with pytest.raises(ValueError, match="More deletion records"):
            operation.validate()

    def test_validate_timing(self) -> None:
        operation = _operation()
        operation.started_at = STARTED
        operation.completed_at = STARTED - timedelta(seconds=1)

        with pytest.raises(ValueError, match="Completion time before start time"):
            operation.validate()

    def test_validate_dry_run_cannot_delete(self) -> None:
        operation = _operation(mode=OperationMode.DRY_RUN, groups=1)
        operation.records = [_record("rg-0", DeletionStatus.SUCCEEDED)]

        with pytest.raises(ValueError, match="Dry-run mode cannot delete"):
            operation.validate()

    def test_validate_dry_run_status(self) -> None:
        operation = _operation(mode=OperationMode.DRY_RUN)
        operation.status = OperationStatus.COMPLETED

        with pytest.raises(ValueError, match="Dry-run mode must have planned status"):
            operation.validate()
