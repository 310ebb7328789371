"""Deletion scheduling.

Issues deletion requests for selected candidates with retry logic and
collect-and-continue error handling. In dry-run mode no mutating call is made.
"""

from __future__ import annotations

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Optional

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

from rgreaper.arm.metadata import MetadataClient
from rgreaper.models.candidate import DeletionCandidate, DeletionCandidateSet, EntityKind
from rgreaper.models.deletion_record import DeletionRecord, DeletionStatus

logger = logging.getLogger(__name__)

# Conflict (e.g. group already being deleted) and throttling
RETRYABLE_STATUS_CODES = (409, 429)


class DeletionScheduler:
    """Deletion orchestrator for one subscription.

    Resource groups are deleted before standalone resources. Each deletion is
    attempted independently; a failure is recorded and the batch continues.

    Attributes:
        client: Metadata client bound to the subscription
        max_retries: Maximum number of attempts per entity
        max_workers: Number of concurrent deletion calls within a kind
        wait_for_completion: Block until each deletion finishes
    """

    def __init__(
        self,
        client: MetadataClient,
        max_retries: int = 3,
        max_workers: int = 1,
        wait_for_completion: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.max_retries = max_retries
        self.max_workers = max(1, max_workers)
        self.wait_for_completion = wait_for_completion
        self._sleep = sleep

    def delete(
        self,
        group_candidates: DeletionCandidateSet,
        resource_candidates: DeletionCandidateSet,
        dry_run: bool = True,
        operation_id: Optional[str] = None,
    ) -> list[DeletionRecord]:
        """Delete all candidates, groups first.

        Args:
            group_candidates: Resource groups to delete
            resource_candidates: Standalone resources to delete
            dry_run: Report intended deletions without performing them
            operation_id: Parent operation ID for the records

        Returns:
            One DeletionRecord per candidate, in candidate order
        """
        operation_id = operation_id or f"op_{uuid.uuid4()}"
        records = self._delete_all(list(group_candidates), dry_run, operation_id)
        records.extend(self._delete_all(list(resource_candidates), dry_run, operation_id))
        return records

    def _delete_all(self, candidates: list[DeletionCandidate], dry_run: bool, operation_id: str) -> list[DeletionRecord]:
        if self.max_workers == 1 or len(candidates) < 2:
            return [self.delete_candidate(c, dry_run, operation_id) for c in candidates]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(lambda c: self.delete_candidate(c, dry_run, operation_id), candidates))

    def delete_candidate(self, candidate: DeletionCandidate, dry_run: bool, operation_id: str) -> DeletionRecord:
        """Delete (or dry-run) a single candidate.

        Args:
            candidate: Candidate to delete
            dry_run: Report the intended deletion without performing it
            operation_id: Parent operation ID

        Returns:
            DeletionRecord describing the outcome
        """
        label = "resource group" if candidate.kind == EntityKind.RESOURCE_GROUP else "resource"

        if dry_run:
            message = f"would delete {label} {candidate.identity}"
            logger.info(message)
            return self._record(candidate, operation_id, DeletionStatus.DRY_RUN, message)

        success, message, error_code = self._delete_with_retries(candidate, label)
        if success:
            return self._record(candidate, operation_id, DeletionStatus.SUCCEEDED, message)

        return self._record(
            candidate,
            operation_id,
            DeletionStatus.FAILED,
            f"failed to delete {label} {candidate.identity}",
            error_code=error_code or "DeletionFailed",
            error_message=message,
        )

    def _delete_with_retries(self, candidate: DeletionCandidate, label: str) -> tuple[bool, str, Optional[str]]:
        """Attempt a deletion, retrying conflicts and throttling.

        Returns:
            Tuple of (success, message, error_code)
        """
        for attempt in range(self.max_retries):
            try:
                message = self._attempt_deletion(candidate)
                logger.info(f"Successfully deleted {label} {candidate.identity}")
                return (True, message, None)

            except ResourceNotFoundError:
                logger.info(f"{label.capitalize()} {candidate.identity} already deleted")
                return (True, f"{label} {candidate.identity} already deleted", None)

            except HttpResponseError as e:
                error_code = getattr(getattr(e, "error", None), "code", None) or str(e.status_code or "Unknown")
                if e.status_code in RETRYABLE_STATUS_CODES and attempt < self.max_retries - 1:
                    wait_time = 2**attempt
                    logger.debug(
                        f"{error_code} deleting {candidate.identity}, "
                        f"retrying in {wait_time}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    self._sleep(wait_time)
                    continue
                logger.error(f"Failed to delete {candidate.identity}: {error_code} - {e.message}")
                return (False, f"{error_code}: {e.message}", error_code)

            except Exception as e:
                error_msg = f"Unexpected error deleting {label} {candidate.identity}: {e}"
                logger.error(error_msg)
                return (False, error_msg, type(e).__name__)

        error_msg = f"Failed to delete {label} {candidate.identity} after {self.max_retries} attempts"
        logger.error(error_msg)
        return (False, error_msg, "RetriesExhausted")

    def _attempt_deletion(self, candidate: DeletionCandidate) -> str:
        if candidate.kind == EntityKind.RESOURCE_GROUP:
            return self.client.delete_resource_group(candidate.identity, wait=self.wait_for_completion)
        return self.client.delete_resource(candidate.identity, wait=self.wait_for_completion)

    def _record(
        self,
        candidate: DeletionCandidate,
        operation_id: str,
        status: DeletionStatus,
        message: str,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> DeletionRecord:
        return DeletionRecord(
            record_id=f"rec_{uuid.uuid4()}",
            operation_id=operation_id,
            identity=candidate.identity,
            kind=candidate.kind,
            status=status,
            timestamp=datetime.now(timezone.utc),
            message=message,
            strategy=candidate.strategy,
            error_code=error_code,
            error_message=error_message,
        )
