"""Reaper orchestrator.

Drives fetch, selection and deletion for each configured subscription, one
subscription at a time.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from rgreaper.arm.metadata import MetadataClient
from rgreaper.exceptions import MetadataFetchError
from rgreaper.models.candidate import EntityKind, SelectionStrategy, TraceEntry, TraceOutcome
from rgreaper.models.deletion_operation import DeletionOperation, OperationMode
from rgreaper.models.metadata import AccountContext, ResourceGroupMetadata, ResourceMetadata
from rgreaper.reaper.deleter import DeletionScheduler
from rgreaper.reaper.reporter import RunReporter
from rgreaper.reaper.selector import SelectionEngine

logger = logging.getLogger(__name__)

MARKER_TAG_VALUE = "true"

ClientFactory = Callable[[AccountContext], MetadataClient]


class ResourceReaper:
    """Reaper orchestrator.

    For every subscription: establishes the client, fetches all metadata,
    selects expired resource groups and resources, then deletes them (or
    reports what would be deleted in dry-run mode). A metadata fetch failure
    skips the subscription; the run continues with the next one.

    Attributes:
        client_factory: Builds a metadata client for a subscription
        selector: Selection engine
        dry_run: Report intended deletions without performing them
        max_workers: Concurrent deletion calls within a kind
        max_retries: Attempts per deletion
        wait_for_completion: Block until each deletion finishes
        reporter: Progress reporter (optional)
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        selector: SelectionEngine,
        dry_run: bool = True,
        max_workers: int = 1,
        max_retries: int = 3,
        wait_for_completion: bool = False,
        reporter: Optional[RunReporter] = None,
    ) -> None:
        self.client_factory = client_factory
        self.selector = selector
        self.dry_run = dry_run
        self.max_workers = max_workers
        self.max_retries = max_retries
        self.wait_for_completion = wait_for_completion
        self.reporter = reporter
        self._active_context: Optional[AccountContext] = None
        self._active_client: Optional[MetadataClient] = None

    def run(self, accounts: Iterable[AccountContext]) -> list[DeletionOperation]:
        """Select and delete expired entities in every subscription.

        Args:
            accounts: Subscriptions to process, in order

        Returns:
            One DeletionOperation per subscription
        """
        return [self.process_account(account, delete=True) for account in accounts]

    def plan(self, accounts: Iterable[AccountContext]) -> list[DeletionOperation]:
        """Select expired entities without deleting anything."""
        return [self.process_account(account, delete=False) for account in accounts]

    def process_account(self, account: AccountContext, delete: bool = True) -> DeletionOperation:
        """Process a single subscription.

        Args:
            account: Subscription to process
            delete: Run the deletion phase after selection

        Returns:
            DeletionOperation for the subscription
        """
        started_at = datetime.now(timezone.utc)
        operation = DeletionOperation(
            operation_id=f"op_{uuid.uuid4()}",
            account=account,
            timestamp=started_at,
            mode=OperationMode.DRY_RUN if self.dry_run or not delete else OperationMode.EXECUTE,
            started_at=started_at,
        )

        self._section(f"Subscription {account.label}")
        client = self._establish_context(account)

        try:
            groups, resources, detail_errors = self._fetch(client)
        except MetadataFetchError as e:
            return self._skip_account(operation, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error fetching metadata for {account.label}")
            return self._skip_account(operation, f"Unexpected error fetching metadata: {e}")

        now = self.selector.policy.now()

        self._section("Resource groups")
        group_result = self.selector.select_resource_groups(groups, now)
        self._trace(group_result.traces)

        self._section("Resources")
        resource_result = self.selector.select_resources(resources, group_result.candidates, now)
        self._trace(detail_errors + resource_result.traces)

        operation.traces = group_result.traces + detail_errors + resource_result.traces
        operation.group_candidates = group_result.candidates
        operation.resource_candidates = resource_result.candidates

        logger.info(
            f"{account.label}: {len(operation.group_candidates)} resource group(s) and "
            f"{len(operation.resource_candidates)} resource(s) selected for deletion"
        )

        if delete:
            self._section("Dry run" if self.dry_run else "Deletion")
            scheduler = DeletionScheduler(
                client,
                max_retries=self.max_retries,
                max_workers=self.max_workers,
                wait_for_completion=self.wait_for_completion,
            )
            operation.records = scheduler.delete(
                operation.group_candidates,
                operation.resource_candidates,
                dry_run=self.dry_run,
                operation_id=operation.operation_id,
            )
            if self.reporter:
                for record in operation.records:
                    self.reporter.record(record)

        return self._complete(operation)

    def _establish_context(self, account: AccountContext) -> MetadataClient:
        if self._active_client is not None and self._active_context == account:
            logger.debug(f"Subscription {account.subscription_id} already active")
            return self._active_client

        logger.debug(f"Switching to subscription {account.subscription_id}")
        self._active_client = self.client_factory(account)
        self._active_context = account
        return self._active_client

    def _fetch(
        self, client: MetadataClient
    ) -> tuple[list[ResourceGroupMetadata], list[ResourceMetadata], list[TraceEntry]]:
        """Fetch all metadata for a subscription before any evaluation.

        Raises:
            MetadataFetchError: If resource groups or the tagged resources cannot be listed
        """
        groups = client.fetch_resource_groups()
        resource_ids = client.fetch_resources_by_tag(self.selector.marker_tag_name, MARKER_TAG_VALUE)

        resources = []
        errors = []
        for resource_id in resource_ids:
            try:
                resources.append(client.fetch_resource_detail(resource_id))
            except MetadataFetchError as e:
                logger.error(f"Failed to fetch details for {resource_id}: {e}")
                errors.append(
                    TraceEntry(
                        kind=EntityKind.RESOURCE,
                        identity=resource_id,
                        strategy=SelectionStrategy.RESOURCE_TAG_MATCH,
                        outcome=TraceOutcome.ERROR,
                        error=str(e),
                    )
                )

        logger.info(f"Fetched {len(groups)} resource group(s) and {len(resource_ids)} tagged resource(s)")
        return groups, resources, errors

    def _skip_account(self, operation: DeletionOperation, error: str) -> DeletionOperation:
        logger.error(f"Skipping subscription {operation.account.label}: {error}")
        operation.error = error
        if self.reporter:
            self.reporter.account_error(operation.account, error)
        return self._complete(operation)

    def _complete(self, operation: DeletionOperation) -> DeletionOperation:
        operation.completed_at = datetime.now(timezone.utc)
        if operation.started_at:
            operation.duration_seconds = (operation.completed_at - operation.started_at).total_seconds()
        operation.finalize_status()
        return operation

    def _section(self, title: str) -> None:
        logger.info(f"=== {title} ===")
        if self.reporter:
            self.reporter.section(title)

    def _trace(self, entries: list[TraceEntry]) -> None:
        for entry in entries:
            logger.info(entry.format())
        if self.reporter:
            self.reporter.traces(entries)
