"""Tests for ResourceReaper class.

Test coverage for per-subscription orchestration, context reuse and account
level error handling.
"""

from __future__ import annotations

import logging
from io import StringIO
from unittest.mock import Mock

import pytest
from rich.console import Console

from rgreaper.models.candidate import TraceOutcome
from rgreaper.models.deletion_operation import OperationMode, OperationStatus
from rgreaper.models.deletion_record import DeletionStatus
from rgreaper.models.metadata import AccountContext
from rgreaper.reaper.cleaner import ResourceReaper
from rgreaper.reaper.policy import ExpirationPolicy
from rgreaper.reaper.reporter import RunReporter
from rgreaper.reaper.selector import SelectionEngine
from tests.fixtures.metadata import NOW, FakeMetadataClient, create_resource, create_resource_group

SUB_A = AccountContext(subscription_id="aaaaaaaa-0000-0000-0000-000000000000", display_name="dev")
SUB_B = AccountContext(subscription_id="bbbbbbbb-0000-0000-0000-000000000000", display_name="test")


@pytest.fixture
def selector() -> SelectionEngine:
    policy = ExpirationPolicy(default_expiration_days=3, clock=lambda: NOW)
    return SelectionEngine(policy, resource_group_prefix="rg-demo-", marker_tag_name="ttl-managed")


@pytest.fixture
def demo_client() -> FakeMetadataClient:
    """Client holding the documented scenarios plus two tagged resources."""
    return FakeMetadataClient(
        context=SUB_A,
        groups=[
            create_resource_group("rg-demo-test1", age_days=5, tags={}),
            create_resource_group("rg-demo-test2", age_days=1, tags={"days": "3"}),
            create_resource_group("rg-demo-test3", age_days=100, tags={"pinned": "true", "days": "1"}),
            create_resource_group("rg-demo-test4", age_days=10, tags={"days": "abc"}),
            create_resource_group("rg-shared", age_days=400, tags={}),
        ],
        resources=[
            create_resource("res1", resource_group_name="rg-demo-test1", age_days=5),
            create_resource("res2", resource_group_name="rg-shared", age_days=7),
            create_resource("res3", resource_group_name="rg-shared", age_days=7, tags={"ttl-managed": "no"}),
        ],
    )


class TestResourceReaper:
    """Test suite for ResourceReaper class."""

    def test_dry_run_end_to_end(self, selector: SelectionEngine, demo_client: FakeMetadataClient) -> None:
        """Test dry run selects the expected entities and deletes nothing."""
        reaper = ResourceReaper(client_factory=lambda account: demo_client, selector=selector, dry_run=True)

        operation = reaper.process_account(SUB_A)

        assert operation.mode == OperationMode.DRY_RUN
        assert operation.status == OperationStatus.PLANNED
        assert operation.group_candidates.identities() == ["rg-demo-test1", "rg-demo-test4"]
        res2 = demo_client.resources[1].resource_id
        assert operation.resource_candidates.identities() == [res2]
        assert [r.status for r in operation.records] == [DeletionStatus.DRY_RUN] * 3
        assert all("would delete" in r.message for r in operation.records)
        assert demo_client.deleted_groups == []
        assert demo_client.deleted_resources == []
        assert demo_client.tag_queries == [("ttl-managed", "true")]
        assert operation.validate() is True

    def test_covered_resource_traced(self, selector: SelectionEngine, demo_client: FakeMetadataClient) -> None:
        """Test res1 is excluded because its group is a candidate."""
        reaper = ResourceReaper(client_factory=lambda account: demo_client, selector=selector)

        operation = reaper.process_account(SUB_A)

        res1 = demo_client.resources[0].resource_id
        assert res1 not in operation.resource_candidates
        covered = [t for t in operation.traces if t.identity == res1]
        assert [t.outcome for t in covered] == [TraceOutcome.COVERED]

    def test_execute_deletes_candidates(self, selector: SelectionEngine, demo_client: FakeMetadataClient) -> None:
        reaper = ResourceReaper(client_factory=lambda account: demo_client, selector=selector, dry_run=False)

        operation = reaper.process_account(SUB_A)

        assert operation.mode == OperationMode.EXECUTE
        assert operation.status == OperationStatus.COMPLETED
        assert demo_client.deleted_groups == ["rg-demo-test1", "rg-demo-test4"]
        assert demo_client.deleted_resources == [demo_client.resources[1].resource_id]
        assert operation.succeeded_count == 3

    def test_partial_status_on_deletion_failure(self, selector: SelectionEngine) -> None:
        from azure.core.exceptions import HttpResponseError

        client = FakeMetadataClient(
            context=SUB_A,
            groups=[
                create_resource_group("rg-demo-a", age_days=10),
                create_resource_group("rg-demo-b", age_days=10),
            ],
            delete_errors={"rg-demo-b": HttpResponseError(message="boom")},
        )
        reaper = ResourceReaper(client_factory=lambda account: client, selector=selector, dry_run=False)

        operation = reaper.process_account(SUB_A)

        assert operation.status == OperationStatus.PARTIAL
        assert operation.succeeded_count == 1
        assert operation.failed_count == 1

    def test_fetch_failure_skips_account_and_continues(self, selector: SelectionEngine) -> None:
        """Test a failing subscription is reported and the next one still runs."""
        failing = FakeMetadataClient(context=SUB_A, fail_fetch=True)
        healthy = FakeMetadataClient(context=SUB_B, groups=[create_resource_group("rg-demo-x", age_days=10)])
        clients = {SUB_A: failing, SUB_B: healthy}
        reaper = ResourceReaper(client_factory=lambda account: clients[account], selector=selector)

        operations = reaper.run([SUB_A, SUB_B])

        assert operations[0].status == OperationStatus.FAILED
        assert "AuthorizationFailed" in operations[0].error
        assert len(operations[0].traces) == 0
        assert operations[1].status == OperationStatus.PLANNED
        assert operations[1].group_candidates.identities() == ["rg-demo-x"]

    def test_unexpected_fetch_error_skips_account_and_continues(self, selector: SelectionEngine) -> None:
        """Test an unwrapped error while fetching is treated like a fetch failure."""
        failing = FakeMetadataClient(context=SUB_A)
        failing.fetch_resource_groups = Mock(side_effect=ValueError("Expecting value: line 1 column 1 (char 0)"))
        healthy = FakeMetadataClient(context=SUB_B, groups=[create_resource_group("rg-demo-x", age_days=10)])
        clients = {SUB_A: failing, SUB_B: healthy}
        reaper = ResourceReaper(client_factory=lambda account: clients[account], selector=selector)

        operations = reaper.run([SUB_A, SUB_B])

        assert operations[0].status == OperationStatus.FAILED
        assert "Expecting value" in operations[0].error
        assert operations[1].status == OperationStatus.PLANNED
        assert operations[1].group_candidates.identities() == ["rg-demo-x"]

    def test_detail_failure_is_entity_error(self, selector: SelectionEngine) -> None:
        """Test one unreadable resource does not fail the subscription."""
        broken = create_resource("broken", resource_group_name="rg-shared", age_days=10)
        good = create_resource("good", resource_group_name="rg-shared", age_days=10)
        client = FakeMetadataClient(context=SUB_A, resources=[broken, good], fail_details=[broken.resource_id])
        reaper = ResourceReaper(client_factory=lambda account: client, selector=selector)

        operation = reaper.process_account(SUB_A)

        assert operation.status == OperationStatus.PLANNED
        assert operation.resource_candidates.identities() == [good.resource_id]
        errors = [t for t in operation.traces if t.outcome == TraceOutcome.ERROR]
        assert [t.identity for t in errors] == [broken.resource_id]

    def test_context_reused_for_same_subscription(self, selector: SelectionEngine) -> None:
        """Test the client is only rebuilt when the subscription changes."""
        factory = Mock(side_effect=lambda account: FakeMetadataClient(context=account))
        reaper = ResourceReaper(client_factory=factory, selector=selector)

        reaper.run([SUB_A, SUB_A, SUB_B])

        assert [call.args[0] for call in factory.call_args_list] == [SUB_A, SUB_B]

    def test_plan_never_deletes(self, selector: SelectionEngine, demo_client: FakeMetadataClient) -> None:
        reaper = ResourceReaper(client_factory=lambda account: demo_client, selector=selector, dry_run=False)

        operations = reaper.plan([SUB_A])

        assert operations[0].records == []
        assert operations[0].mode == OperationMode.DRY_RUN
        assert operations[0].group_candidates.identities() == ["rg-demo-test1", "rg-demo-test4"]
        assert demo_client.deleted_groups == []

    def test_idempotent_across_runs(self, selector: SelectionEngine, demo_client: FakeMetadataClient) -> None:
        reaper = ResourceReaper(client_factory=lambda account: demo_client, selector=selector)

        first = reaper.process_account(SUB_A, delete=False)
        second = reaper.process_account(SUB_A, delete=False)

        assert first.group_candidates == second.group_candidates
        assert first.resource_candidates == second.resource_candidates

    def test_reporter_output(self, selector: SelectionEngine, demo_client: FakeMetadataClient) -> None:
        """Test banners, trace lines and outcomes are printed."""
        output = StringIO()
        reporter = RunReporter(Console(file=output, width=200, no_color=True))
        reaper = ResourceReaper(client_factory=lambda account: demo_client, selector=selector, reporter=reporter)

        reaper.run([SUB_A])

        text = output.getvalue()
        assert "Subscription dev" in text
        assert "Resource groups" in text
        assert "rg-demo-test1: expired 2.00 days ago, added for deletion" in text
        assert "rg-demo-test2: remaining 2.00 days" in text
        assert "rg-demo-test3: pinned" in text
        assert "abc" in text
        assert "would delete resource group rg-demo-test1" in text

    def test_reporter_does_not_wrap_trace_lines(self, selector: SelectionEngine, demo_client: FakeMetadataClient) -> None:
        """Test long trace lines stay on one line on a narrow console."""
        output = StringIO()
        reporter = RunReporter(Console(file=output, width=40, no_color=True))
        reaper = ResourceReaper(client_factory=lambda account: demo_client, selector=selector, reporter=reporter)

        reaper.run([SUB_A])

        res1 = demo_client.resources[0].resource_id
        lines = output.getvalue().splitlines()
        assert f"  [resource-tag-match] {res1}: resource group rg-demo-test1 already scheduled for deletion, skipping" in lines

    def test_trace_lines_logged_at_info(
        self, selector: SelectionEngine, demo_client: FakeMetadataClient, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.INFO, logger="rgreaper.reaper.cleaner")
        reaper = ResourceReaper(client_factory=lambda account: demo_client, selector=selector)

        reaper.run([SUB_A])

        info_lines = [r.getMessage() for r in caplog.records if r.levelno == logging.INFO]
        assert "[name-match] rg-demo-test3: pinned, skipping" in info_lines
