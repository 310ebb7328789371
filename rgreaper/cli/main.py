"""Main CLI entry point using Typer."""

import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from ..arm.client import create_resource_client
from ..arm.credentials import get_credential, list_subscriptions
from ..arm.metadata import ArmMetadataClient, parse_arm_timestamp
from ..exceptions import ConfigError, CredentialValidationError
from ..models.deletion_operation import OperationStatus
from ..models.metadata import AccountContext
from ..reaper.audit import RunReport
from ..reaper.cleaner import ResourceReaper
from ..reaper.policy import ExpirationPolicy, evaluate as evaluate_policy
from ..reaper.reporter import RunReporter
from ..reaper.selector import SelectionEngine
from ..utils.logging import setup_logging
from .config import Config

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="rgreaper",
    help="rgreaper - TTL based garbage collection for ephemeral Azure resource groups",
    add_completion=False,
)

# Create Rich console for output
console = Console()

# Global config
config: Optional[Config] = None

EXIT_CONFIG_ERROR = 1
EXIT_UNEXPECTED_ERROR = 2
EXIT_CREDENTIAL_ERROR = 3
EXIT_RUN_FAILURES = 4


@app.callback()
def main(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to YAML config file (default: ~/.rgreaper/config.yaml)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output except errors"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
):
    """rgreaper - delete Azure resource groups and resources that outlived their TTL."""
    global config

    try:
        config = Config.load(config_file)
    except ConfigError as e:
        console.print(f"✗ Configuration error: {e}", style="bold red")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    # Setup logging
    log_level = "ERROR" if quiet else ("DEBUG" if verbose else config.log_level)
    setup_logging(level=log_level, verbose=verbose)

    # Disable colors if requested
    if no_color:
        console.no_color = True


@app.command()
def version():
    """Show version information."""
    from importlib.metadata import version as dist_version

    from .. import __version__

    console.print(f"rgreaper version {__version__}")
    console.print(f"Python {sys.version.split()[0]}")
    console.print(f"azure-mgmt-resource {dist_version('azure-mgmt-resource')}")


def parse_tags(tag_pairs: List[str]) -> dict:
    """Parse Key=Value pairs into dict."""
    tags = {}
    for tag_pair in tag_pairs:
        if "=" not in tag_pair:
            console.print(f"✗ Invalid tag format '{tag_pair}'. Use Key=Value", style="bold red")
            raise typer.Exit(code=EXIT_CONFIG_ERROR)
        key, value = tag_pair.split("=", 1)
        tags[key.strip()] = value.strip()
    return tags


def _apply_overrides(**overrides) -> Config:
    """Apply CLI overrides to the loaded config and validate it."""
    cfg = config if config is not None else Config.load()
    try:
        cfg.apply(overrides)
        cfg.validate()
    except ConfigError as e:
        console.print(f"✗ Configuration error: {e}", style="bold red")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)
    return cfg


def _build_reaper(cfg: Config, reporter: RunReporter) -> tuple[ResourceReaper, list[AccountContext]]:
    """Build the reaper and resolve subscriptions.

    Raises:
        CredentialValidationError: If credentials or subscriptions cannot be resolved
    """
    credential = get_credential(cfg.tenant_id, cfg.client_id, cfg.client_secret)

    if cfg.all_subscriptions:
        accounts = list_subscriptions(credential)
        if not accounts:
            raise CredentialValidationError("No enabled subscriptions visible to the current credential")
    else:
        accounts = [AccountContext(subscription_id=subscription_id) for subscription_id in cfg.subscriptions]

    policy = ExpirationPolicy(
        default_expiration_days=cfg.default_expiration_days,
        expiration_tag_name=cfg.expiration_tag_name,
        pinned_tag_name=cfg.pinned_tag_name,
    )
    selector = SelectionEngine(
        policy,
        resource_group_prefix=cfg.resource_group_prefix,
        resource_group_suffix=cfg.resource_group_suffix,
        marker_tag_name=cfg.marker_tag_name,
    )
    reaper = ResourceReaper(
        client_factory=lambda account: ArmMetadataClient(
            account, create_resource_client(account.subscription_id, credential)
        ),
        selector=selector,
        dry_run=cfg.dry_run,
        max_workers=cfg.max_workers,
        max_retries=cfg.max_retries,
        wait_for_completion=cfg.wait_for_completion,
        reporter=reporter,
    )
    return reaper, accounts


def _finish(operations: list, report: Optional[str], reporter: RunReporter) -> None:
    reporter.summary(operations)

    if report:
        report_path = RunReport(operations).write(report)
        console.print(f"✓ Run report written to: [cyan]{report_path}[/cyan]")

    failed = [
        op for op in operations if op.status in (OperationStatus.FAILED, OperationStatus.PARTIAL) or op.failed_count
    ]
    if failed:
        console.print(f"✗ {len(failed)} subscription(s) had failures", style="bold red")
        raise typer.Exit(code=EXIT_RUN_FAILURES)


@app.command()
def run(
    subscription: Optional[List[str]] = typer.Option(
        None, "--subscription", "-s", help="Subscription ID to process (repeatable, processed in order)"
    ),
    all_subscriptions: Optional[bool] = typer.Option(
        None, "--all-subscriptions", help="Process every enabled subscription visible to the credential"
    ),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Resource group name prefix for name matching"),
    suffix: Optional[str] = typer.Option(None, "--suffix", help="Resource group name suffix for name matching"),
    default_days: Optional[int] = typer.Option(
        None, "--default-days", help="Lifetime in days when the expiration tag is missing or invalid"
    ),
    expiration_tag: Optional[str] = typer.Option(None, "--expiration-tag", help="Tag holding lifetime in days"),
    marker_tag: Optional[str] = typer.Option(None, "--marker-tag", help="Tag flagging entities for cleanup"),
    pinned_tag: Optional[str] = typer.Option(None, "--pinned-tag", help="Tag exempting entities from cleanup"),
    dry_run: Optional[bool] = typer.Option(
        None, "--dry-run/--execute", help="Report intended deletions only (default) or delete for real"
    ),
    workers: Optional[int] = typer.Option(None, "--workers", help="Concurrent deletion calls"),
    wait: Optional[bool] = typer.Option(None, "--wait", help="Wait for each deletion to complete"),
    report: Optional[str] = typer.Option(None, "--report", help="Write a YAML run report to this path"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt for --execute"),
):
    """Delete resource groups and resources that outlived their TTL.

    Runs in dry-run mode unless --execute is given.

    Examples:
        # Preview what would be deleted
        rgreaper run -s 00000000-0000-0000-0000-000000000000 --prefix rg-demo-

        # Delete for real across every subscription
        rgreaper run --all-subscriptions --prefix rg-demo- --execute --yes
    """
    cfg = _apply_overrides(
        subscriptions=subscription or None,
        all_subscriptions=all_subscriptions,
        resource_group_prefix=prefix,
        resource_group_suffix=suffix,
        default_expiration_days=default_days,
        expiration_tag_name=expiration_tag,
        marker_tag_name=marker_tag,
        pinned_tag_name=pinned_tag,
        dry_run=dry_run,
        max_workers=workers,
        wait_for_completion=wait,
    )

    if not cfg.dry_run and not yes:
        typer.confirm("This will permanently delete expired resources. Continue?", abort=True)

    try:
        reporter = RunReporter(console)
        reaper, accounts = _build_reaper(cfg, reporter)

        mode = "DRY RUN" if cfg.dry_run else "EXECUTE"
        console.print(f"\n🧹 Reaping {len(accounts)} subscription(s) [bold]({mode})[/bold]")

        operations = reaper.run(accounts)
        _finish(operations, report, reporter)

    except typer.Exit:
        raise
    except CredentialValidationError as e:
        console.print(f"✗ Credential error: {e}", style="bold red")
        raise typer.Exit(code=EXIT_CREDENTIAL_ERROR)
    except Exception as e:
        console.print(f"✗ Error during run: {e}", style="bold red")
        logger.exception("Error in run command")
        raise typer.Exit(code=EXIT_UNEXPECTED_ERROR)


@app.command()
def plan(
    subscription: Optional[List[str]] = typer.Option(None, "--subscription", "-s", help="Subscription ID (repeatable)"),
    all_subscriptions: Optional[bool] = typer.Option(
        None, "--all-subscriptions", help="Process every enabled subscription visible to the credential"
    ),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Resource group name prefix for name matching"),
    suffix: Optional[str] = typer.Option(None, "--suffix", help="Resource group name suffix for name matching"),
    default_days: Optional[int] = typer.Option(None, "--default-days", help="Default lifetime in days"),
    report: Optional[str] = typer.Option(None, "--report", help="Write a YAML run report to this path"),
):
    """Show which entities would be selected, without any deletion phase."""
    cfg = _apply_overrides(
        subscriptions=subscription or None,
        all_subscriptions=all_subscriptions,
        resource_group_prefix=prefix,
        resource_group_suffix=suffix,
        default_expiration_days=default_days,
    )

    try:
        reporter = RunReporter(console)
        reaper, accounts = _build_reaper(cfg, reporter)
        operations = reaper.plan(accounts)
        _finish(operations, report, reporter)

    except typer.Exit:
        raise
    except CredentialValidationError as e:
        console.print(f"✗ Credential error: {e}", style="bold red")
        raise typer.Exit(code=EXIT_CREDENTIAL_ERROR)
    except Exception as e:
        console.print(f"✗ Error during plan: {e}", style="bold red")
        logger.exception("Error in plan command")
        raise typer.Exit(code=EXIT_UNEXPECTED_ERROR)


@app.command()
def evaluate(
    created: str = typer.Option(..., "--created", help="Creation time (ISO 8601, e.g. 2025-01-01T00:00:00Z)"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="Tag as Key=Value (repeatable)"),
    now: Optional[str] = typer.Option(None, "--now", help="Evaluation time (default: current time)"),
    default_days: Optional[int] = typer.Option(None, "--default-days", help="Default lifetime in days"),
):
    """Evaluate a tag set and creation time against the expiration policy."""
    cfg = config if config is not None else Config.load()
    tags = parse_tags(tag or [])

    created_time = parse_arm_timestamp(created)
    evaluated_at = parse_arm_timestamp(now) if now else datetime.now(timezone.utc)
    if created_time is None or evaluated_at is None:
        console.print("✗ Invalid timestamp. Use ISO 8601, e.g. 2025-01-01T00:00:00Z", style="bold red")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    verdict = evaluate_policy(
        tags=tags,
        created_time=created_time,
        now=evaluated_at,
        default_expiration_days=default_days if default_days is not None else cfg.default_expiration_days,
        expiration_tag_name=cfg.expiration_tag_name,
        pinned_tag_name=cfg.pinned_tag_name,
    )

    table = Table(title="Expiration Verdict", show_header=True, header_style="bold magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Pinned", str(verdict.pinned))
    table.add_row("Expired", str(verdict.expired))
    if not verdict.pinned:
        table.add_row("Age (days)", f"{verdict.age_days:.2f}")
        table.add_row("Lifetime (days)", str(verdict.lifetime_days))
        table.add_row("Remaining (days)", f"{verdict.remaining_days:.2f}")
        table.add_row("Default lifetime used", str(verdict.used_default_expiration))

    console.print(table)
    if verdict.parse_warning:
        console.print(f"⚠ {verdict.parse_warning}", style="yellow", markup=False)


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
