"""Logging configuration."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

# Azure SDK loggers are chatty at INFO (every HTTP request and response)
NOISY_LOGGERS = ("azure", "azure.core.pipeline.policies.http_logging_policy", "azure.identity", "urllib3")


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    """Configure root logging for the CLI.

    Args:
        level: Log level name for rgreaper loggers
        verbose: Show logger names and keep Azure SDK logging at the same level
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    log_format = "%(name)s: %(message)s" if verbose else "%(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )

    sdk_level = log_level if verbose else max(log_level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(sdk_level)
