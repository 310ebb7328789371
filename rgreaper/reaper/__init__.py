"""TTL reaping module.

This module decides which resource groups and resources have outlived their
permitted lifetime and deletes them, with dry-run as the default posture.

Classes:
    ResourceReaper: Main orchestrator for reap operations
    SelectionEngine: Strategy-based candidate selection with deduplication
    ExpirationPolicy: Expiration and pin evaluation
    DeletionScheduler: Deletion with retries and collect-and-continue errors
    RunReport: YAML run report
"""

from __future__ import annotations

__all__ = [
    "ResourceReaper",
    "SelectionEngine",
    "ExpirationPolicy",
    "DeletionScheduler",
    "RunReport",
]
