"""Run report storage.

Writes the structured result of a run (traces, candidates and deletion records
per subscription) as a YAML document. Reports are write-only from the reaper's
point of view; nothing reads them back to make decisions.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import yaml

from rgreaper import __version__
from rgreaper.models.candidate import DeletionCandidateSet
from rgreaper.models.deletion_operation import DeletionOperation


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class RunReport:
    """YAML run report.

    Report structure:
        metadata: version, log type, creation time
        operations: one entry per subscription with traces, candidates and records
    """

    def __init__(self, operations: list[DeletionOperation]) -> None:
        self.operations = operations

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": {
                "version": "1.0",
                "tool_version": __version__,
                "log_type": "ttl_reap",
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            "operations": [self._operation_to_dict(operation) for operation in self.operations],
        }

    def write(self, path: str) -> Path:
        """Write the report to a YAML file, creating parent directories.

        Args:
            path: Destination file

        Returns:
            Path of the written report
        """
        report_path = Path(path).expanduser()
        report_path.parent.mkdir(parents=True, exist_ok=True)
        with open(report_path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        return report_path

    @staticmethod
    def load(path: str) -> dict[str, Any]:
        with open(Path(path).expanduser(), "r") as f:
            return yaml.safe_load(f)

    def _operation_to_dict(self, operation: DeletionOperation) -> dict[str, Any]:
        return {
            "operation_id": operation.operation_id,
            "subscription_id": operation.account.subscription_id,
            "subscription_name": operation.account.display_name,
            "timestamp": _iso(operation.timestamp),
            "mode": operation.mode.value,
            "status": operation.status.value,
            "error": operation.error,
            "started_at": _iso(operation.started_at),
            "completed_at": _iso(operation.completed_at),
            "duration_seconds": operation.duration_seconds,
            "traces": [
                {
                    "kind": trace.kind.value,
                    "identity": trace.identity,
                    "strategy": trace.strategy.value,
                    "outcome": trace.outcome.value,
                    "remaining_days": trace.remaining_days,
                    "warning": trace.warning,
                    "error": trace.error,
                    "line": trace.format(),
                }
                for trace in operation.traces
            ],
            "resource_group_candidates": self._candidates_to_list(operation.group_candidates),
            "resource_candidates": self._candidates_to_list(operation.resource_candidates),
            "records": [
                {
                    "record_id": record.record_id,
                    "identity": record.identity,
                    "kind": record.kind.value,
                    "status": record.status.value,
                    "timestamp": _iso(record.timestamp),
                    "message": record.message,
                    "strategy": record.strategy.value if record.strategy else None,
                    "error_code": record.error_code,
                    "error_message": record.error_message,
                }
                for record in operation.records
            ],
        }

    def _candidates_to_list(self, candidates: DeletionCandidateSet) -> list[dict[str, Any]]:
        return [
            {
                "identity": candidate.identity,
                "strategy": candidate.strategy.value,
                "remaining_days": candidate.verdict.remaining_days,
                "lifetime_days": candidate.verdict.lifetime_days,
                "used_default_expiration": candidate.verdict.used_default_expiration,
            }
            for candidate in candidates
        ]
