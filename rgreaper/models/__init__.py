"""Data models for rgreaper."""

from __future__ import annotations

from rgreaper.models.candidate import (
    DeletionCandidate,
    DeletionCandidateSet,
    EntityKind,
    SelectionStrategy,
    TraceEntry,
    TraceOutcome,
)
from rgreaper.models.deletion_operation import DeletionOperation, OperationMode, OperationStatus
from rgreaper.models.deletion_record import DeletionRecord, DeletionStatus
from rgreaper.models.metadata import AccountContext, ResourceGroupMetadata, ResourceMetadata
from rgreaper.models.verdict import ExpirationVerdict

__all__ = [
    "AccountContext",
    "DeletionCandidate",
    "DeletionCandidateSet",
    "DeletionOperation",
    "DeletionRecord",
    "DeletionStatus",
    "EntityKind",
    "ExpirationVerdict",
    "OperationMode",
    "OperationStatus",
    "ResourceGroupMetadata",
    "ResourceMetadata",
    "SelectionStrategy",
    "TraceEntry",
    "TraceOutcome",
]
