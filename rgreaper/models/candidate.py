"""Deletion candidate and selection trace models.

Candidates are collected per entity kind into an identity-keyed set so that an
entity discovered by several selection strategies is only processed once.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Union

from rgreaper.models.metadata import ResourceGroupMetadata, ResourceMetadata, identity_key
from rgreaper.models.verdict import ExpirationVerdict

Entity = Union[ResourceGroupMetadata, ResourceMetadata]


class EntityKind(Enum):
    """Kind of entity handled by the reaper."""

    RESOURCE_GROUP = "resource-group"
    RESOURCE = "resource"


class SelectionStrategy(Enum):
    """Strategy that surfaced an entity, in evaluation order."""

    NAME_MATCH = "name-match"
    TAG_MATCH = "tag-match"
    RESOURCE_TAG_MATCH = "resource-tag-match"


class TraceOutcome(Enum):
    """Why an entity was or was not added to a candidate set."""

    PINNED = "pinned"
    EXPIRED = "expired"
    ALIVE = "alive"
    COVERED = "covered"
    ERROR = "error"


@dataclass(frozen=True)
class DeletionCandidate:
    """Entity flagged for removal.

    Attributes:
        entity: Resource group or resource metadata
        kind: Entity kind
        strategy: Strategy that first claimed the entity
        verdict: Expiration verdict that made it a candidate
    """

    entity: Entity
    kind: EntityKind
    strategy: SelectionStrategy
    verdict: ExpirationVerdict

    @property
    def identity(self) -> str:
        return self.entity.identity


class DeletionCandidateSet:
    """Identity-keyed, insertion-ordered set of deletion candidates."""

    def __init__(self, kind: EntityKind) -> None:
        self.kind = kind
        self._candidates: dict[str, DeletionCandidate] = {}

    def add(self, candidate: DeletionCandidate) -> bool:
        """Add a candidate unless its identity is already present.

        Args:
            candidate: Candidate to add

        Returns:
            True if the candidate was added, False if it was already present

        Raises:
            ValueError: If the candidate kind does not match the set kind
        """
        if candidate.kind != self.kind:
            raise ValueError(f"Cannot add {candidate.kind.value} candidate to {self.kind.value} set")

        key = identity_key(candidate.identity)
        if key in self._candidates:
            return False

        self._candidates[key] = candidate
        return True

    def get(self, identity: str) -> Optional[DeletionCandidate]:
        return self._candidates.get(identity_key(identity))

    def identities(self) -> list[str]:
        return [candidate.identity for candidate in self._candidates.values()]

    def __contains__(self, identity: object) -> bool:
        return isinstance(identity, str) and identity_key(identity) in self._candidates

    def __iter__(self) -> Iterator[DeletionCandidate]:
        return iter(list(self._candidates.values()))

    def __len__(self) -> int:
        return len(self._candidates)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DeletionCandidateSet):
            return NotImplemented
        return self.kind == other.kind and list(self._candidates.items()) == list(other._candidates.items())

    def __repr__(self) -> str:
        return f"DeletionCandidateSet({self.kind.value}, {self.identities()!r})"


@dataclass(frozen=True)
class TraceEntry:
    """Audit line for one considered entity.

    Attributes:
        kind: Entity kind
        identity: Resource group name or resource ID
        strategy: Strategy that surfaced the entity
        outcome: Decision taken for the entity
        remaining_days: Remaining lifetime (pinned and error entries have none)
        warning: Expiration tag parse warning (optional)
        error: Error description for error entries (optional)
        resource_group_name: Owning group for covered resources (optional)
    """

    kind: EntityKind
    identity: str
    strategy: SelectionStrategy
    outcome: TraceOutcome
    remaining_days: Optional[float] = None
    warning: Optional[str] = None
    error: Optional[str] = None
    resource_group_name: Optional[str] = None

    def format(self) -> str:
        """Render the entry as a human-readable line."""
        prefix = f"[{self.strategy.value}] {self.identity}"

        if self.outcome == TraceOutcome.PINNED:
            return f"{prefix}: pinned, skipping"

        if self.outcome == TraceOutcome.EXPIRED:
            overdue = -(self.remaining_days or 0.0)
            return f"{prefix}: expired {overdue:.2f} days ago, added for deletion"

        if self.outcome == TraceOutcome.ALIVE:
            return f"{prefix}: remaining {self.remaining_days:.2f} days"

        if self.outcome == TraceOutcome.COVERED:
            return f"{prefix}: resource group {self.resource_group_name} already scheduled for deletion, skipping"

        return f"{prefix}: error: {self.error}, skipping"
