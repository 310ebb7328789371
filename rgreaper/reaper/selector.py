"""Candidate selection.

Runs the selection strategies over fetched metadata, evaluates every surfaced
entity against the expiration policy and merges the results into one
deduplicated candidate set per entity kind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional

from rgreaper.exceptions import MissingCreationTimeError
from rgreaper.models.candidate import (
    DeletionCandidate,
    DeletionCandidateSet,
    Entity,
    EntityKind,
    SelectionStrategy,
    TraceEntry,
    TraceOutcome,
)
from rgreaper.models.metadata import ResourceGroupMetadata, ResourceMetadata, identity_key
from rgreaper.reaper.policy import ExpirationPolicy, is_tag_set

logger = logging.getLogger(__name__)


@dataclass
class SelectionResult:
    """Candidates and trace entries produced by one selection pass."""

    candidates: DeletionCandidateSet
    traces: list[TraceEntry] = field(default_factory=list)


class SelectionEngine:
    """Selection engine for resource groups and standalone resources.

    Resource groups are surfaced by name pattern and by marker tag, resources by
    the tag-indexed lookup done at fetch time. Strategies run in a fixed order;
    an entity already considered by an earlier strategy is not evaluated again,
    and a resource whose group is already a candidate is left to the group
    deletion.

    Attributes:
        policy: Expiration policy used to evaluate entities
        resource_group_prefix: Required group name prefix for the name strategy
        resource_group_suffix: Required group name suffix for the name strategy
        marker_tag_name: Tag flagging an entity as managed by the reaper
    """

    def __init__(
        self,
        policy: ExpirationPolicy,
        resource_group_prefix: str = "",
        resource_group_suffix: str = "",
        marker_tag_name: str = "ttl-managed",
    ) -> None:
        self.policy = policy
        self.resource_group_prefix = resource_group_prefix
        self.resource_group_suffix = resource_group_suffix
        self.marker_tag_name = marker_tag_name

        if not resource_group_prefix:
            logger.warning("No resource group prefix configured, name matching is disabled")

    def matches_name(self, group: ResourceGroupMetadata) -> bool:
        if not self.resource_group_prefix:
            return False
        return group.name.startswith(self.resource_group_prefix) and group.name.endswith(self.resource_group_suffix)

    def matches_marker_tag(self, group: ResourceGroupMetadata) -> bool:
        return is_tag_set(group.tags, self.marker_tag_name)

    def group_strategies(self) -> list[tuple[SelectionStrategy, Callable[[ResourceGroupMetadata], bool]]]:
        """Resource group strategies in evaluation order."""
        return [
            (SelectionStrategy.NAME_MATCH, self.matches_name),
            (SelectionStrategy.TAG_MATCH, self.matches_marker_tag),
        ]

    def select_resource_groups(
        self, groups: Iterable[ResourceGroupMetadata], now: Optional[datetime] = None
    ) -> SelectionResult:
        """Select expired resource groups.

        Args:
            groups: All resource groups fetched for the subscription
            now: Evaluation time (defaults to the policy clock)

        Returns:
            SelectionResult with the resource group candidate set and traces
        """
        now = now if now is not None else self.policy.now()
        groups = list(groups)
        result = SelectionResult(candidates=DeletionCandidateSet(EntityKind.RESOURCE_GROUP))
        considered: set[str] = set()

        for strategy, matcher in self.group_strategies():
            matched = [group for group in groups if matcher(group)]
            logger.info(f"{strategy.value}: {len(matched)} resource group(s) matched")

            for group in matched:
                key = identity_key(group.identity)
                if key in considered:
                    logger.debug(f"{group.name} already considered, skipping for {strategy.value}")
                    continue
                considered.add(key)
                self._consider(group, EntityKind.RESOURCE_GROUP, strategy, result, now)

        return result

    def select_resources(
        self,
        resources: Iterable[ResourceMetadata],
        group_candidates: DeletionCandidateSet,
        now: Optional[datetime] = None,
    ) -> SelectionResult:
        """Select expired standalone resources.

        Args:
            resources: Resources returned by the marker tag lookup
            group_candidates: Resource group candidates of the same subscription
            now: Evaluation time (defaults to the policy clock)

        Returns:
            SelectionResult with the resource candidate set and traces
        """
        now = now if now is not None else self.policy.now()
        strategy = SelectionStrategy.RESOURCE_TAG_MATCH
        result = SelectionResult(candidates=DeletionCandidateSet(EntityKind.RESOURCE))
        considered: set[str] = set()

        resources = list(resources)
        logger.info(f"{strategy.value}: {len(resources)} resource(s) matched")

        for resource in resources:
            key = identity_key(resource.identity)
            if key in considered:
                continue
            considered.add(key)

            if resource.resource_group_name in group_candidates:
                result.traces.append(
                    TraceEntry(
                        kind=EntityKind.RESOURCE,
                        identity=resource.identity,
                        strategy=strategy,
                        outcome=TraceOutcome.COVERED,
                        resource_group_name=resource.resource_group_name,
                    )
                )
                continue

            self._consider(resource, EntityKind.RESOURCE, strategy, result, now)

        return result

    def _consider(
        self,
        entity: Entity,
        kind: EntityKind,
        strategy: SelectionStrategy,
        result: SelectionResult,
        now: datetime,
    ) -> None:
        """Evaluate one entity and record the decision."""
        try:
            created_time = self._require_created_time(entity)
        except MissingCreationTimeError as e:
            logger.error(str(e))
            result.traces.append(
                TraceEntry(kind=kind, identity=entity.identity, strategy=strategy, outcome=TraceOutcome.ERROR, error=str(e))
            )
            return

        verdict = self.policy.evaluate(entity.tags, created_time, now)
        if verdict.parse_warning:
            logger.warning(f"{entity.identity}: {verdict.parse_warning}")

        if verdict.pinned:
            outcome = TraceOutcome.PINNED
        elif verdict.expired:
            outcome = TraceOutcome.EXPIRED
            result.candidates.add(DeletionCandidate(entity=entity, kind=kind, strategy=strategy, verdict=verdict))
        else:
            outcome = TraceOutcome.ALIVE

        result.traces.append(
            TraceEntry(
                kind=kind,
                identity=entity.identity,
                strategy=strategy,
                outcome=outcome,
                remaining_days=None if verdict.pinned else verdict.remaining_days,
                warning=verdict.parse_warning,
            )
        )

    @staticmethod
    def _require_created_time(entity: Entity) -> datetime:
        if entity.created_time is None:
            raise MissingCreationTimeError(entity.identity)
        return entity.created_time
