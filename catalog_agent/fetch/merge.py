"""
Record Reconciler Module
========================

Matches fetched records against existing catalog records using the
record similarity scorer, and proposes old/new changes with a
recommended action based on configurable thresholds.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from catalog_agent.core.comparison import MatchRule, get_match_rule, same_entry
from catalog_agent.core.enums import CollectionType, FieldKind
from catalog_agent.core.fieldformat import join_values, split_value
from catalog_agent.core.schema import Record

if TYPE_CHECKING:
    from catalog_agent.fetch.registry import MatchingConfig

logger = logging.getLogger(__name__)


class MatchAction(str, Enum):
    """Action to take based on match score."""

    AUTO_MERGE = "auto_merge"  # High score - merge into the existing record
    REVIEW_QUEUE = "review_queue"  # Medium score - needs manual review
    NEW_ENTRY = "new_entry"  # Low score - add as a new record


@dataclass
class MatchCandidate:
    """An existing record that may describe the same item."""

    record: Record
    score: float

    @property
    def title(self) -> str:
        return self.record.field("title")


@dataclass
class MergeProposal:
    """Result of reconciling one fetched record against the catalog."""

    new: Record
    action: MatchAction = MatchAction.NEW_ENTRY
    best: MatchCandidate | None = None
    candidates: list[MatchCandidate] = field(default_factory=list)

    # Field name -> (old value, merged value) for fields the merge changes
    changes: dict[str, tuple[str, str]] = field(default_factory=dict)
    notes: list[str] = field(default_factory=list)

    @property
    def old(self) -> Record | None:
        return self.best.record if self.best else None

    @property
    def score(self) -> float:
        return self.best.score if self.best else 0.0


class ChangeSink(ABC):
    """Receives accepted changes; the catalog document itself is never mutated here."""

    @abstractmethod
    def apply_change(self, old: Record | None, new: Record) -> None:
        """
        Apply one change.

        Args:
            old: Existing record being replaced, or None for a new record
            new: Record to store
        """
        pass


class CollectingSink(ChangeSink):
    """ChangeSink that keeps the changes in a list."""

    def __init__(self) -> None:
        self.changes: list[tuple[Record | None, Record]] = []

    def apply_change(self, old: Record | None, new: Record) -> None:
        self.changes.append((old, new))


class Reconciler:
    """
    Reconciles fetched records with existing catalog records.

    Uses same_entry scores to find the best existing match and
    determines the appropriate action based on score thresholds.
    """

    def __init__(
        self,
        auto_merge_threshold: float = 6.0,
        review_queue_threshold: float = 3.0,
        rules: Mapping[CollectionType, MatchRule] | None = None,
        overwrite: bool = False,
    ) -> None:
        """
        Initialize the reconciler.

        Args:
            auto_merge_threshold: Score >= this triggers auto-merge
            review_queue_threshold: Score >= this triggers review queue
            rules: Match rules per collection type; defaults are used for
                types not given
            overwrite: Let fetched values replace differing existing values
                instead of only filling empty fields
        """
        if review_queue_threshold > auto_merge_threshold:
            raise ValueError("review_queue_threshold must not exceed auto_merge_threshold")
        self.auto_merge_threshold = auto_merge_threshold
        self.review_queue_threshold = review_queue_threshold
        self.rules = dict(rules or {})
        self.overwrite = overwrite

    @classmethod
    def from_config(cls, config: MatchingConfig, overwrite: bool = False) -> Reconciler:
        """Create reconciler from configuration."""
        return cls(
            auto_merge_threshold=config.auto_merge_threshold,
            review_queue_threshold=config.review_queue_threshold,
            rules={t: config.rule_for(t) for t in CollectionType},
            overwrite=overwrite,
        )

    def rule_for(self, collection_type: CollectionType) -> MatchRule:
        return self.rules.get(collection_type) or get_match_rule(collection_type)

    def reconcile(self, record: Record, catalog: Iterable[Record]) -> MergeProposal:
        """
        Find the best existing match for a fetched record.

        Args:
            record: Fetched record
            catalog: Existing records; only those of the same type are scored

        Returns:
            MergeProposal with candidates and the recommended action
        """
        proposal = MergeProposal(new=record)
        rule = self.rule_for(record.collection_type)

        for existing in catalog:
            if existing.collection_type != record.collection_type:
                continue
            score = same_entry(existing, record, rule)
            if score > 0:
                proposal.candidates.append(MatchCandidate(existing, score))

        # Stable sort: catalog order breaks ties
        proposal.candidates.sort(key=lambda c: c.score, reverse=True)
        if proposal.candidates:
            proposal.best = proposal.candidates[0]

        proposal.action = self._determine_action(proposal.score)
        if proposal.old is not None and proposal.action != MatchAction.NEW_ENTRY:
            proposal.changes = self.diff(proposal.old, record)
        self._add_notes(proposal)
        return proposal

    def _determine_action(self, score: float) -> MatchAction:
        if score >= self.auto_merge_threshold:
            return MatchAction.AUTO_MERGE
        elif score >= self.review_queue_threshold:
            return MatchAction.REVIEW_QUEUE
        else:
            return MatchAction.NEW_ENTRY

    def _merge_value(self, name: str, new: Record, old_value: str, new_value: str) -> str:
        if not new_value:
            return old_value
        if not old_value:
            return new_value
        field_def = new.collection.field_by_name(name)
        if field_def is not None and field_def.allow_multiple:
            return join_values(dict.fromkeys(split_value(old_value) + split_value(new_value)))
        return new_value if self.overwrite else old_value

    def diff(self, old: Record, new: Record) -> dict[str, tuple[str, str]]:
        """
        Compute the field changes merging new into old would make.

        Empty fields are filled, multi-valued fields gain new values, and
        differing single values are replaced only when overwrite is set.
        Fields the old record's collection does not define yet are
        included; merged_record adds them to its schema.

        Returns:
            Field name -> (old value, merged value)
        """
        changes = {}
        for name, new_value in new.fields().items():
            old_value = old.field(name)
            merged = self._merge_value(name, new, old_value, new_value)
            if merged != old_value:
                changes[name] = (old_value, merged)
        return changes

    def merged_record(self, proposal: MergeProposal) -> Record:
        """
        Build the record that results from accepting a proposal.

        The old record's collection schema gains any field the fetched
        record brought along, and choice fields gain the fetched values
        in their allowed lists.

        Returns:
            A copy of the old record (same id) with the changes applied, or
            a copy of the new record when there is no match
        """
        if proposal.old is None:
            return proposal.new.copy()
        merged = proposal.old.copy(keep_id=True)
        schema = merged.collection.schema
        for name, (_, value) in proposal.changes.items():
            field_def = schema.get(name)
            if field_def is None:
                fetched_def = proposal.new.collection.field_by_name(name)
                if fetched_def is None:
                    continue
                field_def = schema.ensure_field(fetched_def.model_copy(deep=True))
                logger.debug(f"Added field '{name}' to {merged.collection_type.value} collection")
            if field_def.kind == FieldKind.CHOICE:
                added = schema.extend_allowed(name, split_value(value))
                if added:
                    logger.debug(f"Allowed values added to '{name}': {', '.join(added)}")
            merged.set_field(name, value)
        return merged

    def apply(
        self,
        proposals: Iterable[MergeProposal],
        sink: ChangeSink,
        include_review: bool = False,
    ) -> int:
        """
        Send accepted proposals to a change sink.

        Auto-merge proposals with changes and new entries are applied;
        review-queue proposals only when include_review is set.

        Returns:
            Number of changes applied
        """
        applied = 0
        for proposal in proposals:
            if proposal.action == MatchAction.REVIEW_QUEUE and not include_review:
                continue
            if proposal.action == MatchAction.NEW_ENTRY:
                sink.apply_change(None, self.merged_record(proposal))
            elif proposal.changes:
                sink.apply_change(proposal.old, self.merged_record(proposal))
            else:
                continue
            applied += 1
        logger.info(f"Applied {applied} change(s)")
        return applied

    def _add_notes(self, proposal: MergeProposal) -> None:
        """Add human-readable notes to the proposal."""
        title = proposal.new.field("title")
        if proposal.best:
            proposal.notes.append(
                f"'{title}' matched '{proposal.best.title}' (score {proposal.best.score:g})"
            )
        else:
            proposal.notes.append(f"No existing record matches '{title}'")
        if proposal.changes:
            proposal.notes.append(f"Changes: {', '.join(proposal.changes)}")
        proposal.notes.append(f"Recommended action: {proposal.action.value}")
