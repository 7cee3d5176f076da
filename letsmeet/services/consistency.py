"""
Series and match consistency management.

Keeps instances, recurring series and matches referentially consistent when
a pattern changes or instances are deleted:
- a match never references a deleted instance
- a match whose reference set empties is deleted
- a series keeps exactly one root carrying the pattern

Cascades are computed over explicit id sets; instances only know their
root by id.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Iterable

from letsmeet.exceptions import ConsistencyViolation, NotFoundError, ValidationError
from letsmeet.models.availability import AvailabilityInstance
from letsmeet.models.base import RECURRENCE_PATTERNS
from letsmeet.services.recurrence import SlotDraft, expand
from letsmeet.services.stores import AvailabilityStore, MatchStore

logger = logging.getLogger(__name__)


@dataclass
class DetachResult:
    """Effect of removing instance ids from the matches that reference them."""

    updated_match_ids: list[uuid.UUID] = field(default_factory=list)
    deleted_match_ids: list[uuid.UUID] = field(default_factory=list)


@dataclass
class ReconcileReport:
    """Repairs applied by a reconciliation pass."""

    violations: list[ConsistencyViolation] = field(default_factory=list)
    deleted_match_ids: list[uuid.UUID] = field(default_factory=list)
    released_instance_ids: list[uuid.UUID] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.violations


class ConsistencyManager:
    """Pattern updates, deletion cascades and repair of broken references."""

    def __init__(self, availability: AvailabilityStore, matches: MatchStore):
        self._availability = availability
        self._matches = matches

    # =========================================================================
    # Cascade helpers
    # =========================================================================

    def detach_from_matches(self, instance_ids: Iterable[uuid.UUID]) -> DetachResult:
        """
        Remove instance ids from every match that references them.

        A match left with an empty reference set is deleted; any other match
        keeps its participants and responses untouched.
        """
        ids = set(instance_ids)
        result = DetachResult()
        if not ids:
            return result

        for match in self._matches.find_referencing_any(ids, for_update=True):
            match.detach_instances(ids)
            if match.is_empty:
                self._matches.delete(match)
                result.deleted_match_ids.append(match.id)
            else:
                self._matches.update(match)
                result.updated_match_ids.append(match.id)

        if result.deleted_match_ids or result.updated_match_ids:
            logger.info(
                f"Detached {len(ids)} instance(s): "
                f"{len(result.updated_match_ids)} match(es) updated, "
                f"{len(result.deleted_match_ids)} deleted"
            )
        return result

    def _get_instance(self, instance_id: uuid.UUID) -> AvailabilityInstance:
        instance = self._availability.find_by_id(instance_id)
        if instance is None:
            raise NotFoundError("Event", instance_id)
        return instance

    # =========================================================================
    # Pattern updates
    # =========================================================================

    def update_pattern(
        self,
        root_id: uuid.UUID,
        new_pattern: str,
    ) -> tuple[AvailabilityInstance, int]:
        """
        Replace a root's recurrence pattern and regenerate its series.

        The old successors are discarded unconditionally (after detaching them
        from any match); matches on the root survive.

        Returns:
            (updated root, number of successors created)

        Raises:
            ValidationError: Unknown pattern, or the instance is a series member
            NotFoundError: Root does not exist
        """
        if new_pattern not in RECURRENCE_PATTERNS:
            raise ValidationError(
                "recurrencePattern",
                f"must be one of {', '.join(RECURRENCE_PATTERNS)}, got {new_pattern!r}",
            )

        root = self._get_instance(root_id)
        if root.is_recurring:
            raise ValidationError(
                "recurrencePattern",
                "can only be changed on the first event of a series",
            )

        successor_ids = [s.id for s in self._availability.find_by_back_reference(root.id)]
        if successor_ids:
            self.detach_from_matches(successor_ids)
            self._availability.delete_many(successor_ids)

        self._availability.update_pattern(root.id, new_pattern)

        slot = SlotDraft(user_id=root.user_id, date=root.date, time=root.time, activity=root.activity)
        drafts = expand(slot, new_pattern, root_id=root.id)[1:]
        if drafts:
            self._availability.insert_many(drafts)

        logger.info(
            f"Instance {root.id} pattern set to {new_pattern}: "
            f"replaced {len(successor_ids)} successor(s) with {len(drafts)}"
        )
        return root, len(drafts)

    # =========================================================================
    # Deletion
    # =========================================================================

    def delete_one(self, instance_id: uuid.UUID) -> None:
        """
        Delete a single instance.

        Raises:
            NotFoundError: Instance does not exist
        """
        instance = self._get_instance(instance_id)
        self.detach_from_matches([instance.id])
        self._availability.delete(instance.id)
        logger.info(f"Deleted instance {instance_id}")

    def delete_series(self, instance_id: uuid.UUID) -> int:
        """
        Delete the whole series an instance belongs to.

        A standalone instance (no pattern, no root) is deleted on its own.

        Returns:
            Number of instances deleted

        Raises:
            NotFoundError: Instance does not exist
        """
        instance = self._get_instance(instance_id)

        root_id = instance.series_root_id
        if root_id is None:
            self.delete_one(instance.id)
            return 1

        affected: set[uuid.UUID] = set()
        if self._availability.find_by_id(root_id) is not None:
            affected.add(root_id)
        affected.update(s.id for s in self._availability.find_by_back_reference(root_id))

        self.detach_from_matches(affected)
        count = self._availability.delete_many(affected)

        logger.info(f"Deleted series {root_id}: {count} instance(s)")
        return count

    def delete_match(self, match_id: uuid.UUID) -> list[uuid.UUID]:
        """
        Explicitly remove a match.

        Instances it referenced that no other match references become
        unmatched again.

        Returns:
            Ids of the instances released for matching

        Raises:
            NotFoundError: Match does not exist
        """
        match = self._matches.find_by_id(match_id, for_update=True)
        if match is None:
            raise NotFoundError("Match", match_id)

        instance_ids = set(match.instance_ids)
        self._matches.delete(match)

        still_referenced = {
            iid
            for other in self._matches.find_referencing_any(instance_ids)
            for iid in other.instance_ids
        }
        released = sorted(instance_ids - still_referenced, key=str)
        for iid in released:
            self._availability.update_matched_flag(iid, False)

        logger.info(f"Deleted match {match_id}; released {len(released)} instance(s)")
        return released

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def remove_if_orphaned(self, match_id: uuid.UUID) -> bool:
        """
        Delete a match whose reference set is empty.

        Returns:
            True if the match existed and was removed
        """
        match = self._matches.find_by_id(match_id, for_update=True)
        if match is None or not match.is_empty:
            return False

        violation = ConsistencyViolation(
            f"Match {match_id} references no availability; removing it", match_id
        )
        logger.warning(str(violation))
        self._matches.delete(match)
        return True

    def reconcile(self) -> ReconcileReport:
        """
        Repair state left behind by partially applied writes.

        - Matches with an empty reference set are deleted
        - Instances flagged matched that no match references are released

        Returns:
            Report of the violations found and repaired
        """
        report = ReconcileReport()

        for match in self._matches.find_unreferenced():
            violation = ConsistencyViolation(
                f"Match {match.id} references no availability; removing it", match.id
            )
            logger.warning(str(violation))
            report.violations.append(violation)
            report.deleted_match_ids.append(match.id)
            self._matches.delete(match)

        for instance in self._availability.find_matched_without_match():
            violation = ConsistencyViolation(
                f"Instance {instance.id} is flagged matched without a match; releasing it",
                instance.id,
            )
            logger.warning(str(violation))
            report.violations.append(violation)
            report.released_instance_ids.append(instance.id)
            self._availability.update_matched_flag(instance.id, False)

        if report.is_clean:
            logger.debug("Reconciliation found no violations")
        return report
