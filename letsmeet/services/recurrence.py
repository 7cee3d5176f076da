"""
Recurrence expansion service.

Turns one submitted availability slot plus a recurrence pattern into the
ordered drafts of a series:
- 'None' (or no pattern) yields the slot itself
- any other pattern yields a fixed-length series starting at the slot
- only the first draft (the root) carries the pattern

Uses python-dateutil's relativedelta for calendar-month arithmetic.
Pure functions: no database access.
"""

import uuid
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Callable, Optional

from dateutil.relativedelta import relativedelta

from letsmeet.models.base import PATTERN_NONE

# Occurrences generated for a recurring submission, root included
SERIES_LENGTH = 10

_STEPS: dict[str, Callable[[date, int], date]] = {
    "Daily": lambda start, i: start + timedelta(days=i),
    "Weekly": lambda start, i: start + timedelta(days=7 * i),
    "Bi-weekly": lambda start, i: start + timedelta(days=14 * i),
    "Monthly": lambda start, i: start + relativedelta(months=i),
}


@dataclass(frozen=True)
class SlotDraft:
    """The slot a user submits: who, when and what."""

    user_id: uuid.UUID
    date: date
    time: str
    activity: str


@dataclass(frozen=True)
class InstanceDraft:
    """A not-yet-persisted availability instance produced by expand()."""

    user_id: uuid.UUID
    date: date
    time: str
    activity: str
    recurrence_pattern: str = PATTERN_NONE
    is_recurring: bool = False
    original_instance_id: Optional[uuid.UUID] = None

    def with_root(self, root_id: uuid.UUID) -> "InstanceDraft":
        """Return a copy pointing at root_id if this draft is a series member."""
        if not self.is_recurring:
            return self
        return replace(self, original_instance_id=root_id)


def is_recurring_pattern(pattern: Optional[str]) -> bool:
    """True for any pattern other than 'None'/empty."""
    return bool(pattern) and pattern != PATTERN_NONE


def occurrence_date(start: date, pattern: str, index: int) -> Optional[date]:
    """
    Date of the index-th occurrence of a pattern.

    Args:
        start: Date of the first occurrence
        pattern: Recurrence pattern name
        index: Zero-based occurrence index

    Returns:
        Occurrence date, or None for an unrecognized pattern
    """
    step = _STEPS.get(pattern)
    if step is None:
        return None
    return step(start, index)


def expand(
    base_slot: SlotDraft,
    pattern: Optional[str],
    root_id: Optional[uuid.UUID] = None,
) -> list[InstanceDraft]:
    """
    Expand a slot into the drafts of its series.

    Args:
        base_slot: Submitted slot (becomes draft 0)
        pattern: Recurrence pattern ('None'/None for a single slot)
        root_id: Root instance id for successors, when already known

    Returns:
        One draft for a non-recurring slot, SERIES_LENGTH drafts for a known
        pattern, and no drafts when the pattern is unrecognized
    """
    if not is_recurring_pattern(pattern):
        return [
            InstanceDraft(
                user_id=base_slot.user_id,
                date=base_slot.date,
                time=base_slot.time,
                activity=base_slot.activity,
            )
        ]

    drafts = []
    for i in range(SERIES_LENGTH):
        occurrence = occurrence_date(base_slot.date, pattern, i)
        if occurrence is None:
            # Unrecognized pattern: skip the occurrence
            continue

        drafts.append(
            InstanceDraft(
                user_id=base_slot.user_id,
                date=occurrence,
                time=base_slot.time,
                activity=base_slot.activity,
                recurrence_pattern=pattern if i == 0 else PATTERN_NONE,
                is_recurring=i > 0,
                original_instance_id=root_id if i > 0 else None,
            )
        )

    return drafts
