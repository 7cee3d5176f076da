"""
AvailabilityInstance model.

One concrete dated/timed availability slot. Recurring submissions are stored
as a series: a root carrying the recurrence pattern plus successors that point
back at it.
"""

import uuid
import datetime as dt
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from letsmeet.models.base import BaseModel, GUID, PATTERN_NONE

if TYPE_CHECKING:
    from letsmeet.models.users import User


class AvailabilityInstance(BaseModel):
    """
    A user's availability for one activity at one date and time.

    Series invariant:
    - root: recurrence_pattern != "None", is_recurring False, original_instance_id NULL
    - successor: recurrence_pattern == "None", is_recurring True,
      original_instance_id = root id

    original_instance_id is deliberately not a foreign key: deleting a root on
    its own leaves the successors addressable as one series.
    """

    __tablename__ = "availability_instances"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        doc="Owning user"
    )

    date: Mapped[dt.date] = mapped_column(
        Date,
        nullable=False,
        doc="Calendar day of the slot"
    )

    time: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Time-of-day label, compared verbatim (e.g. '10:00')"
    )

    activity: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Activity kind: 'Meet-up', 'Coffee', 'Lunch', 'Sports'"
    )

    is_matched: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Whether a match has claimed this slot"
    )

    recurrence_pattern: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PATTERN_NONE,
        doc="'None', 'Daily', 'Weekly', 'Bi-weekly', 'Monthly' (set on series roots only)"
    )

    is_recurring: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Whether this is a generated successor in a series"
    )

    original_instance_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID,
        nullable=True,
        default=None,
        doc="Root instance id for successors"
    )

    user: Mapped["User"] = relationship(
        "User",
        back_populates="instances",
    )

    __table_args__ = (
        Index("idx_instance_slot", "date", "time", "activity"),
        Index("idx_instance_user", "user_id"),
        Index("idx_instance_original", "original_instance_id"),
    )

    @property
    def is_series_root(self) -> bool:
        """Root of a recurring series (carries the pattern)."""
        return self.recurrence_pattern != PATTERN_NONE and not self.is_recurring

    @property
    def is_series_member(self) -> bool:
        """Generated successor pointing back at a root."""
        return self.is_recurring and self.original_instance_id is not None

    @property
    def series_root_id(self) -> Optional[uuid.UUID]:
        """Id of the series this instance belongs to, or None for a standalone slot."""
        if self.is_series_root:
            return self.id
        if self.is_series_member:
            return self.original_instance_id
        return None

    def __repr__(self) -> str:
        return (
            f"<AvailabilityInstance(date={self.date}, time='{self.time}', "
            f"activity='{self.activity}', matched={self.is_matched})>"
        )
