"""
Match, MatchParticipant and MatchInstance models.

Entities:
- Match: A pairing of two users' availability awaiting mutual consensus
- MatchParticipant: One participant and their response (the match "status" entries)
- MatchInstance: One availability instance in the match's reference set
"""

import datetime as dt
import uuid
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from letsmeet.models.base import BaseModel, RESPONSE_ACCEPTED, RESPONSE_PENDING

if TYPE_CHECKING:
    from letsmeet.models.availability import AvailabilityInstance


class Match(BaseModel):
    """
    A tentative pairing between two users' matching availability.

    Date, time and activity are copied from the instances at creation and
    never re-derived. The match is confirmed iff every participant accepted.
    A match whose reference set becomes empty is deleted.
    """

    __tablename__ = "matches"

    date: Mapped[dt.date] = mapped_column(
        Date,
        nullable=False,
        doc="Shared calendar day"
    )

    time: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Shared time-of-day label"
    )

    activity: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Shared activity kind"
    )

    is_confirmed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="True iff every participant accepted"
    )

    participants: Mapped[list["MatchParticipant"]] = relationship(
        "MatchParticipant",
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="MatchParticipant.position",
        doc="Participants with their responses"
    )

    instance_links: Mapped[list["MatchInstance"]] = relationship(
        "MatchInstance",
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="MatchInstance.position",
        doc="Reference set of availability instances"
    )

    __table_args__ = (
        Index("idx_match_slot", "date", "time", "activity"),
        Index("idx_match_created", "created_at"),
    )

    @property
    def participant_ids(self) -> list[uuid.UUID]:
        """Participant user ids in creation order."""
        return [p.user_id for p in self.participants]

    @property
    def instance_ids(self) -> list[uuid.UUID]:
        """Ids of the availability instances this match references."""
        return [link.instance_id for link in self.instance_links]

    def participant_for(self, user_id: uuid.UUID) -> Optional["MatchParticipant"]:
        """Return the participant entry for a user, or None."""
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None

    def other_participant_id(self, user_id: uuid.UUID) -> Optional[uuid.UUID]:
        """Return the id of the participant who is not user_id."""
        for participant_id in self.participant_ids:
            if participant_id != user_id:
                return participant_id
        return None

    def recompute_confirmed(self) -> bool:
        """Derive is_confirmed from the participants' responses."""
        self.is_confirmed = bool(self.participants) and all(
            p.response == RESPONSE_ACCEPTED for p in self.participants
        )
        return self.is_confirmed

    def detach_instances(self, instance_ids: set[uuid.UUID]) -> int:
        """
        Remove instance ids from the reference set.

        Returns:
            Number of references removed
        """
        kept = [link for link in self.instance_links if link.instance_id not in instance_ids]
        removed = len(self.instance_links) - len(kept)
        if removed:
            self.instance_links = kept
        return removed

    @property
    def is_empty(self) -> bool:
        """True when no instance is referenced any more."""
        return not self.instance_links

    def __repr__(self) -> str:
        return (
            f"<Match(date={self.date}, time='{self.time}', activity='{self.activity}', "
            f"confirmed={self.is_confirmed})>"
        )


class MatchParticipant(BaseModel):
    """
    A user's participation in a match and their consensus response.

    Fields:
    - position: 0 for the submitter who triggered the match, 1 for the counterpart
    - response: 'pending', 'accepted' or 'declined'
    - responded_at: When the last response was recorded
    """

    __tablename__ = "match_participants"

    match_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("matches.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    response: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RESPONSE_PENDING,
        doc="Status: 'pending', 'accepted', 'declined'"
    )

    responded_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    match: Mapped["Match"] = relationship(
        "Match",
        back_populates="participants",
    )

    __table_args__ = (
        UniqueConstraint("match_id", "user_id", name="uq_match_participant"),
        Index("idx_participant_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<MatchParticipant(user_id={self.user_id}, response='{self.response}')>"


class MatchInstance(BaseModel):
    """Membership of an availability instance in a match's reference set."""

    __tablename__ = "match_instances"

    match_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("matches.id", ondelete="CASCADE"),
        nullable=False,
    )

    instance_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("availability_instances.id"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    match: Mapped["Match"] = relationship(
        "Match",
        back_populates="instance_links",
    )

    instance: Mapped["AvailabilityInstance"] = relationship("AvailabilityInstance")

    __table_args__ = (
        UniqueConstraint("match_id", "instance_id", name="uq_match_instance"),
        Index("idx_match_instance_instance", "instance_id"),
    )

    def __repr__(self) -> str:
        return f"<MatchInstance(match_id={self.match_id}, instance_id={self.instance_id})>"
