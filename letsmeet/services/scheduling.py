"""
Scheduling service: the caller-facing operations.

Wires the recurrence expander, matcher, consensus protocol and consistency
manager around one database session. Every write operation is one unit of
work: committed on success, rolled back on any error.
"""

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Iterator, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from letsmeet.exceptions import NotFoundError, StorageError, ValidationError
from letsmeet.models.availability import AvailabilityInstance
from letsmeet.models.base import ACTIVITIES, PATTERN_NONE, RECURRENCE_PATTERNS
from letsmeet.models.matches import Match
from letsmeet.models.users import User
from letsmeet.services.consensus import MatchConsensus
from letsmeet.services.consistency import ConsistencyManager, ReconcileReport
from letsmeet.services.matcher import Matcher
from letsmeet.services.notifier import Notifier
from letsmeet.services.recurrence import SlotDraft, expand
from letsmeet.services.stores import AvailabilityStore, MatchStore, UserStore

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    """Outcome of submitting availability."""

    root_instance: AvailabilityInstance
    match: Optional[Match]
    series_count: int  # recurring successors created alongside the root


@dataclass
class PatternUpdateResult:
    """Outcome of changing a root's recurrence pattern."""

    instance: AvailabilityInstance
    added_series_count: int


@dataclass
class UserProfile:
    """A user with their availability (by date) and matches (newest first)."""

    user: User
    instances: Sequence[AvailabilityInstance]
    matches: Sequence[Match]


def _require(field: str, value) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(field, "is required")


class SchedulingService:
    """
    Availability submission, matching, consensus and cleanup.

    Args:
        session: Database session (one per request)
        notifier: Delivery channel for match response notifications
    """

    def __init__(self, session: Session, notifier: Notifier):
        self._session = session
        self._availability = AvailabilityStore(session)
        self._matches = MatchStore(session)
        self._users = UserStore(session)
        self._matcher = Matcher(self._availability, self._matches)
        self._consensus = MatchConsensus(self._matches, notifier)
        self._consistency = ConsistencyManager(self._availability, self._matches)

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[None]:
        """Commit on success; roll back and re-raise on any failure."""
        try:
            yield
            self._session.commit()
        except SQLAlchemyError as e:
            self._session.rollback()
            logger.error(f"{operation} failed at commit: {e}")
            raise StorageError(operation, e) from e
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Availability
    # =========================================================================

    def submit_availability(
        self,
        user_id: uuid.UUID,
        slot_date: date,
        time: str,
        activity: str,
        pattern: Optional[str] = None,
    ) -> SubmissionResult:
        """
        Publish availability, expand its series and try to match the first slot.

        Only the root instance is matched; successors wait for later
        submissions from other users.

        Raises:
            ValidationError: Missing field, unknown activity or pattern
            StorageError: Database failure (nothing is persisted)
        """
        _require("userId", user_id)
        _require("date", slot_date)
        _require("time", time)
        _require("activity", activity)
        if activity not in ACTIVITIES:
            raise ValidationError("activity", f"must be one of {', '.join(ACTIVITIES)}, got {activity!r}")
        pattern = pattern or PATTERN_NONE
        if pattern not in RECURRENCE_PATTERNS:
            raise ValidationError(
                "recurrencePattern",
                f"must be one of {', '.join(RECURRENCE_PATTERNS)}, got {pattern!r}",
            )
        time = time.strip()

        with self._unit_of_work("submit_availability"):
            if self._users.find_by_id(user_id) is None:
                raise NotFoundError("User", user_id)

            # Root id is fixed up front so successors can point at it in one insert
            root_id = uuid.uuid4()
            slot = SlotDraft(user_id=user_id, date=slot_date, time=time, activity=activity)
            drafts = expand(slot, pattern, root_id=root_id)
            created = self._availability.insert_many(drafts, first_id=root_id)
            root = created[0]

            match = self._matcher.try_match(root)

        logger.info(
            f"User {user_id} submitted {activity} on {slot_date} at {time} "
            f"({pattern}, {len(created)} instance(s), matched={match is not None})"
        )
        return SubmissionResult(root_instance=root, match=match, series_count=len(created) - 1)

    def update_pattern(self, instance_id: uuid.UUID, pattern: Optional[str]) -> PatternUpdateResult:
        """Change a root's recurrence pattern and regenerate its successors."""
        _require("recurrencePattern", pattern)
        with self._unit_of_work("update_pattern"):
            root, added = self._consistency.update_pattern(instance_id, pattern)
        return PatternUpdateResult(instance=root, added_series_count=added)

    def delete_instance(self, instance_id: uuid.UUID) -> None:
        """Delete one instance, detaching it from its matches."""
        with self._unit_of_work("delete_instance"):
            self._consistency.delete_one(instance_id)

    def delete_series(self, instance_id: uuid.UUID) -> int:
        """Delete the series containing an instance. Returns the number deleted."""
        with self._unit_of_work("delete_series"):
            return self._consistency.delete_series(instance_id)

    def get_instance(self, instance_id: uuid.UUID) -> AvailabilityInstance:
        instance = self._availability.find_by_id(instance_id)
        if instance is None:
            raise NotFoundError("Event", instance_id)
        return instance

    def list_user_instances(self, user_id: uuid.UUID) -> Sequence[AvailabilityInstance]:
        """A user's availability, earliest date first."""
        return self._availability.find_by_user(user_id)

    def list_instances_on_date(self, slot_date: date) -> Sequence[AvailabilityInstance]:
        """Everyone's availability on one day."""
        _require("date", slot_date)
        instances = self._availability.find_on_date(slot_date)
        logger.debug(f"Found {len(instances)} instance(s) on {slot_date}")
        return instances

    def find_candidate_users(self, slot_date: date, time: str, activity: str) -> list[User]:
        """
        Users with an unmatched instance on a slot.

        Deduplicated by user id, in the order their instances were created.
        """
        _require("date", slot_date)
        _require("time", time)
        _require("activity", activity)

        instances = self._availability.find_by(slot_date, time.strip(), activity, matched=False)
        user_ids: list[uuid.UUID] = []
        for instance in instances:
            if instance.user_id not in user_ids:
                user_ids.append(instance.user_id)

        users = self._users.find_many(user_ids)
        return [users[uid] for uid in user_ids if uid in users]

    # =========================================================================
    # Matches
    # =========================================================================

    def respond_to_match(self, match_id: uuid.UUID, user_id: uuid.UUID, response: str) -> Match:
        """
        Record a participant's response, then notify the other participant.

        The notification is sent only after the response is committed.
        """
        _require("userId", user_id)
        _require("response", response)
        try:
            with self._unit_of_work("respond_to_match"):
                match = self._consensus.record_response(match_id, user_id, response)
        except NotFoundError:
            # The rollback also undid any orphan removal; apply it on its own
            with self._unit_of_work("respond_to_match.repair"):
                self._consistency.remove_if_orphaned(match_id)
            raise

        self._consensus.notify_counterpart(match, user_id, response)
        return match

    def get_match(self, match_id: uuid.UUID) -> Match:
        match = self._matches.find_by_id(match_id)
        if match is None:
            raise NotFoundError("Match", match_id)
        return match

    def list_user_matches(self, user_id: uuid.UUID) -> Sequence[Match]:
        """Matches a user takes part in, newest first."""
        return self._matches.find_by_participant(user_id)

    def delete_match(self, match_id: uuid.UUID) -> list[uuid.UUID]:
        """Remove a match; returns the instance ids released for matching."""
        with self._unit_of_work("delete_match"):
            return self._consistency.delete_match(match_id)

    def reconcile(self) -> ReconcileReport:
        """Run a consistency repair pass."""
        with self._unit_of_work("reconcile"):
            return self._consistency.reconcile()

    # =========================================================================
    # Users
    # =========================================================================

    def create_user(
        self,
        name: str,
        email: Optional[str] = None,
        city: str = "",
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> User:
        """
        Register a user.

        Raises:
            ValidationError: Blank name, or the email belongs to another user
        """
        _require("name", name)
        email = email.strip() if email and email.strip() else None
        if email is not None and self._users.email_exists(email):
            raise ValidationError("email", "Email already exists")

        user = User(
            name=name.strip(),
            email=email,
            city=(city or "").strip(),
            latitude=latitude,
            longitude=longitude,
        )
        with self._unit_of_work("create_user"):
            self._users.insert(user)
        logger.info(f"Created user {user.id}")
        return user

    def get_user(self, user_id: uuid.UUID) -> User:
        user = self._users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def get_user_profile(self, user_id: uuid.UUID) -> UserProfile:
        return self._profile(self.get_user(user_id))

    def login(self, name: str) -> User:
        """Find a registered user by name. There are no credentials."""
        _require("name", name)
        user = self._users.find_by_name(name.strip())
        if user is None:
            raise NotFoundError("User", name.strip())
        return user

    def login_profile(self, name: str) -> UserProfile:
        return self._profile(self.login(name))

    def update_user_location(
        self,
        user_id: uuid.UUID,
        city: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> User:
        """Change a user's home location; omitted values are left as they are."""
        with self._unit_of_work("update_user_location"):
            user = self.get_user(user_id)
            if city is not None:
                user.city = city.strip()
            if latitude is not None:
                user.latitude = latitude
            if longitude is not None:
                user.longitude = longitude
        return user

    def _profile(self, user: User) -> UserProfile:
        return UserProfile(
            user=user,
            instances=self._availability.find_by_user(user.id),
            matches=self._matches.find_by_participant(user.id),
        )
