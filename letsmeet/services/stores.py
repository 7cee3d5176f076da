"""
Storage access for availability instances, matches and users.

Each store wraps one SQLAlchemy session and exposes the narrow query/update
surface the matching core needs. Stores flush but never commit; the
SchedulingService owns the transaction.

Every SQLAlchemyError is re-raised as StorageError naming the operation.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import date
from typing import Iterable, Iterator, Optional, Sequence

from sqlalchemy import and_, delete, exists, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.attributes import set_committed_value

from letsmeet.exceptions import StorageError
from letsmeet.models.availability import AvailabilityInstance
from letsmeet.models.matches import Match, MatchInstance, MatchParticipant
from letsmeet.models.users import User
from letsmeet.services.recurrence import InstanceDraft

logger = logging.getLogger(__name__)


@contextmanager
def storage_operation(operation: str) -> Iterator[None]:
    """Translate SQLAlchemy failures into StorageError for one store operation."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Storage operation {operation} failed: {e}")
        raise StorageError(operation, e) from e


class AvailabilityStore:
    """Keyed storage of availability instances."""

    def __init__(self, session: Session):
        self._session = session

    def insert_many(
        self,
        drafts: Sequence[InstanceDraft],
        first_id: Optional[uuid.UUID] = None,
    ) -> list[AvailabilityInstance]:
        """
        Persist drafts in order.

        Args:
            drafts: Drafts to insert
            first_id: Id to give the first draft (a series root whose id the
                other drafts already reference)

        Returns:
            The created instances, in draft order, with ids assigned
        """
        instances = [
            AvailabilityInstance(
                id=first_id if (i == 0 and first_id is not None) else uuid.uuid4(),
                user_id=draft.user_id,
                date=draft.date,
                time=draft.time,
                activity=draft.activity,
                recurrence_pattern=draft.recurrence_pattern,
                is_recurring=draft.is_recurring,
                original_instance_id=draft.original_instance_id,
                is_matched=False,
            )
            for i, draft in enumerate(drafts)
        ]
        with storage_operation("availability.insert_many"):
            self._session.add_all(instances)
            self._session.flush()
        return instances

    def find_by_id(self, instance_id: uuid.UUID) -> Optional[AvailabilityInstance]:
        with storage_operation("availability.find_by_id"):
            return self._session.get(AvailabilityInstance, instance_id)

    def find_by(
        self,
        slot_date: date,
        time: str,
        activity: str,
        exclude_user: Optional[uuid.UUID] = None,
        matched: Optional[bool] = False,
    ) -> Sequence[AvailabilityInstance]:
        """
        Find instances for a (date, time, activity) slot in insertion order.

        Args:
            slot_date: Calendar day
            time: Time-of-day label (exact match)
            activity: Activity kind
            exclude_user: Skip instances owned by this user
            matched: Filter on the matched flag (None = either)

        Returns:
            Matching instances, oldest first
        """
        conditions = [
            AvailabilityInstance.date == slot_date,
            AvailabilityInstance.time == time,
            AvailabilityInstance.activity == activity,
        ]
        if exclude_user is not None:
            conditions.append(AvailabilityInstance.user_id != exclude_user)
        if matched is not None:
            conditions.append(AvailabilityInstance.is_matched.is_(matched))

        stmt = (
            select(AvailabilityInstance)
            .where(and_(*conditions))
            .order_by(AvailabilityInstance.created_at, AvailabilityInstance.id)
        )
        with storage_operation("availability.find_by"):
            return self._session.scalars(stmt).all()

    def find_by_back_reference(self, root_id: uuid.UUID) -> Sequence[AvailabilityInstance]:
        """All successors whose back-reference is root_id, in date order."""
        stmt = (
            select(AvailabilityInstance)
            .where(AvailabilityInstance.original_instance_id == root_id)
            .order_by(AvailabilityInstance.date)
        )
        with storage_operation("availability.find_by_back_reference"):
            return self._session.scalars(stmt).all()

    def find_by_user(self, user_id: uuid.UUID) -> Sequence[AvailabilityInstance]:
        """All instances owned by a user, earliest date first."""
        stmt = (
            select(AvailabilityInstance)
            .where(AvailabilityInstance.user_id == user_id)
            .order_by(AvailabilityInstance.date, AvailabilityInstance.created_at)
        )
        with storage_operation("availability.find_by_user"):
            return self._session.scalars(stmt).all()

    def find_on_date(self, slot_date: date) -> Sequence[AvailabilityInstance]:
        """All instances on a calendar day, with their owners loaded."""
        stmt = (
            select(AvailabilityInstance)
            .where(AvailabilityInstance.date == slot_date)
            .options(selectinload(AvailabilityInstance.user))
            .order_by(AvailabilityInstance.time, AvailabilityInstance.created_at)
        )
        with storage_operation("availability.find_on_date"):
            return self._session.scalars(stmt).all()

    def find_matched_without_match(self) -> Sequence[AvailabilityInstance]:
        """Instances flagged matched that no match references."""
        referenced = exists().where(MatchInstance.instance_id == AvailabilityInstance.id)
        stmt = select(AvailabilityInstance).where(
            AvailabilityInstance.is_matched.is_(True),
            ~referenced,
        )
        with storage_operation("availability.find_matched_without_match"):
            return self._session.scalars(stmt).all()

    def _loaded(self, instance_id: uuid.UUID) -> Optional[AvailabilityInstance]:
        """Instance already in the session's identity map, without querying."""
        key = self._session.identity_key(AvailabilityInstance, instance_id)
        return self._session.identity_map.get(key)

    def _set_loaded(self, instance_id: uuid.UUID, **values) -> None:
        # Bulk UPDATEs skip the identity map; mirror the new values onto a loaded object
        instance = self._loaded(instance_id)
        if instance is not None:
            for name, value in values.items():
                set_committed_value(instance, name, value)

    def update_matched_flag(self, instance_id: uuid.UUID, value: bool) -> None:
        stmt = (
            update(AvailabilityInstance)
            .where(AvailabilityInstance.id == instance_id)
            .values(is_matched=value)
            .execution_options(synchronize_session=False)
        )
        with storage_operation("availability.update_matched_flag"):
            self._session.execute(stmt)
        self._set_loaded(instance_id, is_matched=value)

    def claim_unmatched(self, instance_id: uuid.UUID) -> bool:
        """
        Atomically flip is_matched from false to true.

        Compare-and-set on the row: concurrent claimers of the same instance
        cannot both succeed.

        Returns:
            True if this call claimed the instance
        """
        stmt = (
            update(AvailabilityInstance)
            .where(
                AvailabilityInstance.id == instance_id,
                AvailabilityInstance.is_matched.is_(False),
            )
            .values(is_matched=True)
            .execution_options(synchronize_session=False)
        )
        with storage_operation("availability.claim_unmatched"):
            result = self._session.execute(stmt)
        claimed = result.rowcount == 1
        if claimed:
            self._set_loaded(instance_id, is_matched=True)
        return claimed

    def update_pattern(self, instance_id: uuid.UUID, pattern: str) -> None:
        stmt = (
            update(AvailabilityInstance)
            .where(AvailabilityInstance.id == instance_id)
            .values(recurrence_pattern=pattern)
            .execution_options(synchronize_session=False)
        )
        with storage_operation("availability.update_pattern"):
            self._session.execute(stmt)
        self._set_loaded(instance_id, recurrence_pattern=pattern)

    def delete(self, instance_id: uuid.UUID) -> bool:
        """Delete one instance. Returns False if it did not exist."""
        return self.delete_many([instance_id]) == 1

    def delete_many(self, instance_ids: Iterable[uuid.UUID]) -> int:
        """
        Delete instances in a single statement.

        Returns:
            Number of rows deleted
        """
        ids = list(instance_ids)
        if not ids:
            return 0
        stmt = (
            delete(AvailabilityInstance)
            .where(AvailabilityInstance.id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        with storage_operation("availability.delete_many"):
            result = self._session.execute(stmt)
        for instance_id in ids:
            instance = self._loaded(instance_id)
            if instance is not None:
                self._session.expunge(instance)
        return result.rowcount


class MatchStore:
    """Keyed storage of matches with their participants and reference sets."""

    def __init__(self, session: Session):
        self._session = session

    def _select(self):
        return select(Match).options(
            selectinload(Match.participants),
            selectinload(Match.instance_links),
        )

    def insert(self, match: Match) -> Match:
        with storage_operation("match.insert"):
            self._session.add(match)
            self._session.flush()
        return match

    def find_by_id(self, match_id: uuid.UUID, for_update: bool = False) -> Optional[Match]:
        """
        Load a match with participants and references.

        Args:
            match_id: Match id
            for_update: Lock the match row for the rest of the transaction
        """
        stmt = self._select().where(Match.id == match_id)
        if for_update:
            stmt = stmt.with_for_update(of=Match)
        with storage_operation("match.find_by_id"):
            return self._session.scalar(stmt)

    def find_by_participant(self, user_id: uuid.UUID) -> Sequence[Match]:
        """All matches a user takes part in, newest first."""
        participates = exists().where(
            MatchParticipant.match_id == Match.id,
            MatchParticipant.user_id == user_id,
        )
        stmt = self._select().where(participates).order_by(Match.created_at.desc())
        with storage_operation("match.find_by_participant"):
            return self._session.scalars(stmt).all()

    def find_referencing_any(
        self,
        instance_ids: Iterable[uuid.UUID],
        for_update: bool = False,
    ) -> Sequence[Match]:
        """All matches whose reference set contains any of instance_ids."""
        ids = list(instance_ids)
        if not ids:
            return []
        referencing = exists().where(
            MatchInstance.match_id == Match.id,
            MatchInstance.instance_id.in_(ids),
        )
        stmt = self._select().where(referencing).order_by(Match.created_at)
        if for_update:
            stmt = stmt.with_for_update(of=Match)
        with storage_operation("match.find_referencing_any"):
            return self._session.scalars(stmt).all()

    def find_unreferenced(self) -> Sequence[Match]:
        """Matches whose reference set is empty."""
        referenced = exists().where(MatchInstance.match_id == Match.id)
        stmt = self._select().where(~referenced)
        with storage_operation("match.find_unreferenced"):
            return self._session.scalars(stmt).all()

    def update(self, match: Match) -> Match:
        with storage_operation("match.update"):
            self._session.flush()
        return match

    def delete(self, match: Match) -> None:
        with storage_operation("match.delete"):
            self._session.delete(match)
            self._session.flush()


class UserStore:
    """Registration and lookup of users."""

    def __init__(self, session: Session):
        self._session = session

    def insert(self, user: User) -> User:
        with storage_operation("user.insert"):
            self._session.add(user)
            self._session.flush()
        return user

    def find_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        with storage_operation("user.find_by_id"):
            return self._session.get(User, user_id)

    def find_by_name(self, name: str) -> Optional[User]:
        """Earliest registered user with this exact name."""
        stmt = (
            select(User)
            .where(User.name == name)
            .order_by(User.created_at, User.id)
            .limit(1)
        )
        with storage_operation("user.find_by_name"):
            return self._session.scalars(stmt).first()

    def email_exists(self, email: str) -> bool:
        stmt = select(User.id).where(User.email == email).limit(1)
        with storage_operation("user.email_exists"):
            return self._session.scalars(stmt).first() is not None

    def find_many(self, user_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, User]:
        ids = list(user_ids)
        if not ids:
            return {}
        stmt = select(User).where(User.id.in_(ids))
        with storage_operation("user.find_many"):
            return {user.id: user for user in self._session.scalars(stmt).all()}
