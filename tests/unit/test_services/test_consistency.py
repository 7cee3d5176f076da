"""
Unit tests for the series/match consistency manager.

Tests pattern regeneration, deletion cascades, explicit match removal and
reconciliation of broken references.
"""

import uuid
from datetime import date

import pytest
from sqlalchemy import func, select

from letsmeet.exceptions import NotFoundError, ValidationError
from letsmeet.models.availability import AvailabilityInstance
from letsmeet.models.matches import Match, MatchInstance, MatchParticipant
from letsmeet.services.consistency import ConsistencyManager
from letsmeet.services.stores import AvailabilityStore, MatchStore

DAY = date(2024, 6, 1)


@pytest.fixture
def availability(db_session) -> AvailabilityStore:
    return AvailabilityStore(db_session)


@pytest.fixture
def matches(db_session) -> MatchStore:
    return MatchStore(db_session)


@pytest.fixture
def manager(availability, matches) -> ConsistencyManager:
    return ConsistencyManager(availability, matches)


def count(db_session, model) -> int:
    return db_session.scalar(select(func.count()).select_from(model))


class TestDetachFromMatches:
    """Test detach_from_matches."""

    def test_partial_detach_keeps_match(self, service, manager, alice, bob):
        """Removing one of two references keeps the match and its responses."""
        service.submit_availability(bob.id, DAY, "10:00", "Coffee")
        result = service.submit_availability(alice.id, DAY, "10:00", "Coffee")
        service.respond_to_match(result.match.id, alice.id, "accepted")

        detached = manager.detach_from_matches([result.root_instance.id])

        assert detached.updated_match_ids == [result.match.id]
        assert detached.deleted_match_ids == []
        assert result.match.participant_for(alice.id).response == "accepted"

    def test_full_detach_deletes_match(self, db_session, service, manager, alice, bob):
        """Removing every reference deletes the match."""
        service.submit_availability(bob.id, DAY, "10:00", "Coffee")
        result = service.submit_availability(alice.id, DAY, "10:00", "Coffee")

        detached = manager.detach_from_matches(result.match.instance_ids)

        assert detached.deleted_match_ids == [result.match.id]
        assert count(db_session, Match) == 0

    def test_no_ids(self, manager):
        result = manager.detach_from_matches([])

        assert result.updated_match_ids == []
        assert result.deleted_match_ids == []


class TestUpdatePattern:
    """Test update_pattern."""

    def test_replaces_series(self, service, manager, availability, alice):
        """Old successors are discarded and a new series generated."""
        root = service.submit_availability(alice.id, DAY, "10:00", "Coffee", "Daily").root_instance
        old_ids = {s.id for s in availability.find_by_back_reference(root.id)}

        updated, added = manager.update_pattern(root.id, "Weekly")

        successors = availability.find_by_back_reference(root.id)
        assert added == 9
        assert updated.recurrence_pattern == "Weekly"
        assert old_ids.isdisjoint({s.id for s in successors})
        assert [s.date for s in successors][:2] == [date(2024, 6, 8), date(2024, 6, 15)]

    def test_none_removes_successors(self, service, manager, availability, alice):
        """Switching to 'None' leaves only the root."""
        root = service.submit_availability(alice.id, DAY, "10:00", "Coffee", "Weekly").root_instance

        updated, added = manager.update_pattern(root.id, "None")

        assert added == 0
        assert updated.recurrence_pattern == "None"
        assert availability.find_by_back_reference(root.id) == []
        assert len(availability.find_by_user(alice.id)) == 1

    def test_standalone_becomes_root(self, service, manager, alice):
        """A single slot can be turned into a series."""
        root = service.submit_availability(alice.id, DAY, "10:00", "Coffee").root_instance

        _, added = manager.update_pattern(root.id, "Monthly")

        assert added == 9

    def test_matched_successor_detached(self, db_session, service, manager, alice, bob):
        """A match on a discarded successor loses that reference."""
        root = service.submit_availability(alice.id, DAY, "10:00", "Coffee", "Daily").root_instance
        # Bob matches Alice's second occurrence
        result = service.submit_availability(bob.id, date(2024, 6, 2), "10:00", "Coffee")
        assert result.match is not None

        manager.update_pattern(root.id, "Weekly")

        remaining = MatchStore(db_session).find_by_id(result.match.id)
        assert remaining.instance_ids == [result.root_instance.id]

    def test_match_on_root_survives(self, service, manager, alice, bob):
        """Changing the pattern does not touch matches on the root."""
        service.submit_availability(bob.id, DAY, "10:00", "Coffee")
        result = service.submit_availability(alice.id, DAY, "10:00", "Coffee", "Daily")

        manager.update_pattern(result.root_instance.id, "Weekly")

        assert len(result.match.instance_ids) == 2

    def test_unknown_pattern_rejected(self, service, manager, alice):
        root = service.submit_availability(alice.id, DAY, "10:00", "Coffee").root_instance

        with pytest.raises(ValidationError) as exc_info:
            manager.update_pattern(root.id, "Yearly")

        assert exc_info.value.field == "recurrencePattern"

    def test_series_member_rejected(self, service, manager, availability, alice):
        """Only the root of a series can change its pattern."""
        root = service.submit_availability(alice.id, DAY, "10:00", "Coffee", "Daily").root_instance
        member = availability.find_by_back_reference(root.id)[0]

        with pytest.raises(ValidationError):
            manager.update_pattern(member.id, "Weekly")

    def test_missing_instance(self, manager):
        with pytest.raises(NotFoundError):
            manager.update_pattern(uuid.uuid4(), "Weekly")


class TestDeletion:
    """Test delete_one and delete_series."""

    def test_delete_one_keeps_series(self, service, manager, availability, alice):
        """Deleting one occurrence leaves the rest of the series."""
        root = service.submit_availability(alice.id, DAY, "10:00", "Coffee", "Daily").root_instance
        member = availability.find_by_back_reference(root.id)[3]

        manager.delete_one(member.id)

        assert len(availability.find_by_user(alice.id)) == 9

    def test_delete_one_of_two_keeps_match(self, service, manager, alice, bob):
        """The match keeps its other reference."""
        bob_slot = service.submit_availability(bob.id, DAY, "10:00", "Coffee").root_instance
        result = service.submit_availability(alice.id, DAY, "10:00", "Coffee")

        manager.delete_one(result.root_instance.id)

        assert result.match.instance_ids == [bob_slot.id]

    def test_delete_both_removes_match(self, db_session, service, manager, alice, bob):
        """Deleting the last referenced instance deletes the match."""
        bob_slot = service.submit_availability(bob.id, DAY, "10:00", "Coffee").root_instance
        result = service.submit_availability(alice.id, DAY, "10:00", "Coffee")

        manager.delete_one(result.root_instance.id)
        manager.delete_one(bob_slot.id)

        assert count(db_session, Match) == 0
        assert count(db_session, MatchParticipant) == 0

    def test_delete_one_missing(self, manager):
        with pytest.raises(NotFoundError):
            manager.delete_one(uuid.uuid4())

    @pytest.mark.parametrize("position", [0, 1, 9])
    def test_delete_series_from_any_member(self, db_session, service, manager, availability, alice, position):
        """Any id in a 10-instance series deletes all 10."""
        root = service.submit_availability(alice.id, DAY, "10:00", "Coffee", "Weekly").root_instance
        series = [root] + list(availability.find_by_back_reference(root.id))

        deleted = manager.delete_series(series[position].id)

        assert deleted == 10
        assert count(db_session, AvailabilityInstance) == 0

    def test_delete_series_standalone(self, service, manager, alice):
        """A standalone slot is deleted on its own."""
        root = service.submit_availability(alice.id, DAY, "10:00", "Coffee").root_instance
        service.submit_availability(alice.id, DAY, "11:00", "Coffee")

        assert manager.delete_series(root.id) == 1

    def test_delete_series_after_root_removed(self, service, manager, availability, alice):
        """Successors are still addressable as one series without their root."""
        root = service.submit_availability(alice.id, DAY, "10:00", "Coffee", "Daily").root_instance
        member = availability.find_by_back_reference(root.id)[0]
        manager.delete_one(root.id)

        assert manager.delete_series(member.id) == 9

    def test_delete_series_cascades_to_matches(self, db_session, service, manager, alice, bob):
        """Matches referencing series members lose those references."""
        root = service.submit_availability(alice.id, DAY, "10:00", "Coffee", "Daily").root_instance
        result = service.submit_availability(bob.id, date(2024, 6, 3), "10:00", "Coffee")

        manager.delete_series(root.id)

        remaining = MatchStore(db_session).find_by_id(result.match.id)
        assert remaining.instance_ids == [result.root_instance.id]
        assert count(db_session, MatchInstance) == 1


class TestDeleteMatch:
    """Test delete_match."""

    def test_releases_instances(self, db_session, service, manager, availability, alice, bob):
        """Instances of a removed match become unmatched again."""
        bob_slot = service.submit_availability(bob.id, DAY, "10:00", "Coffee").root_instance
        result = service.submit_availability(alice.id, DAY, "10:00", "Coffee")

        released = manager.delete_match(result.match.id)

        assert set(released) == {bob_slot.id, result.root_instance.id}
        assert count(db_session, Match) == 0
        assert availability.find_by_id(bob_slot.id).is_matched is False

    def test_missing_match(self, manager):
        with pytest.raises(NotFoundError):
            manager.delete_match(uuid.uuid4())


class TestReconcile:
    """Test reconcile and remove_if_orphaned."""

    def _orphan_match(self, db_session, alice, bob) -> Match:
        match = Match(
            date=DAY,
            time="10:00",
            activity="Coffee",
            participants=[
                MatchParticipant(user_id=alice.id, position=0),
                MatchParticipant(user_id=bob.id, position=1),
            ],
        )
        db_session.add(match)
        db_session.flush()
        return match

    def test_clean_state(self, service, manager, alice, bob):
        """A consistent database reports no violations."""
        service.submit_availability(bob.id, DAY, "10:00", "Coffee")
        service.submit_availability(alice.id, DAY, "10:00", "Coffee")

        assert manager.reconcile().is_clean

    def test_removes_empty_match(self, db_session, manager, alice, bob):
        """Matches without references are deleted."""
        match = self._orphan_match(db_session, alice, bob)

        report = manager.reconcile()

        assert report.deleted_match_ids == [match.id]
        assert not report.is_clean
        assert count(db_session, Match) == 0

    def test_releases_stray_matched_flag(self, db_session, service, manager, availability, alice):
        """Instances flagged matched without a match are released."""
        root = service.submit_availability(alice.id, DAY, "10:00", "Coffee").root_instance
        availability.update_matched_flag(root.id, True)

        report = manager.reconcile()

        assert report.released_instance_ids == [root.id]
        assert availability.find_by_id(root.id).is_matched is False

    def test_remove_if_orphaned(self, db_session, manager, alice, bob):
        match = self._orphan_match(db_session, alice, bob)

        assert manager.remove_if_orphaned(match.id) is True
        assert manager.remove_if_orphaned(match.id) is False

    def test_remove_if_orphaned_keeps_referenced(self, service, manager, alice, bob):
        service.submit_availability(bob.id, DAY, "10:00", "Coffee")
        result = service.submit_availability(alice.id, DAY, "10:00", "Coffee")

        assert manager.remove_if_orphaned(result.match.id) is False
