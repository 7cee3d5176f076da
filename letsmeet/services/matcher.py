"""
Availability matcher.

Pairs a newly submitted slot with the oldest unmatched slot another user
posted for the same date, time and activity.
"""

import logging
from typing import Optional

from letsmeet.models.availability import AvailabilityInstance
from letsmeet.models.base import RESPONSE_PENDING
from letsmeet.models.matches import Match, MatchInstance, MatchParticipant
from letsmeet.services.stores import AvailabilityStore, MatchStore

logger = logging.getLogger(__name__)


class Matcher:
    """
    Finds a counterpart for a new instance and creates the match.

    Claiming uses the store's compare-and-set on the matched flag, so two
    submissions racing for the same candidate cannot both win. The loser sees
    "no match" rather than an error.
    """

    def __init__(self, availability: AvailabilityStore, matches: MatchStore):
        self._availability = availability
        self._matches = matches

    def find_candidate(self, instance: AvailabilityInstance) -> Optional[AvailabilityInstance]:
        """First unmatched instance of another user on the same slot, if any."""
        candidates = self._availability.find_by(
            instance.date,
            instance.time,
            instance.activity,
            exclude_user=instance.user_id,
            matched=False,
        )
        for candidate in candidates:
            if candidate.id != instance.id:
                return candidate
        return None

    def try_match(self, new_instance: AvailabilityInstance) -> Optional[Match]:
        """
        Match a newly persisted instance.

        The two claims and the match insert run in the caller's transaction;
        the caller commits them together.

        Args:
            new_instance: Root instance of a fresh submission

        Returns:
            The created Match, or None if no candidate could be claimed
        """
        if new_instance.is_matched:
            return None

        candidate = self.find_candidate(new_instance)
        if candidate is None:
            logger.debug(
                f"No candidate for {new_instance.date} {new_instance.time} {new_instance.activity}"
            )
            return None

        if not self._availability.claim_unmatched(candidate.id):
            logger.info(f"Candidate {candidate.id} was claimed concurrently; leaving {new_instance.id} unmatched")
            return None

        if not self._availability.claim_unmatched(new_instance.id):
            # Release the candidate so it stays eligible
            self._availability.update_matched_flag(candidate.id, False)
            logger.info(f"Instance {new_instance.id} was claimed concurrently; released {candidate.id}")
            return None

        match = Match(
            date=new_instance.date,
            time=new_instance.time,
            activity=new_instance.activity,
            is_confirmed=False,
            participants=[
                MatchParticipant(user_id=new_instance.user_id, position=0, response=RESPONSE_PENDING),
                MatchParticipant(user_id=candidate.user_id, position=1, response=RESPONSE_PENDING),
            ],
            instance_links=[
                MatchInstance(instance_id=new_instance.id, position=0),
                MatchInstance(instance_id=candidate.id, position=1),
            ],
        )
        self._matches.insert(match)

        logger.info(
            f"Matched instance {new_instance.id} (user {new_instance.user_id}) with "
            f"{candidate.id} (user {candidate.user_id}) as match {match.id}"
        )
        return match
