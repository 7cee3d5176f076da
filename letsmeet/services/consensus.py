"""
Match consensus protocol.

Each participant responds 'accepted' or 'declined'; a match is confirmed
while every participant's latest response is 'accepted'. The other
participant is notified of every response.
"""

import logging
import uuid

from letsmeet.exceptions import (
    ConsistencyViolation,
    InvalidParticipantError,
    NotFoundError,
    ValidationError,
)
from letsmeet.models.base import RESPONSE_ACCEPTED, RESPONSE_DECLINED, utcnow
from letsmeet.models.matches import Match
from letsmeet.services.notifier import MatchResponseChanged, Notifier
from letsmeet.services.stores import MatchStore

logger = logging.getLogger(__name__)

VALID_RESPONSES = (RESPONSE_ACCEPTED, RESPONSE_DECLINED)


class MatchConsensus:
    """Records participant responses and derives the confirmed flag."""

    def __init__(self, matches: MatchStore, notifier: Notifier):
        self._matches = matches
        self._notifier = notifier

    def record_response(self, match_id: uuid.UUID, user_id: uuid.UUID, response: str) -> Match:
        """
        Record a response without notifying anyone.

        Args:
            match_id: Match being answered
            user_id: Responding participant
            response: 'accepted' or 'declined'

        Returns:
            The updated match

        Raises:
            ValidationError: Response is not 'accepted' or 'declined'
            NotFoundError: Match does not exist (or was just removed)
            InvalidParticipantError: User is not part of the match
        """
        if response not in VALID_RESPONSES:
            raise ValidationError(
                "response", f"must be one of {', '.join(VALID_RESPONSES)}, got {response!r}"
            )
        if user_id is None:
            raise ValidationError("userId", "is required")

        # Row lock keeps concurrent cascades from deleting the match mid-update
        match = self._matches.find_by_id(match_id, for_update=True)
        if match is None:
            raise NotFoundError("Match", match_id)

        if match.is_empty:
            violation = ConsistencyViolation(
                f"Match {match_id} references no availability; removing it", match_id
            )
            logger.warning(str(violation))
            self._matches.delete(match)
            raise NotFoundError("Match", match_id)

        # Each participant row is also its status entry, so recording overwrites it
        participant = match.participant_for(user_id)
        if participant is None:
            raise InvalidParticipantError(match_id, user_id)

        participant.response = response
        participant.responded_at = utcnow()

        match.recompute_confirmed()
        self._matches.update(match)

        logger.info(
            f"User {user_id} {response} match {match_id} (confirmed={match.is_confirmed})"
        )
        return match

    def notify_counterpart(self, match: Match, user_id: uuid.UUID, response: str) -> None:
        """Tell the other participant about a recorded response."""
        recipient_id = match.other_participant_id(user_id)
        if recipient_id is None:
            return

        event = MatchResponseChanged(
            match_id=match.id,
            responding_user_id=user_id,
            response=response,
            confirmed=match.is_confirmed if response == RESPONSE_ACCEPTED else None,
        )
        self._notifier.notify(recipient_id, event)

    def respond(self, match_id: uuid.UUID, user_id: uuid.UUID, response: str) -> Match:
        """Record a response and notify the other participant."""
        match = self.record_response(match_id, user_id, response)
        self.notify_counterpart(match, user_id, response)
        return match
