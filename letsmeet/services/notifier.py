"""
Match notification delivery.

The consensus protocol tells the other participant whenever someone responds
to a match. Delivery itself (sockets, push, email) lives outside this package;
the core only talks to the Notifier protocol.
"""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from letsmeet.models.base import RESPONSE_ACCEPTED

logger = logging.getLogger(__name__)

MATCH_RESPONSE_CHANGED = "matchResponse"


@dataclass(frozen=True)
class MatchResponseChanged:
    """A participant responded to a match."""

    match_id: uuid.UUID
    responding_user_id: uuid.UUID
    response: str
    confirmed: Optional[bool] = None

    @property
    def event_type(self) -> str:
        return MATCH_RESPONSE_CHANGED

    def to_payload(self) -> dict[str, Any]:
        """
        Wire payload for the counterpart.

        Accepts carry the match's confirmed flag; declines omit it.
        """
        payload: dict[str, Any] = {
            "matchId": str(self.match_id),
            "userId": str(self.responding_user_id),
            "response": self.response,
        }
        if self.response == RESPONSE_ACCEPTED:
            payload["isConfirmed"] = bool(self.confirmed)
        return payload


class Notifier(Protocol):
    """
    Protocol for out-of-band delivery to a single user.

    Implementations:
    - LoggingNotifier: writes notifications to the application log
    - InMemoryNotifier: keeps a per-recipient outbox
    """

    def notify(self, recipient_id: uuid.UUID, event: MatchResponseChanged) -> None:
        """Deliver an event to one recipient. Must not raise for delivery problems."""
        ...


class LoggingNotifier:
    """Notifier that only logs; used when no delivery channel is wired up."""

    def notify(self, recipient_id: uuid.UUID, event: MatchResponseChanged) -> None:
        logger.info(
            f"Notify {recipient_id}: {event.event_type} {event.to_payload()}"
        )


class InMemoryNotifier:
    """Notifier that collects events per recipient."""

    def __init__(self):
        self._outbox: dict[uuid.UUID, list[MatchResponseChanged]] = defaultdict(list)

    def notify(self, recipient_id: uuid.UUID, event: MatchResponseChanged) -> None:
        self._outbox[recipient_id].append(event)

    def sent_to(self, recipient_id: uuid.UUID) -> list[MatchResponseChanged]:
        """Events delivered to a recipient, oldest first."""
        return list(self._outbox.get(recipient_id, []))

    def drain(self, recipient_id: uuid.UUID) -> list[MatchResponseChanged]:
        """Return and clear a recipient's events."""
        return self._outbox.pop(recipient_id, [])

    @property
    def total(self) -> int:
        return sum(len(events) for events in self._outbox.values())


def build_notifier(backend: str) -> Notifier:
    """
    Create the notifier for a configured backend.

    Args:
        backend: 'log' or 'memory'

    Raises:
        ValueError: For an unknown backend
    """
    if backend == "log":
        return LoggingNotifier()
    if backend == "memory":
        return InMemoryNotifier()
    raise ValueError(f"Unknown notifier backend: {backend}")
