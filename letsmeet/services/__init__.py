"""
Service layer for Let's Meet.

Provides the matching core:
- Recurrence expansion (fixed-length series)
- Availability, match and user stores
- Matcher, match consensus and series/match consistency
- SchedulingService, the caller-facing facade
"""

from letsmeet.services.recurrence import (
    SERIES_LENGTH,
    InstanceDraft,
    SlotDraft,
    expand,
    is_recurring_pattern,
    occurrence_date,
)

from letsmeet.services.stores import (
    AvailabilityStore,
    MatchStore,
    UserStore,
)

from letsmeet.services.notifier import (
    InMemoryNotifier,
    LoggingNotifier,
    MatchResponseChanged,
    Notifier,
    build_notifier,
)

from letsmeet.services.matcher import Matcher
from letsmeet.services.consensus import MatchConsensus
from letsmeet.services.consistency import ConsistencyManager, ReconcileReport

from letsmeet.services.scheduling import (
    PatternUpdateResult,
    SchedulingService,
    SubmissionResult,
    UserProfile,
)

__all__ = [
    # Recurrence
    "SERIES_LENGTH",
    "InstanceDraft",
    "SlotDraft",
    "expand",
    "is_recurring_pattern",
    "occurrence_date",
    # Stores
    "AvailabilityStore",
    "MatchStore",
    "UserStore",
    # Notifications
    "InMemoryNotifier",
    "LoggingNotifier",
    "MatchResponseChanged",
    "Notifier",
    "build_notifier",
    # Core components
    "Matcher",
    "MatchConsensus",
    "ConsistencyManager",
    "ReconcileReport",
    # Facade
    "PatternUpdateResult",
    "SchedulingService",
    "SubmissionResult",
    "UserProfile",
]
