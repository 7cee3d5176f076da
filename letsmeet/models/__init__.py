"""
SQLAlchemy models for Let's Meet.

This module exports all database models for easy importing and
ensures Alembic can discover them for migrations.
"""

# Import base classes
from letsmeet.models.base import (
    ACTIVITIES,
    MATCH_RESPONSES,
    PATTERN_NONE,
    RECURRENCE_PATTERNS,
    RESPONSE_ACCEPTED,
    RESPONSE_DECLINED,
    RESPONSE_PENDING,
    Base,
    BaseModel,
    GUID,
)

# Import all models (must be imported for Alembic autogenerate)
from letsmeet.models.users import User
from letsmeet.models.availability import AvailabilityInstance
from letsmeet.models.matches import Match, MatchInstance, MatchParticipant

__all__ = [
    # Base classes
    "Base",
    "BaseModel",
    "GUID",
    # Allowed values
    "ACTIVITIES",
    "MATCH_RESPONSES",
    "PATTERN_NONE",
    "RECURRENCE_PATTERNS",
    "RESPONSE_ACCEPTED",
    "RESPONSE_DECLINED",
    "RESPONSE_PENDING",
    # Models
    "User",
    "AvailabilityInstance",
    "Match",
    "MatchInstance",
    "MatchParticipant",
]
