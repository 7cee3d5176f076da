"""
Pydantic request and response models for the Let's Meet API.

JSON bodies use camelCase keys; snake_case is accepted on input as well.
"""

import uuid
import datetime as dt
from typing import Any, Optional

from dateutil.parser import ParserError, isoparse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from letsmeet.models.availability import AvailabilityInstance
from letsmeet.models.matches import Match
from letsmeet.models.users import User
from letsmeet.services.scheduling import UserProfile


class CamelModel(BaseModel):
    """Base model serializing to camelCase and accepting either casing."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


def parse_calendar_day(value: Any) -> Any:
    """
    Reduce an ISO 8601 date or datetime string to its calendar day.

    Clients send either "2024-06-01" or a full timestamp such as
    "2024-06-01T00:00:00.000Z"; only the day is kept.
    """
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, str) and value.strip():
        try:
            return isoparse(value.strip()).date()
        except (ParserError, ValueError) as e:
            raise ValueError(f"Invalid date: {value}") from e
    return value


# =============================================================================
# Request Models
# =============================================================================


class SubmitEventRequest(CamelModel):
    """Publish availability, optionally repeating."""

    user_id: uuid.UUID = Field(..., description="User publishing the availability")
    date: dt.date = Field(..., description="Calendar day (ISO 8601)", examples=["2024-06-01"])
    time: str = Field(..., min_length=1, max_length=20, examples=["10:00"])
    activity: str = Field(
        ...,
        description="Activity kind: Meet-up, Coffee, Lunch, Sports",
        examples=["Coffee"],
    )
    recurrence_pattern: Optional[str] = Field(
        None,
        description="None, Daily, Weekly, Bi-weekly or Monthly",
    )

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, v: Any) -> Any:
        return parse_calendar_day(v)


class UpdatePatternRequest(CamelModel):
    """Change the recurrence pattern of a series root."""

    recurrence_pattern: Optional[str] = Field(
        None,
        description="New pattern; 'None' removes the series",
    )


class RespondRequest(CamelModel):
    """A participant's answer to a match."""

    user_id: Optional[uuid.UUID] = Field(None, description="Responding participant")
    response: Optional[str] = Field(None, description="'accepted' or 'declined'")


class CreateUserRequest(CamelModel):
    """Register a user."""

    name: str = Field(..., max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class LoginRequest(CamelModel):
    """Look a user up by name."""

    name: str = Field(..., max_length=100)
    check_only: bool = Field(False, description="Return only id, name and city")


class UpdateUserRequest(CamelModel):
    """Change a user's home location."""

    city: Optional[str] = Field(None, max_length=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


# =============================================================================
# Response Models
# =============================================================================


class UserSummary(CamelModel):
    """Id and display name, embedded in events and matches."""

    id: uuid.UUID
    name: str


class UserResponse(CamelModel):
    """A registered user."""

    id: uuid.UUID
    name: str
    email: Optional[str] = None
    city: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[dt.datetime] = None

    @classmethod
    def from_model(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            city=user.city,
            latitude=user.latitude,
            longitude=user.longitude,
            created_at=user.created_at,
        )


class EventResponse(CamelModel):
    """One availability instance."""

    id: uuid.UUID
    user_id: uuid.UUID
    user: Optional[UserSummary] = None
    date: dt.date
    time: str
    activity: str
    is_matched: bool
    recurrence_pattern: str
    is_recurring: bool
    original_event_id: Optional[uuid.UUID] = None
    created_at: Optional[dt.datetime] = None

    @classmethod
    def from_model(cls, instance: AvailabilityInstance, with_user: bool = False) -> "EventResponse":
        user = None
        if with_user and instance.user is not None:
            user = UserSummary(id=instance.user.id, name=instance.user.name)
        return cls(
            id=instance.id,
            user_id=instance.user_id,
            user=user,
            date=instance.date,
            time=instance.time,
            activity=instance.activity,
            is_matched=instance.is_matched,
            recurrence_pattern=instance.recurrence_pattern,
            is_recurring=instance.is_recurring,
            original_event_id=instance.original_instance_id,
            created_at=instance.created_at,
        )


class MatchStatusEntry(CamelModel):
    """A participant's latest response."""

    user: uuid.UUID
    response: str
    responded_at: Optional[dt.datetime] = None


class MatchResponse(CamelModel):
    """A match and its consensus state."""

    id: uuid.UUID
    participants: list[uuid.UUID]
    events: list[uuid.UUID]
    date: dt.date
    time: str
    activity: str
    status: list[MatchStatusEntry]
    is_confirmed: bool
    created_at: Optional[dt.datetime] = None

    @classmethod
    def from_model(cls, match: Match) -> "MatchResponse":
        return cls(
            id=match.id,
            participants=match.participant_ids,
            events=match.instance_ids,
            date=match.date,
            time=match.time,
            activity=match.activity,
            status=[
                MatchStatusEntry(
                    user=p.user_id,
                    response=p.response,
                    responded_at=p.responded_at,
                )
                for p in match.participants
            ],
            is_confirmed=match.is_confirmed,
            created_at=match.created_at,
        )


class UserCheckResponse(CamelModel):
    """Minimal user data for a name check."""

    id: uuid.UUID
    name: str
    city: str = ""


class UserProfileResponse(UserResponse):
    """A user with their availability and matches."""

    events: list[EventResponse] = Field(default_factory=list, description="Earliest date first")
    matches: list[MatchResponse] = Field(default_factory=list, description="Newest first")

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserProfileResponse":
        base = UserResponse.from_model(profile.user)
        return cls(
            **base.model_dump(),
            events=[EventResponse.from_model(i) for i in profile.instances],
            matches=[MatchResponse.from_model(m) for m in profile.matches],
        )


class SubmitEventResponse(CamelModel):
    """Result of publishing availability."""

    event: EventResponse
    match: Optional[MatchResponse] = Field(None, description="Present when a match was made")
    recurring_events: int = Field(..., description="Recurring successors created")


class UpdatePatternResponse(CamelModel):
    """Result of changing a recurrence pattern."""

    event: EventResponse
    recurring_events: int = Field(..., description="Recurring successors created")


class DeleteResponse(CamelModel):
    """Confirmation of a deletion."""

    msg: str
    count: Optional[int] = None


class DeleteMatchResponse(CamelModel):
    """Confirmation of a match removal."""

    msg: str
    released_events: list[uuid.UUID] = Field(
        default_factory=list,
        description="Events unmatched again and open for matching",
    )


class HealthResponse(CamelModel):
    """Health check response."""

    status: str = Field(..., description="'healthy' or 'unhealthy'")
    version: str
    database_connected: bool


class ErrorResponse(BaseModel):
    """Error response body."""

    error_type: str = Field(..., description="Error category")
    message: str = Field(..., description="Human-readable error message")
    retryable: bool = Field(default=False, description="Whether retrying may succeed")
    details: Optional[dict[str, Any]] = None
