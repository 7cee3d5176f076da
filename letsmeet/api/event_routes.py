"""
Availability (event) API routes.

Publishing availability, changing a series pattern, deletion and discovery.
Fixed paths are declared before ``/{event_id}`` so they are not shadowed.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from letsmeet.api.dependencies import get_service, parse_date_param
from letsmeet.api.models import (
    DeleteResponse,
    EventResponse,
    MatchResponse,
    SubmitEventRequest,
    SubmitEventResponse,
    UpdatePatternRequest,
    UpdatePatternResponse,
    UserSummary,
)
from letsmeet.services.scheduling import SchedulingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["Events"])


@router.post(
    "",
    response_model=SubmitEventResponse,
    summary="Publish availability",
    description="""
Publish availability for an activity at a date and time.

A recurrence pattern expands the slot into a series of 10 dated slots. Only
the first slot is matched right away: if another user already published the
same date, time and activity and is still unmatched, a match is created
between the two and returned in `match`.
    """,
)
def submit_event(
    request: SubmitEventRequest,
    service: SchedulingService = Depends(get_service),
) -> SubmitEventResponse:
    result = service.submit_availability(
        user_id=request.user_id,
        slot_date=request.date,
        time=request.time,
        activity=request.activity,
        pattern=request.recurrence_pattern,
    )
    return SubmitEventResponse(
        event=EventResponse.from_model(result.root_instance),
        match=MatchResponse.from_model(result.match) if result.match else None,
        recurring_events=result.series_count,
    )


@router.get(
    "/user/{user_id}",
    response_model=list[EventResponse],
    summary="List a user's availability",
)
def list_user_events(
    user_id: uuid.UUID,
    service: SchedulingService = Depends(get_service),
) -> list[EventResponse]:
    """Earliest date first."""
    return [
        EventResponse.from_model(instance, with_user=True)
        for instance in service.list_user_instances(user_id)
    ]


@router.get(
    "/available-users",
    response_model=list[UserSummary],
    summary="Users free for a slot",
    description="Users with unmatched availability for the given date, time and activity.",
)
def available_users(
    date: Optional[str] = Query(None, description="Calendar day (ISO 8601)"),
    time: Optional[str] = Query(None),
    activity: Optional[str] = Query(None),
    service: SchedulingService = Depends(get_service),
) -> list[UserSummary]:
    slot_date = parse_date_param(date)
    users = service.find_candidate_users(slot_date, time, activity)
    return [UserSummary(id=user.id, name=user.name) for user in users]


@router.get(
    "/date",
    response_model=list[EventResponse],
    summary="Availability on a day",
)
def events_on_date(
    date: Optional[str] = Query(None, description="Calendar day (ISO 8601)"),
    service: SchedulingService = Depends(get_service),
) -> list[EventResponse]:
    slot_date = parse_date_param(date)
    return [
        EventResponse.from_model(instance, with_user=True)
        for instance in service.list_instances_on_date(slot_date)
    ]


@router.delete(
    "/series/{event_id}",
    response_model=DeleteResponse,
    summary="Delete a recurring series",
    description="Deletes every slot of the series containing the event. "
    "A standalone event is deleted on its own.",
)
def delete_series(
    event_id: uuid.UUID,
    service: SchedulingService = Depends(get_service),
) -> DeleteResponse:
    count = service.delete_series(event_id)
    return DeleteResponse(msg="Recurring events removed", count=count)


@router.put(
    "/{event_id}",
    response_model=UpdatePatternResponse,
    summary="Change a recurrence pattern",
    description="Replaces the series of a root event with one generated from the new pattern.",
)
def update_pattern(
    event_id: uuid.UUID,
    request: UpdatePatternRequest,
    service: SchedulingService = Depends(get_service),
) -> UpdatePatternResponse:
    result = service.update_pattern(event_id, request.recurrence_pattern)
    return UpdatePatternResponse(
        event=EventResponse.from_model(result.instance),
        recurring_events=result.added_series_count,
    )


@router.get(
    "/{event_id}",
    response_model=EventResponse,
    summary="Get an event",
)
def get_event(
    event_id: uuid.UUID,
    service: SchedulingService = Depends(get_service),
) -> EventResponse:
    return EventResponse.from_model(service.get_instance(event_id), with_user=True)


@router.delete(
    "/{event_id}",
    response_model=DeleteResponse,
    response_model_exclude_none=True,
    summary="Delete an event",
)
def delete_event(
    event_id: uuid.UUID,
    service: SchedulingService = Depends(get_service),
) -> DeleteResponse:
    service.delete_instance(event_id)
    return DeleteResponse(msg="Event removed")
