"""
Match API routes.

Listing matches, responding to them and explicit removal.
"""

import logging
import uuid

from fastapi import APIRouter, Depends

from letsmeet.api.dependencies import get_service
from letsmeet.api.models import DeleteMatchResponse, MatchResponse, RespondRequest
from letsmeet.services.scheduling import SchedulingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/matches", tags=["Matches"])


@router.get(
    "/user/{user_id}",
    response_model=list[MatchResponse],
    summary="List a user's matches",
)
def list_user_matches(
    user_id: uuid.UUID,
    service: SchedulingService = Depends(get_service),
) -> list[MatchResponse]:
    """Newest first."""
    return [MatchResponse.from_model(match) for match in service.list_user_matches(user_id)]


@router.get(
    "/{match_id}",
    response_model=MatchResponse,
    summary="Get a match",
)
def get_match(
    match_id: uuid.UUID,
    service: SchedulingService = Depends(get_service),
) -> MatchResponse:
    return MatchResponse.from_model(service.get_match(match_id))


@router.put(
    "/{match_id}/respond",
    response_model=MatchResponse,
    summary="Accept or decline a match",
    description="""
Record a participant's response.

The match is confirmed while both participants have accepted; a later
decline unconfirms it. The other participant is notified of every response.
    """,
)
def respond_to_match(
    match_id: uuid.UUID,
    request: RespondRequest,
    service: SchedulingService = Depends(get_service),
) -> MatchResponse:
    match = service.respond_to_match(match_id, request.user_id, request.response)
    return MatchResponse.from_model(match)


@router.delete(
    "/{match_id}",
    response_model=DeleteMatchResponse,
    summary="Remove a match",
    description="Deletes the match; its events become available for matching again.",
)
def delete_match(
    match_id: uuid.UUID,
    service: SchedulingService = Depends(get_service),
) -> DeleteMatchResponse:
    released = service.delete_match(match_id)
    return DeleteMatchResponse(msg="Match removed", released_events=released)
