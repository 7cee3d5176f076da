"""
User API routes.

Registration, lookup by id or name, and location updates. Lookups return the
user's availability and matches alongside the account data.
"""

import logging
import uuid
from typing import Union

from fastapi import APIRouter, Depends

from letsmeet.api.dependencies import get_service
from letsmeet.api.models import (
    CreateUserRequest,
    LoginRequest,
    UpdateUserRequest,
    UserCheckResponse,
    UserProfileResponse,
    UserResponse,
)
from letsmeet.services.scheduling import SchedulingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.post(
    "",
    response_model=UserResponse,
    status_code=201,
    summary="Register a user",
)
def create_user(
    request: CreateUserRequest,
    service: SchedulingService = Depends(get_service),
) -> UserResponse:
    user = service.create_user(
        name=request.name,
        email=request.email,
        city=request.city or "",
        latitude=request.latitude,
        longitude=request.longitude,
    )
    return UserResponse.from_model(user)


@router.post(
    "/login",
    response_model=None,
    responses={200: {"model": UserProfileResponse}},
    summary="Find a user by name",
)
def login(
    request: LoginRequest,
    service: SchedulingService = Depends(get_service),
) -> Union[UserProfileResponse, UserCheckResponse]:
    """
    Look a registered user up by name.

    With checkOnly the response carries just id, name and city; otherwise the
    user's events and matches are included.
    """
    if request.check_only:
        user = service.login(request.name)
        return UserCheckResponse(id=user.id, name=user.name, city=user.city)

    profile = service.login_profile(request.name)
    logger.info(f"User {profile.user.id} logged in")
    return UserProfileResponse.from_profile(profile)


@router.get(
    "/{user_id}",
    response_model=UserProfileResponse,
    summary="Get a user with their events and matches",
)
def get_user(
    user_id: uuid.UUID,
    service: SchedulingService = Depends(get_service),
) -> UserProfileResponse:
    return UserProfileResponse.from_profile(service.get_user_profile(user_id))


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update a user's location",
)
def update_user(
    user_id: uuid.UUID,
    request: UpdateUserRequest,
    service: SchedulingService = Depends(get_service),
) -> UserResponse:
    user = service.update_user_location(
        user_id,
        city=request.city,
        latitude=request.latitude,
        longitude=request.longitude,
    )
    return UserResponse.from_model(user)
