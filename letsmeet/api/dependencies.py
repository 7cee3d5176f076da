"""
FastAPI dependency injection providers.

The engine, session factory and notifier live on ``app.state`` (set up in the
lifespan); each request gets its own session and SchedulingService.
"""

import logging
from typing import Optional

from dateutil.parser import ParserError, isoparse
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from letsmeet.database import get_db
from letsmeet.exceptions import ValidationError
from letsmeet.services.notifier import Notifier
from letsmeet.services.scheduling import SchedulingService

logger = logging.getLogger(__name__)


def get_notifier(request: Request) -> Notifier:
    """Notifier configured at startup."""
    return request.app.state.notifier


def get_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> SchedulingService:
    """Request-scoped scheduling service."""
    return SchedulingService(db, notifier)


def parse_date_param(value: Optional[str], field: str = "date"):
    """
    Parse a date query parameter.

    Accepts a plain ISO date or a full timestamp; only the day is kept.

    Raises:
        ValidationError: Missing or unparseable value
    """
    if value is None or not value.strip():
        raise ValidationError(field, "is required")
    try:
        return isoparse(value.strip()).date()
    except (ParserError, ValueError) as e:
        raise ValidationError(field, f"invalid date {value!r}") from e
