"""
Custom exceptions for scheduling operations.

Provides structured error handling with retryable flags.
"""

from typing import Any, Optional


class SchedulingError(Exception):
    """Base exception for availability, matching and series operations."""

    retryable: bool = False
    error_type: str = "scheduling_error"

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    @property
    def details(self) -> Optional[dict[str, Any]]:
        """Structured context for API error responses."""
        return None


class ValidationError(SchedulingError):
    """
    Missing or invalid input.

    Causes:
    - Required field missing or blank
    - Activity, recurrence pattern or response outside its allowed values
    - Pattern change requested on a series member

    Raised before any write.
    """

    error_type = "validation_error"

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field

    @property
    def details(self) -> Optional[dict[str, Any]]:
        return {"field": self.field}


class NotFoundError(SchedulingError):
    """
    Instance, match or user id does not resolve.

    Causes:
    - Record was deleted (possibly by a concurrent cascade)
    - Id never existed
    """

    error_type = "not_found"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id

    @property
    def details(self) -> Optional[dict[str, Any]]:
        return {"entity": self.entity, "id": str(self.entity_id)}


class InvalidParticipantError(SchedulingError):
    """Responding user is not one of the match's participants."""

    error_type = "invalid_participant"

    def __init__(self, match_id: Any, user_id: Any):
        super().__init__(f"User {user_id} is not part of match {match_id}")
        self.match_id = match_id
        self.user_id = user_id

    @property
    def details(self) -> Optional[dict[str, Any]]:
        return {"match_id": str(self.match_id), "user_id": str(self.user_id)}


class ConsistencyViolation(SchedulingError):
    """
    Stored state breaks a series or match invariant.

    Examples:
    - A match with an empty reference set
    - An instance flagged matched that no match references

    Never surfaced to callers: detected violations are logged and repaired.
    """

    error_type = "consistency_violation"

    def __init__(self, message: str, entity_id: Any = None):
        super().__init__(message)
        self.entity_id = entity_id


class StorageError(SchedulingError):
    """
    Store-layer failure.

    Carries the name of the store operation that failed. The core never retries;
    callers may.
    """

    retryable = True
    error_type = "database_error"

    def __init__(self, operation: str, original_error: Exception | None = None):
        detail = f": {original_error}" if original_error else ""
        super().__init__(f"Storage operation '{operation}' failed{detail}", original_error)
        self.operation = operation

    @property
    def details(self) -> Optional[dict[str, Any]]:
        return {"operation": self.operation}
