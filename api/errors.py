"""Translation of engine errors into HTTP responses."""

from fastapi import HTTPException, status

from consignments import (
    ConflictError,
    ConsignmentError,
    ImmutabilityError,
    NotFoundError,
    StateError,
    ValidationError,
)


def http_error(e: ConsignmentError) -> HTTPException:
    """Map an engine error to the HTTPException the client should see."""
    if isinstance(e, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, (ConflictError, StateError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, (ValidationError, ImmutabilityError)):
        code = status.HTTP_400_BAD_REQUEST
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(e))


def forbidden(detail: str = "Only the consigner can do this") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def server_error(e: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
