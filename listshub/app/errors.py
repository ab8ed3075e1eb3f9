"""Domain exceptions and their translation to HTTP responses."""
from __future__ import annotations

from fastapi import HTTPException, status

from .feature_gates.exceptions import FeatureGateError


class StateConflictError(Exception):
    """Raised when a transition is not valid for the record's current state."""


class ConcurrentModificationError(StateConflictError):
    """Raised when a conditional write lost a race against another client."""


def to_http_exception(exc: Exception) -> HTTPException:
    """Map a domain exception to the status code the API reports for it."""

    if isinstance(exc, FeatureGateError):
        return exc.to_http_exception()
    if isinstance(exc, StateConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_lookup_message(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    raise exc


def _lookup_message(exc: LookupError) -> str:
    # KeyError wraps its message in quotes when converted with str().
    if isinstance(exc, KeyError) and exc.args:
        return str(exc.args[0])
    return str(exc)


DOMAIN_ERRORS = (FeatureGateError, StateConflictError, PermissionError, LookupError, ValueError)

__all__ = [
    "DOMAIN_ERRORS",
    "ConcurrentModificationError",
    "StateConflictError",
    "to_http_exception",
]
