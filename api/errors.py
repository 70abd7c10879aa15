"""
Mapping of service errors to HTTP errors.
"""

from fastapi import HTTPException

from domain.attribution import DomainStatusError
from domain.lifecycle import InvalidTransitionError
from domain.reconciliation import LineItemStatusError
from services.errors import BillingConfigMissingError, NotFoundError
from services.locks import TenantBusyError

_CONFLICTS = (InvalidTransitionError, TenantBusyError, LineItemStatusError, DomainStatusError)
_NOT_FOUND = (NotFoundError, BillingConfigMissingError)


def to_http_exception(exc: Exception, action: str) -> HTTPException:
    """
    Translate an exception raised by a service call.

    409 for state conflicts, 404 for missing rows or configuration, 400 for
    invalid input, 500 (with ``action`` in the detail) for everything else.
    """
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, _CONFLICTS):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, _NOT_FOUND):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=f"Failed to {action}: {str(exc)}")
