# inventory/views/errors.py

"""
API ERROR NORMALIZATION

Canonical error body shared by every traceability API:
    {"error": {"code": "...", "message": "..."}}

Domain errors map to stable codes + HTTP statuses. Anything not listed
here is NOT caught: it propagates to DRF / Django (500 + Sentry).
"""

from django.core.exceptions import ValidationError
from rest_framework import status
from rest_framework.response import Response

from inventory.services.exceptions import (
    DuplicateBatchError,
    IncompatibleUnitsError,
    InsufficientStockError,
    InvalidTransitionError,
    NegativeBalanceError,
    NotFoundError,
)

DOMAIN_ERRORS = (
    NotFoundError,
    IncompatibleUnitsError,
    InsufficientStockError,
    DuplicateBatchError,
    InvalidTransitionError,
    NegativeBalanceError,
    ValidationError,
)

_ERROR_MAP = {
    NotFoundError: ("not_found", status.HTTP_404_NOT_FOUND),
    IncompatibleUnitsError: ("incompatible_units", status.HTTP_400_BAD_REQUEST),
    InsufficientStockError: ("insufficient_stock", status.HTTP_409_CONFLICT),
    DuplicateBatchError: ("duplicate_batch", status.HTTP_409_CONFLICT),
    InvalidTransitionError: ("invalid_transition", status.HTTP_409_CONFLICT),
    NegativeBalanceError: ("negative_balance", status.HTTP_409_CONFLICT),
}


def error_response(*, code: str, message: str, http_status: int):
    """
    Canonical API error response.
    """
    return Response(
        {"error": {"code": code, "message": message}},
        status=http_status,
    )


def _validation_message(exc: ValidationError) -> str:
    if hasattr(exc, "message_dict"):
        parts = []
        for field, messages in exc.message_dict.items():
            prefix = "" if field == "__all__" else f"{field}: "
            parts.extend(f"{prefix}{m}" for m in messages)
        return "; ".join(parts)
    return "; ".join(exc.messages)


def domain_error_response(exc: Exception):
    if isinstance(exc, ValidationError):
        return error_response(
            code="validation_error",
            message=_validation_message(exc),
            http_status=status.HTTP_400_BAD_REQUEST,
        )

    for error_class, (code, http_status) in _ERROR_MAP.items():
        if isinstance(exc, error_class):
            return error_response(code=code, message=str(exc), http_status=http_status)

    raise exc
