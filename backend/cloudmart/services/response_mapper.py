"""
CloudMart Functions — Response Mapper
======================================

What:  Converts dispatcher Outcomes and CloudMart errors into HTTP responses.
How:   Exhaustive matching on OutcomeKind / ErrorKind; an unknown kind is a
       programming error and raises instead of falling back to a generic 500.

    Outcome / error              Status  Body
    ──────────────────────────── ─────── ───────────────────────────────────
    DECODE, VALIDATION           400     reason string
    CONFIGURATION                500     "Server configuration error."
    NOT_FOUND                    404     "<Entity> not found."
    CONFLICT                     500     operation failure string
    BACKEND_UNAVAILABLE          500     operation failure string
    SUCCESS                      200     confirmation string or JSON entity

Only these four status codes are ever produced. Bodies are plain text
except for JSON entities; backend details stay in the logs.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from fastapi.responses import JSONResponse, PlainTextResponse, Response

from cloudmart.exceptions import CloudMartError, ErrorKind
from cloudmart.services.dispatcher import Outcome, OutcomeKind

logger = logging.getLogger(__name__)

CONFIGURATION_ERROR_MESSAGE = "Server configuration error."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred."


@dataclass(frozen=True)
class OperationMessages:
    """Client-facing strings for one endpoint's non-success outcomes."""

    failure: str
    not_found: str = "Product not found."


def text(body: str, status_code: int = 200) -> PlainTextResponse:
    return PlainTextResponse(content=body, status_code=status_code)


def json_body(payload: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=payload, status_code=status_code)


def outcome_response(
    outcome: Outcome,
    messages: OperationMessages,
    on_success: Callable[[Any], Response],
) -> Response:
    """
    Render a dispatcher Outcome.

    Args:
        outcome:     Result of exactly one dispatcher call
        messages:    Failure strings for this endpoint
        on_success:  Builds the 200 response from outcome.value
    """
    kind = outcome.kind
    if kind is OutcomeKind.SUCCESS:
        return on_success(outcome.value)
    if kind is OutcomeKind.NOT_FOUND:
        return text(messages.not_found, 404)
    if kind is OutcomeKind.CONFLICT:
        return text(messages.failure, 500)
    if kind is OutcomeKind.BACKEND_UNAVAILABLE:
        return text(messages.failure, 500)
    raise ValueError(f"Unhandled outcome kind: {kind!r}")


def error_status(error: CloudMartError) -> int:
    """HTTP status for an error raised outside the dispatcher."""
    kind = error.kind
    if kind in (ErrorKind.DECODE, ErrorKind.VALIDATION):
        return 400
    if kind is ErrorKind.NOT_FOUND:
        return 404
    if kind in (ErrorKind.CONFIGURATION, ErrorKind.CONFLICT, ErrorKind.BACKEND):
        return 500
    raise ValueError(f"Unhandled error kind: {kind!r}")


def error_response(error: CloudMartError) -> PlainTextResponse:
    """
    Render a raised CloudMart error.

    Client errors echo their reason; server-side kinds return a fixed
    string so that no internal detail leaks.
    """
    status = error_status(error)
    if error.kind is ErrorKind.CONFIGURATION:
        body = CONFIGURATION_ERROR_MESSAGE
    elif status == 500:
        body = UNEXPECTED_ERROR_MESSAGE
    else:
        body = error.message
    return text(body, status)
