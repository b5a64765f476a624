"""
CloudMart Functions — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for every way a request can fail.
How:   Each exception carries a client-safe message and an optional context
       dict. Context is logged server-side and never returned to the caller.
Who:   Raised by the payload decoder, validators and storage backends; caught
       by the global exception handlers (main.py) or turned into an Outcome by
       the storage dispatcher.

Exception Hierarchy:
    CloudMartError (base)
    ├── DecodeError          → 400 Bad Request (malformed payload)
    ├── ValidationError      → 400 Bad Request (payload breaks a rule)
    ├── ConfigurationError   → 500 Internal Server Error (before any storage call)
    ├── NotFoundError        → 404 Not Found (backend reported a missing entity)
    ├── ConflictError        → 500 Internal Server Error (identity or etag clash)
    └── BackendError         → 500 Internal Server Error (anything else)

Every class exposes an ErrorKind so the response mapper can match on the
kind instead of on concrete classes.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Closed set of failure categories a request can end in."""

    DECODE = "decode"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    BACKEND = "backend"


class CloudMartError(Exception):
    """
    Base exception for all CloudMart errors.

    Attributes:
        message:  Client-facing description (safe to return in a response)
        context:  Debug details (logged, NOT returned)
    """

    kind: ErrorKind = ErrorKind.BACKEND

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class DecodeError(CloudMartError):
    """
    Raised when a request body cannot be turned into a typed value.

    When:    Malformed JSON, wrong JSON types, non-UTF-8 text, missing or
             unusable multipart Content-Type, no matching multipart section.
    HTTP:    400 Bad Request
    """

    kind = ErrorKind.DECODE

    def __init__(
        self,
        message: str = "Malformed request payload.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ValidationError(CloudMartError):
    """
    Raised when a decoded value breaks a structural or business rule.

    When:    Empty product name, empty order key, non-positive quantity,
             empty review text, disallowed upload type or size.
    HTTP:    400 Bad Request
    """

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class ConfigurationError(CloudMartError):
    """
    Raised when required configuration is missing or unusable.

    When:    No storage connection string, or one the SDK cannot parse.
    HTTP:    500 Internal Server Error, raised before any storage call.
    """

    kind = ErrorKind.CONFIGURATION

    def __init__(
        self,
        message: str = "Server configuration error.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(CloudMartError):
    """
    Raised by a storage backend when the addressed entity does not exist.

    HTTP:    404 Not Found
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(CloudMartError):
    """
    Raised by a storage backend when a write clashes with existing state.

    When:    Insert of an identity that already exists, or an update whose
             version token no longer matches the stored entity.
    HTTP:    500 Internal Server Error (logged distinctly as a conflict)
    """

    kind = ErrorKind.CONFLICT

    def __init__(
        self,
        message: str = "The entity was modified or already exists.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class BackendError(CloudMartError):
    """
    Raised for any other storage failure (network, throttling, bad schema).

    The message is generic; the SDK error goes into context for the logs.
    HTTP:    500 Internal Server Error
    """

    kind = ErrorKind.BACKEND

    def __init__(
        self,
        message: str = "A storage error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
