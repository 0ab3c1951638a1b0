"""
Error catalog.

Two lookups, tried in order:
  1. ERROR_TYPES — taxonomy classes raised by adapters (matched with isinstance)
  2. ERROR_PATTERNS — regexes over raw error strings, for SDK errors that
     reached a handler without going through an adapter

When a new raw error shows up in the logs as UNMATCHED:
  1. Add a regex pattern here
  2. Pick the closest generic message (never echo backend details)
  3. Add a unit test
"""

import re

from buildshelf.errors.exceptions import (
    AlreadyExists,
    BackendUnavailable,
    Cancelled,
    ConfigError,
    ContextMissing,
    NotFound,
    UnsupportedQuery,
)
from buildshelf.errors.models import SERVER_ERROR_MESSAGE, FriendlyError, ErrorSeverity

# First match wins: subclasses before their bases.

ERROR_TYPES: list[tuple[type, FriendlyError]] = [
    (
        NotFound,
        FriendlyError(
            message="The requested resource was not found.",
            severity=ErrorSeverity.INFO,
            error_code="NOT_FOUND",
        ),
    ),
    (
        AlreadyExists,
        FriendlyError(
            message="The resource already exists.",
            severity=ErrorSeverity.INFO,
            error_code="ALREADY_EXISTS",
        ),
    ),
    (
        Cancelled,
        FriendlyError(
            message="The request was cancelled before it completed.",
            severity=ErrorSeverity.INFO,
            error_code="CANCELLED",
        ),
    ),
    (
        BackendUnavailable,
        FriendlyError(
            message="A storage backend is unavailable right now. Try again in a moment.",
            severity=ErrorSeverity.INFO,
            error_code="BACKEND_UNAVAILABLE",
        ),
    ),
    (
        ContextMissing,
        FriendlyError(
            message=SERVER_ERROR_MESSAGE,
            severity=ErrorSeverity.CRITICAL,
            error_code="CONTEXT_MISSING",
        ),
    ),
    (
        UnsupportedQuery,
        FriendlyError(
            message=SERVER_ERROR_MESSAGE,
            severity=ErrorSeverity.CONFIG,
            error_code="UNSUPPORTED_QUERY",
        ),
    ),
    (
        ConfigError,
        FriendlyError(
            message=SERVER_ERROR_MESSAGE,
            severity=ErrorSeverity.CONFIG,
            error_code="CONFIG_ERROR",
        ),
    ),
]


ERROR_PATTERNS: list[tuple[re.Pattern, FriendlyError]] = [
    # ── AWS ───────────────────────────────────────────────────────────────

    (
        re.compile(r"ThrottlingException|ProvisionedThroughputExceededException|SlowDown", re.IGNORECASE),
        FriendlyError(
            message="The storage backend is under heavy load. Try again in a moment.",
            severity=ErrorSeverity.INFO,
            error_code="BACKEND_THROTTLED",
        ),
    ),
    (
        re.compile(r"ResourceNotFoundException.*table|NoSuchBucket", re.IGNORECASE),
        FriendlyError(
            message="The storage for this project has not been provisioned.",
            severity=ErrorSeverity.CRITICAL,
            error_code="BACKEND_RESOURCE_MISSING",
        ),
    ),
    (
        re.compile(r"AccessDenied|UnrecognizedClientException|InvalidAccessKeyId|ExpiredToken", re.IGNORECASE),
        FriendlyError(
            message="The service is not allowed to reach its storage backend.",
            severity=ErrorSeverity.CONFIG,
            error_code="BACKEND_ACCESS_DENIED",
        ),
    ),
    (
        re.compile(r"Could not connect to the endpoint URL|EndpointConnectionError|ConnectionError|timed out", re.IGNORECASE),
        FriendlyError(
            message="A storage backend is unavailable right now. Try again in a moment.",
            severity=ErrorSeverity.INFO,
            error_code="BACKEND_UNAVAILABLE",
        ),
    ),

    # ── Azure ─────────────────────────────────────────────────────────────

    (
        re.compile(r"ServerBusy|TooManyRequests|OperationTimedOut", re.IGNORECASE),
        FriendlyError(
            message="The storage backend is under heavy load. Try again in a moment.",
            severity=ErrorSeverity.INFO,
            error_code="BACKEND_THROTTLED",
        ),
    ),
    (
        re.compile(r"TableNotFound|ContainerNotFound", re.IGNORECASE),
        FriendlyError(
            message="The storage for this project has not been provisioned.",
            severity=ErrorSeverity.CRITICAL,
            error_code="BACKEND_RESOURCE_MISSING",
        ),
    ),
    (
        re.compile(r"AuthenticationFailed|AuthorizationFailure|AuthorizationPermissionMismatch", re.IGNORECASE),
        FriendlyError(
            message="The service is not allowed to reach its storage backend.",
            severity=ErrorSeverity.CONFIG,
            error_code="BACKEND_ACCESS_DENIED",
        ),
    ),

    # ── Local filesystem ──────────────────────────────────────────────────

    (
        re.compile(r"Permission denied|Read-only file system|No space left on device", re.IGNORECASE),
        FriendlyError(
            message="The service cannot write to its local storage.",
            severity=ErrorSeverity.CONFIG,
            error_code="LOCAL_STORAGE_FAILED",
        ),
    ),
]


# Pre-built generic fallback
GENERIC_ERROR = FriendlyError(
    message=SERVER_ERROR_MESSAGE,
    severity=ErrorSeverity.CRITICAL,
    error_code="UNHANDLED",
)
