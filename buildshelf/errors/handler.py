"""
ErrorHandler — turns any exception into a generic, safe FriendlyError.

Usage:
    from buildshelf.errors.handler import ErrorHandler

    error_handler = ErrorHandler()

    try:
        response = await handler(request, params)
    except Exception as e:
        friendly = error_handler.handle(e, context="GET /health")
        return json_response(friendly.to_dict(), status=500)
"""

import logging
from dataclasses import replace
from typing import Optional

from buildshelf.errors.models import FriendlyError, ErrorSeverity
from buildshelf.errors.catalog import ERROR_PATTERNS, ERROR_TYPES, GENERIC_ERROR

logger = logging.getLogger("buildshelf.errors")


class ErrorHandler:
    """Matches exceptions against the error catalog and returns generic messages."""

    def __init__(self, log: Optional[logging.Logger | logging.LoggerAdapter] = None):
        self.log = log or logger

    def handle(self, error: BaseException, context: str = "") -> FriendlyError:
        """Match an exception to a friendly error.

        Args:
            error: The caught exception.
            context: Optional context string (e.g. "GET /projects/42").

        Returns:
            A FriendlyError with a generic message and metadata.
        """
        error_str = f"{type(error).__name__}: {error}"

        for error_type, template in ERROR_TYPES:
            if isinstance(error, error_type):
                friendly = replace(template, original_error=error_str)
                self._log_error(friendly, context, error)
                return friendly

        return self.handle_string(error_str, context, error)

    def handle_string(
        self, error_message: str, context: str = "", error: Optional[BaseException] = None
    ) -> FriendlyError:
        """Match a raw error string (not an exception) to a friendly error.

        Useful when the error comes from a platform payload or external API.
        """
        for pattern, template in ERROR_PATTERNS:
            if pattern.search(error_message):
                friendly = replace(template, original_error=error_message)
                self._log_error(friendly, context, error)
                return friendly

        friendly = replace(GENERIC_ERROR, original_error=error_message)
        self._log_error(friendly, context, error, matched=False)
        return friendly

    def _log_error(
        self,
        friendly: FriendlyError,
        context: str,
        error: Optional[BaseException],
        matched: bool = True,
    ) -> None:
        """Log the error with full details (never shown to requester)."""
        prefix = f"[{context}] " if context else ""
        match_tag = friendly.error_code if matched else "UNMATCHED"
        message = f"{prefix}{match_tag}: {friendly.original_error}"

        if friendly.severity == ErrorSeverity.CRITICAL:
            # Unknown failures keep their traceback
            self.log.error(message, exc_info=error if not matched else None)
        elif friendly.severity == ErrorSeverity.CONFIG:
            self.log.warning(message)
        else:
            self.log.info(message)
