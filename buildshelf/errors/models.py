"""
Friendly error models.

Every error that reaches a requester is a FriendlyError — generic, safe to show,
with a machine-readable code. The raw error is logged, never returned.
"""

from dataclasses import dataclass
from enum import Enum

SERVER_ERROR_MESSAGE = "Internal Server Error"


class ErrorSeverity(str, Enum):
    """How serious the error is and who can fix it."""

    INFO = "info"          # Transient, a retry likely works
    CONFIG = "config"      # Operator action needed
    CRITICAL = "critical"  # Infrastructure or wiring bug


@dataclass
class FriendlyError:
    """A requester-facing error with context and guidance."""

    message: str                          # Generic message for the requester
    severity: ErrorSeverity               # info / config / critical
    error_code: str = ""                  # Machine-readable code (e.g. BACKEND_UNAVAILABLE)
    original_error: str = ""              # Raw error (logged, never shown to requester)

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "error_code": self.error_code,
        }

    def to_server_error(self) -> dict:
        """Body for a 500: the code is kept, the message is always generic."""
        return {
            "error": SERVER_ERROR_MESSAGE,
            "error_code": self.error_code,
        }
