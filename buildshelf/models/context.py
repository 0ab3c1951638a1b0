"""
Request Context — everything a handler needs for one inbound request.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from buildshelf.models.http import Request

if TYPE_CHECKING:
    from buildshelf.interfaces.blob_store import BlobStore
    from buildshelf.interfaces.document_store import DocumentStore

DEFAULT_LOCALE = "en"
DEFAULT_ACCEPT = "*/*"


class RequestLogger(logging.LoggerAdapter):
    """Prefixes every record with the request's log prefix."""

    def process(self, msg, kwargs):
        return f"{self.extra['prefix']} {msg}", kwargs


@dataclass(frozen=True)
class RequestContext:
    """
    Immutable context for a single request.
    Created by Service.handle, read through buildshelf.context accessors.
    """

    request: Request
    database: "DocumentStore"
    storage: "BlobStore"
    locale: str = DEFAULT_LOCALE
    accept: str = DEFAULT_ACCEPT
    prefix: str = ""
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    base_logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("buildshelf.service"), repr=False
    )

    @property
    def signal(self):
        return self.request.signal

    @property
    def logger(self) -> RequestLogger:
        return RequestLogger(self.base_logger, {"prefix": self.log_prefix()})

    def log_prefix(self) -> str:
        """For structured logging."""
        return f"[{self.request_id[:8]}:{self.request.method.value}]"


def parse_locale(accept_language: str | None, default: str = DEFAULT_LOCALE) -> str:
    """First tag of an Accept-Language header, without its quality value."""
    if not accept_language:
        return default
    first = accept_language.split(",")[0].split(";")[0].strip()
    return first or default
