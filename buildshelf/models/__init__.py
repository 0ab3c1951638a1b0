from buildshelf.models.http import (
    Method, Headers, Request, Response, json_response, text_response, bytes_response,
)
from buildshelf.models.signal import CancelSignal, run_cancellable
from buildshelf.models.query import ListQuery, NativeQuery, Document
from buildshelf.models.storage import StoredFile
from buildshelf.models.context import RequestContext

__all__ = [
    "Method", "Headers", "Request", "Response", "json_response", "text_response", "bytes_response",
    "CancelSignal", "run_cancellable",
    "ListQuery", "NativeQuery", "Document",
    "StoredFile",
    "RequestContext",
]
