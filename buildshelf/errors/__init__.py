from buildshelf.errors.exceptions import (
    BuildShelfError,
    NotFound, CollectionNotFound, DocumentNotFound, ContainerNotFound, FileNotFound,
    AlreadyExists, CollectionAlreadyExists, DocumentAlreadyExists, ContainerAlreadyExists,
    ContextMissing, BackendUnavailable, Cancelled, UnsupportedQuery, ConfigError, Unhandled,
)
from buildshelf.errors.models import FriendlyError, ErrorSeverity
from buildshelf.errors.handler import ErrorHandler

__all__ = [
    "BuildShelfError",
    "NotFound", "CollectionNotFound", "DocumentNotFound", "ContainerNotFound", "FileNotFound",
    "AlreadyExists", "CollectionAlreadyExists", "DocumentAlreadyExists", "ContainerAlreadyExists",
    "ContextMissing", "BackendUnavailable", "Cancelled", "UnsupportedQuery", "ConfigError", "Unhandled",
    "FriendlyError", "ErrorSeverity", "ErrorHandler",
]
