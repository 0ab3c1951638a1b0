"""
Error taxonomy shared by every backend adapter and platform transformer.

Adapters raise the most precise member they can. The router and transformers
never let any of these reach a requester verbatim: they are logged and turned
into an opaque HTTP response by ErrorHandler.
"""


class BuildShelfError(Exception):
    """Base class for all BuildShelf errors."""

    error_code = "UNHANDLED"


# --- Absence ---


class NotFound(BuildShelfError):
    """A collection, document, container or file does not exist."""

    error_code = "NOT_FOUND"


class CollectionNotFound(NotFound):
    def __init__(self, collection_id: str):
        self.collection_id = collection_id
        super().__init__(f"Collection '{collection_id}' does not exist")


class DocumentNotFound(NotFound):
    def __init__(self, collection_id: str, document_id: str):
        self.collection_id = collection_id
        self.document_id = document_id
        super().__init__(f"Document '{document_id}' does not exist in collection '{collection_id}'")


class ContainerNotFound(NotFound):
    def __init__(self, container_id: str):
        self.container_id = container_id
        super().__init__(f"Container '{container_id}' does not exist")


class FileNotFound(NotFound):
    def __init__(self, container_id: str, path: str):
        self.container_id = container_id
        self.path = path
        super().__init__(f"File '{path}' does not exist in container '{container_id}'")


# --- Collisions ---


class AlreadyExists(BuildShelfError):
    """A create call collided with an existing resource."""

    error_code = "ALREADY_EXISTS"


class CollectionAlreadyExists(AlreadyExists):
    def __init__(self, collection_id: str):
        self.collection_id = collection_id
        super().__init__(f"Collection '{collection_id}' already exists")


class DocumentAlreadyExists(AlreadyExists):
    def __init__(self, collection_id: str, document_id: str):
        self.collection_id = collection_id
        self.document_id = document_id
        super().__init__(f"Document '{document_id}' already exists in collection '{collection_id}'")


class ContainerAlreadyExists(AlreadyExists):
    def __init__(self, container_id: str):
        self.container_id = container_id
        super().__init__(f"Container '{container_id}' already exists")


# --- Runtime ---


class ContextMissing(BuildShelfError):
    """Ambient request context was read outside of a request scope.

    Always a wiring bug: handler code ran without Service.handle (or
    request_scope) around it.
    """

    error_code = "CONTEXT_MISSING"

    def __init__(self, message: str = "Request context not found. Is this code running inside request_scope()?"):
        super().__init__(message)


class BackendUnavailable(BuildShelfError):
    """I/O or network failure while talking to a backend."""

    error_code = "BACKEND_UNAVAILABLE"


class Cancelled(BuildShelfError):
    """The request's cancellation signal fired mid-operation."""

    error_code = "CANCELLED"


class UnsupportedQuery(BuildShelfError):
    """A backend was asked to run a query form it cannot evaluate."""

    error_code = "UNSUPPORTED_QUERY"


class ConfigError(BuildShelfError):
    """Invalid or missing configuration. Fatal at start-up."""

    error_code = "CONFIG_ERROR"


class Unhandled(BuildShelfError):
    """Anything that doesn't fit the categories above."""

    error_code = "UNHANDLED"
