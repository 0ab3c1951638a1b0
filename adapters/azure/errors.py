"""
azure-core error translation shared by the Azure storage adapters.

Adapters handle the codes that mean something specific to the operation
(ResourceExistsError on create, BlobNotFound, ...) themselves; whatever is
left goes through translate_error.
"""

import logging
from typing import Optional

from azure.core.exceptions import HttpResponseError, ServiceRequestError, ServiceResponseError

from buildshelf.errors.exceptions import BackendUnavailable, BuildShelfError, Unhandled

logger = logging.getLogger("buildshelf.azure")

# Transient: retrying later is expected to work
UNAVAILABLE_CODES = {
    "ServerBusy",
    "OperationTimedOut",
    "InternalError",
    "TooManyRequests",
}


def error_code(error: Exception) -> Optional[str]:
    """Storage error code (e.g. ContainerNotFound), when the SDK attached one."""
    return getattr(error, "error_code", None)


def translate_error(error: Exception, operation: str) -> BuildShelfError:
    """Map an azure-core exception onto the error taxonomy."""
    if isinstance(error, (ServiceRequestError, ServiceResponseError)):
        logger.warning(f"{operation}: {type(error).__name__}: {error}")
        return BackendUnavailable(f"{operation} failed: {error}")
    if isinstance(error, HttpResponseError):
        status = error.status_code or 0
        if error_code(error) in UNAVAILABLE_CODES or status == 429 or status >= 500:
            logger.warning(f"{operation}: backend unavailable ({error_code(error) or status})")
            return BackendUnavailable(f"{operation} failed: {error}")
    return Unhandled(f"{operation} failed: {error}")
