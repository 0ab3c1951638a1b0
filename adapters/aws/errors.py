"""
botocore error translation shared by the AWS adapters.

Adapters handle the codes that mean something specific to the operation
(ConditionalCheckFailedException, NoSuchKey, ...) themselves; whatever is
left goes through translate_error.
"""

import logging

from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError

from buildshelf.errors.exceptions import BackendUnavailable, BuildShelfError, Unhandled

logger = logging.getLogger("buildshelf.aws")

# Transient: retrying later is expected to work
UNAVAILABLE_CODES = {
    "ThrottlingException",
    "ProvisionedThroughputExceededException",
    "RequestLimitExceeded",
    "InternalServerError",
    "ServiceUnavailable",
    "SlowDown",
    "InternalError",
    "RequestTimeout",
}


def error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def translate_error(error: Exception, operation: str) -> BuildShelfError:
    """Map a botocore exception onto the error taxonomy."""
    if isinstance(error, ClientError):
        code = error_code(error)
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        if code in UNAVAILABLE_CODES or status >= 500:
            logger.warning(f"{operation}: backend unavailable ({code or status})")
            return BackendUnavailable(f"{operation} failed: {error}")
        return Unhandled(f"{operation} failed: {error}")
    if isinstance(error, (EndpointConnectionError, BotoCoreError)):
        logger.warning(f"{operation}: {type(error).__name__}: {error}")
        return BackendUnavailable(f"{operation} failed: {error}")
    return Unhandled(f"{operation} failed: {error}")
