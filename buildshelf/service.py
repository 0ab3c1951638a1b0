"""
Service — the one entry point every platform transformer calls.

Builds the per-request context, enters its scope, dispatches through the
router, and guarantees a Response comes back whatever happens underneath.
"""

import logging
import posixpath
from typing import Optional

from buildshelf.context import current_storage, request_scope
from buildshelf.errors.exceptions import NotFound
from buildshelf.errors.handler import ErrorHandler
from buildshelf.interfaces.blob_store import BlobStore, guess_mime_type
from buildshelf.interfaces.document_store import DocumentStore
from buildshelf.models.context import DEFAULT_ACCEPT, DEFAULT_LOCALE, RequestContext, parse_locale
from buildshelf.models.http import Request, Response, json_response
from buildshelf.naming import generate_container_id
from buildshelf.router.router import Params, Router

logger = logging.getLogger("buildshelf.service")

CACHE_CONTROL_PUBLIC_YEAR = "public, max-age=31536000, immutable"
INDEX_FILE = "index.html"


class Service:
    """
    Platform-agnostic request handler. All backends injected.
    """

    def __init__(
        self,
        database: DocumentStore,
        storage: BlobStore,
        router: Optional[Router] = None,
        prefix: str = "",
        default_locale: str = DEFAULT_LOCALE,
    ):
        self.database = database
        self.storage = storage
        self.router = router if router is not None else default_router()
        self.prefix = prefix
        self.default_locale = default_locale
        self._initialized = False

    async def init(self) -> None:
        """Run the backends' start-up hooks once. Failures are fatal."""
        if self._initialized:
            return
        try:
            await self.database.init()
            await self.storage.init()
        except Exception as e:
            logger.error(f"Backend initialisation failed: {type(e).__name__}: {e}")
            raise
        self._initialized = True
        logger.info(
            f"Service ready: database={type(self.database).__name__}, "
            f"storage={type(self.storage).__name__}, prefix='{self.prefix}'"
        )

    def create_context(self, request: Request) -> RequestContext:
        return RequestContext(
            request=request,
            database=self.database,
            storage=self.storage,
            locale=parse_locale(request.headers.get("accept-language"), self.default_locale),
            accept=request.headers.get("accept") or DEFAULT_ACCEPT,
            prefix=self.prefix,
        )

    async def handle(self, request: Request) -> Response:
        """Handle one canonical request. Never raises."""
        ctx = self.create_context(request)
        try:
            with request_scope(ctx):
                response = await self.router.dispatch(request)
        except Exception as e:
            friendly = ErrorHandler(ctx.logger).handle(e, context=f"{request.method.value} {request.path}")
            return json_response(friendly.to_server_error(), status=500)

        if response is None:
            return json_response(
                {"error": f"No route for {request.method.value} {request.path}", "error_code": "NOT_FOUND"},
                status=404,
            )
        return response


# --- Built-in routes ---


async def handle_health(request: Request, params: Params) -> Response:
    return json_response({"status": "ok"})


def _file_not_found(build_id: str, filepath: str) -> Response:
    return json_response(
        {"error": f"File '{filepath}' not found in build '{build_id}'", "error_code": "NOT_FOUND"},
        status=404,
    )


async def handle_serve_build(request: Request, params: Params) -> Response:
    """Serve one file of a build: <buildId>/<path> from the project's container."""
    project_id = params["projectId"]
    build_id = params["buildId"]
    filepath = params.get("*") or INDEX_FILE

    # Same key on every backend: no dot segments, no parent traversal
    if build_id in (".", "..") or ".." in filepath.split("/"):
        return _file_not_found(build_id, filepath)
    filepath = posixpath.normpath(filepath).lstrip("/")
    if filepath in ("", "."):
        filepath = INDEX_FILE
    storage_path = posixpath.join(build_id, filepath)

    try:
        stored = await current_storage().download_file(generate_container_id(project_id), storage_path)
    except NotFound:
        return _file_not_found(build_id, filepath)

    content = await stored.read()
    response = Response(status=200, body=content)
    response.headers.set("Content-Type", stored.mime_type or guess_mime_type(filepath))
    response.headers.set("Cache-Control", CACHE_CONTROL_PUBLIC_YEAR)
    return response


def default_router() -> Router:
    router = Router()
    router.add("GET", "/health", handle_health)
    router.add("GET", "/projects/:projectId/builds/:buildId/*", handle_serve_build)
    return router
