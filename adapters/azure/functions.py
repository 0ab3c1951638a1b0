"""
Azure Functions HTTP trigger — func.HttpRequest to the Service and back.

Usage (function_app.py):
    import azure.functions as func
    from adapters.azure.functions import register_function_app
    from buildshelf.config import ServiceConfig, create_service

    app = func.FunctionApp()
    register_function_app(app, create_service(ServiceConfig.from_env()), route="buildshelf")

Azure prepends its own route prefix ("api" by default, see host.json), so the
Service prefix should usually be "/api/<route>".
"""

import json
import logging

import azure.functions as func

from buildshelf.models.http import CONTENT_TYPE_JSON, Headers, Request, Response
from buildshelf.naming import SERVICE_NAME
from buildshelf.service import Service

logger = logging.getLogger("buildshelf.azure")

HTTP_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def to_request(req: func.HttpRequest) -> Request:
    """Translate an Azure HttpRequest into a canonical Request."""
    body = req.get_body()
    return Request(
        method=req.method,
        url=req.url,
        headers=Headers(list(req.headers.items())),
        body=body or None,
    )


async def to_http_response(response: Response) -> func.HttpResponse:
    """Translate a canonical Response into an Azure HttpResponse."""
    headers: dict[str, str] = {}
    for name in response.headers.names():
        headers[name] = ", ".join(response.headers.get_all(name))

    content_type = response.content_type
    mimetype = content_type.split(";")[0].strip() or None
    charset = None
    if "charset=" in content_type:
        charset = content_type.split("charset=", 1)[1].split(";")[0].strip()

    return func.HttpResponse(
        body=await response.read(),
        status_code=response.status,
        headers=headers,
        mimetype=mimetype,
        charset=charset,
    )


def internal_error_response() -> func.HttpResponse:
    return func.HttpResponse(
        body=json.dumps({"message": "Internal Server Error"}),
        status_code=500,
        mimetype=CONTENT_TYPE_JSON,
    )


async def handle_http_request(service: Service, req: func.HttpRequest) -> func.HttpResponse:
    try:
        await service.init()
        response = await service.handle(to_request(req))
        return await to_http_response(response)
    except Exception as e:
        logger.error(f"Azure invocation failed: {type(e).__name__}: {e}", exc_info=e)
        return internal_error_response()


def register_function_app(app: func.FunctionApp, service: Service, route: str = "") -> None:
    """Register one catch-all HTTP function that forwards everything to the Service."""
    route = route.strip("/")
    function_route = f"{route}/{{*path}}" if route else "{*path}"
    logger.info(f"Registering {SERVICE_NAME} function (route: {route or '/'})")

    @app.function_name(name=SERVICE_NAME)
    @app.route(route=function_route, methods=HTTP_METHODS, auth_level=func.AuthLevel.ANONYMOUS)
    async def buildshelf_http(req: func.HttpRequest) -> func.HttpResponse:
        return await handle_http_request(service, req)
