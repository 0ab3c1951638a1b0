"""
AWS Lambda entrypoint — API Gateway proxy events to the Service and back.

Handles both payload formats:
  REST API (v1):  httpMethod, path, headers + multiValueHeaders, query parameters
  HTTP API (v2):  requestContext.http.method, rawPath, rawQueryString, cookies

The request's cancel signal fires shortly before the Lambda deadline, so
pending backend calls stop and a response still goes out in time.

Usage (function handler setting):
    adapters.aws.lambda_handler.handler
"""

import asyncio
import base64
import json
import logging
from typing import Callable, Optional
from urllib.parse import urlencode

from buildshelf.config import ServiceConfig, create_service
from buildshelf.models.http import CONTENT_TYPE_JSON, Headers, Request, Response
from buildshelf.models.signal import CancelSignal
from buildshelf.service import Service

logger = logging.getLogger("buildshelf.aws")

# Time kept back from the Lambda deadline to write the response
DEADLINE_MARGIN_MS = 500

INTERNAL_ERROR_RESULT = {
    "statusCode": 500,
    "headers": {"content-type": CONTENT_TYPE_JSON},
    "body": json.dumps({"message": "Internal Server Error"}),
    "isBase64Encoded": False,
}


# --- Event -> Request ---


def _event_headers(event: dict) -> Headers:
    headers = Headers()
    multi = {name: values for name, values in (event.get("multiValueHeaders") or {}).items() if values}
    multi_names = {name.lower() for name in multi}

    for name, values in multi.items():
        for value in values:
            if value is not None:
                headers.add(name, value)
    for name, value in (event.get("headers") or {}).items():
        if value is not None and name.lower() not in multi_names:
            headers.add(name, value)

    cookies = event.get("cookies")
    if cookies:
        headers.add("cookie", "; ".join(cookies))
    return headers


def _event_query(event: dict) -> str:
    if event.get("rawQueryString"):
        return event["rawQueryString"]
    if event.get("multiValueQueryStringParameters"):
        return urlencode(event["multiValueQueryStringParameters"], doseq=True)
    if event.get("queryStringParameters"):
        return urlencode(event["queryStringParameters"])
    return ""


def event_to_request(event: dict, signal: Optional[CancelSignal] = None) -> Request:
    """Translate an API Gateway proxy event into a canonical Request."""
    request_context = event.get("requestContext") or {}
    method = event.get("httpMethod") or (request_context.get("http") or {}).get("method") or "GET"
    headers = _event_headers(event)

    host = headers.get("host") or request_context.get("domainName") or "localhost"
    scheme = headers.get("x-forwarded-proto") or "https"
    path = event.get("rawPath") or event.get("path") or "/"
    query = _event_query(event)
    url = f"{scheme}://{host}{path}" + (f"?{query}" if query else "")

    body = event.get("body")
    if body is not None and event.get("isBase64Encoded"):
        body = base64.b64decode(body)

    return Request(
        method=method,
        url=url,
        headers=headers,
        body=body,
        signal=signal or CancelSignal(),
    )


# --- Response -> result ---


def is_text_content(content_type: str) -> bool:
    return content_type.startswith("text/") or content_type.startswith(CONTENT_TYPE_JSON)


async def response_to_result(response: Response) -> dict:
    """Translate a canonical Response into an API Gateway proxy result."""
    headers: dict[str, str] = {}
    multi_value_headers: dict[str, list[str]] = {}
    for name, value in response.headers:
        if name in headers:
            multi_value_headers.setdefault(name, []).append(value)
        else:
            headers[name] = value

    content = await response.read()
    body = None
    if is_text_content(response.content_type):
        try:
            body = content.decode("utf-8")
        except UnicodeDecodeError:
            # Not valid UTF-8 despite a text type: ship the raw bytes
            logger.debug(f"Non UTF-8 body for {response.content_type}, sending base64")
    is_base64 = body is None
    if is_base64:
        body = base64.b64encode(content).decode("ascii")

    return {
        "statusCode": response.status,
        "headers": headers,
        "multiValueHeaders": multi_value_headers,
        "body": body,
        "isBase64Encoded": is_base64,
    }


# --- Handler ---


async def handle_event(service: Service, event: dict, context=None) -> dict:
    signal = CancelSignal()
    watchdog = None
    get_remaining = getattr(context, "get_remaining_time_in_millis", None)
    if get_remaining is not None:
        delay = max(get_remaining() - DEADLINE_MARGIN_MS, 0) / 1000
        watchdog = asyncio.get_running_loop().call_later(delay, signal.cancel, "Lambda deadline reached")

    try:
        await service.init()
        request = event_to_request(event, signal)
        response = await service.handle(request)
        return await response_to_result(response)
    except Exception as e:
        logger.error(f"Lambda invocation failed: {type(e).__name__}: {e}", exc_info=e)
        return dict(INTERNAL_ERROR_RESULT)
    finally:
        if watchdog is not None:
            watchdog.cancel()


def create_lambda_handler(service: Service) -> Callable[[dict, object], dict]:
    """Wrap a Service as a synchronous Lambda handler(event, context)."""

    def lambda_handler(event: dict, context=None) -> dict:
        return asyncio.run(handle_event(service, event, context))

    return lambda_handler


_default_service: Optional[Service] = None


def handler(event: dict, context=None) -> dict:
    """Default entrypoint: Service built from BUILDSHELF_* environment variables."""
    global _default_service
    if _default_service is None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        )
        _default_service = create_service(ServiceConfig.from_env(env_file=None))
    return asyncio.run(handle_event(_default_service, event, context))
