"""
Azure Functions transformer tests.

Uses the real azure.functions request/response classes.
"""

import json
import sys
from pathlib import Path

import azure.functions as func
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from adapters.azure.functions import (
    handle_http_request,
    register_function_app,
    to_http_response,
    to_request,
)
from adapters.local.file_storage import FileSystemStorage
from adapters.local.json_database import JsonFileDatabase
from buildshelf.models.http import Method, Response, json_response
from buildshelf.router.router import Router
from buildshelf.service import Service


@pytest.fixture
def service(tmp_path):
    router = Router()

    @router.get("/projects/:projectId")
    async def get_project(request, params):
        return json_response({"id": params["projectId"], "agent": request.headers.get("user-agent")})

    @router.post("/echo")
    async def echo(request, params):
        return Response(status=201, headers={"Content-Type": "text/plain; charset=utf-8"}, body=await request.read())

    @router.get("/explode")
    async def explode(request, params):
        raise RuntimeError("boom")

    return Service(
        JsonFileDatabase(str(tmp_path / "db.json")),
        FileSystemStorage(str(tmp_path / "storage")),
        router,
        prefix="/api",
    )


def _http_request(method="GET", path="/api/projects/p1", body=b"", headers=None) -> func.HttpRequest:
    return func.HttpRequest(
        method=method,
        url=f"https://app.azurewebsites.net{path}",
        headers=headers or {"User-Agent": "pytest"},
        body=body,
    )


# --- Transformers ---


async def test_to_request():
    request = to_request(_http_request("POST", "/api/echo", b"hello"))
    assert request.method == Method.POST
    assert request.url == "https://app.azurewebsites.net/api/echo"
    assert request.headers.get("User-Agent") == "pytest"
    assert await request.read() == b"hello"


def test_empty_body_becomes_none():
    assert to_request(_http_request()).body is None


async def test_to_http_response_joins_repeated_headers():
    response = Response(status=200, body="ok")
    response.headers.set("Content-Type", "text/html; charset=utf-8")
    response.headers.add("Vary", "Accept")
    response.headers.add("Vary", "Accept-Language")

    http_response = await to_http_response(response)
    assert http_response.status_code == 200
    assert http_response.get_body() == b"ok"
    assert http_response.headers["vary"] == "Accept, Accept-Language"
    assert http_response.mimetype == "text/html"
    assert http_response.charset == "utf-8"


# --- Round trip ---


async def test_round_trip(service):
    http_response = await handle_http_request(service, _http_request())
    assert http_response.status_code == 200
    assert json.loads(http_response.get_body()) == {"id": "p1", "agent": "pytest"}


async def test_round_trip_body(service):
    http_response = await handle_http_request(service, _http_request("POST", "/api/echo", b"payload"))
    assert http_response.status_code == 201
    assert http_response.get_body() == b"payload"


async def test_handler_error_is_generic(service):
    http_response = await handle_http_request(service, _http_request(path="/api/explode"))
    assert http_response.status_code == 500
    assert b"boom" not in http_response.get_body()


async def test_transformer_failure_500(service):
    broken = _http_request(method="BREW")
    http_response = await handle_http_request(service, broken)
    assert http_response.status_code == 500
    assert json.loads(http_response.get_body()) == {"message": "Internal Server Error"}


# --- Registration ---


async def test_register_function_app(service):
    app = func.FunctionApp()
    register_function_app(app, service, route="/buildshelf/")

    functions = app.get_functions()
    assert [f.get_function_name() for f in functions] == ["buildshelf"]

    user_function = functions[0].get_user_function()
    http_response = await user_function(_http_request())
    assert http_response.status_code == 200
