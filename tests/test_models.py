"""
Canonical model tests — headers, requests, list queries, cancellation.
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from buildshelf.errors.exceptions import Cancelled
from buildshelf.interfaces.document_store import apply_list_query
from buildshelf.models.http import Headers, Method, Request, Response, json_response
from buildshelf.models.query import ListQuery, NativeQuery
from buildshelf.models.signal import CancelSignal, run_cancellable


# --- Headers ---


def test_headers_case_insensitive_multimap():
    headers = Headers([("Set-Cookie", "a=1"), ("set-cookie", "b=2"), ("Content-Type", "text/html")])
    assert headers.get("SET-COOKIE") == "a=1"
    assert headers.get_all("Set-Cookie") == ["a=1", "b=2"]
    assert "content-type" in headers
    assert headers.names() == ["set-cookie", "content-type"]


def test_headers_from_dict_with_lists():
    headers = Headers({"Vary": ["Accept", "Origin"], "X-One": 1})
    assert headers.get_all("vary") == ["Accept", "Origin"]
    assert headers.get("x-one") == "1"


def test_request_headers_read_only():
    request = Request(method="get", url="http://localhost/", headers={"Accept": "text/html"})
    assert request.method == Method.GET
    with pytest.raises(TypeError):
        request.headers.add("x-extra", "1")
    with pytest.raises(AttributeError):
        request.url = "http://elsewhere/"


async def test_request_stream_body():
    async def chunks():
        yield b'{"a": '
        yield b"1}"

    request = Request(method="POST", url="http://localhost/items?x=1&x=2", body=chunks())
    assert request.path == "/items"
    assert request.query == {"x": ["1", "2"]}
    assert await request.json() == {"a": 1}


async def test_response_helpers():
    response = json_response({"ok": True}, status=201, headers={"X-Trace": "t1"})
    assert response.status == 201
    assert response.content_type == "application/json"
    assert response.headers.get("x-trace") == "t1"
    assert await Response().read() == b""


# --- ListQuery ---


def test_string_filter_becomes_native():
    query = ListQuery(filter="#s = :s")
    assert query.native_filter == NativeQuery("#s = :s")
    assert query.predicate is None


def test_invalid_queries():
    with pytest.raises(ValueError):
        ListQuery(limit=-1)
    with pytest.raises(ValueError):
        ListQuery(sort="oldest")


def test_apply_list_query_without_query():
    docs = [{"id": "a"}, {"id": "b"}]
    result = apply_list_query(docs, None)
    assert result == docs
    assert result is not docs


# --- Cancellation ---


async def test_run_cancellable_returns_result():
    assert await run_cancellable(asyncio.sleep(0, result=42), CancelSignal()) == 42
    assert await run_cancellable(asyncio.sleep(0, result=7), None) == 7


async def test_run_cancellable_stops_on_signal():
    signal = CancelSignal()
    asyncio.get_running_loop().call_later(0.05, signal.cancel, "deadline")

    with pytest.raises(Cancelled) as exc_info:
        await run_cancellable(asyncio.sleep(10), signal)
    assert "deadline" in str(exc_info.value)


async def test_run_cancellable_already_cancelled():
    signal = CancelSignal()
    signal.cancel()
    with pytest.raises(Cancelled):
        await run_cancellable(asyncio.sleep(0), signal)
    assert signal.reason == "Request cancelled"
