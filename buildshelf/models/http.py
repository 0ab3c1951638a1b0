"""
Canonical Request / Response models.

Platform-neutral HTTP messages. Every platform transformer produces a Request
and consumes a Response. The router and handlers only ever see these.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterable, Iterable, Iterator, Optional, Union
from urllib.parse import parse_qs, urlsplit

from buildshelf.models.signal import CancelSignal

Body = Union[bytes, str, AsyncIterable[bytes], None]

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_HTML = "text/html"
CONTENT_TYPE_TEXT = "text/plain"
CONTENT_TYPE_OCTET = "application/octet-stream"


class Method(str, Enum):
    """HTTP verbs the router understands."""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"

    @classmethod
    def parse(cls, value: str) -> "Method":
        return cls(value.upper())


class Headers:
    """
    Case-insensitive header multimap.

    Keeps every value of a repeated header in arrival order. Names are stored
    lowercased, like the WHATWG Headers object.
    """

    def __init__(self, items: Union["Headers", dict, Iterable[tuple[str, str]], None] = None,
                 frozen: bool = False):
        self._items: list[tuple[str, str]] = []
        if isinstance(items, Headers):
            self._items = list(items._items)
        elif isinstance(items, dict):
            for name, value in items.items():
                if isinstance(value, (list, tuple)):
                    for v in value:
                        self._items.append((name.lower(), str(v)))
                else:
                    self._items.append((name.lower(), str(value)))
        elif items is not None:
            for name, value in items:
                self._items.append((name.lower(), str(value)))
        self._frozen = frozen

    def _check_mutable(self):
        if self._frozen:
            raise TypeError("Headers are read-only")

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value for a header, or default."""
        name = name.lower()
        for key, value in self._items:
            if key == name:
                return value
        return default

    def get_all(self, name: str) -> list[str]:
        name = name.lower()
        return [value for key, value in self._items if key == name]

    def add(self, name: str, value: str) -> None:
        """Append a value, keeping existing values for the same name."""
        self._check_mutable()
        self._items.append((name.lower(), str(value)))

    def set(self, name: str, value: str) -> None:
        """Replace all values for a header with a single value."""
        self._check_mutable()
        self.remove(name)
        self._items.append((name.lower(), str(value)))

    def remove(self, name: str) -> None:
        self._check_mutable()
        name = name.lower()
        self._items = [(k, v) for k, v in self._items if k != name]

    def names(self) -> list[str]:
        """Distinct header names, in first-seen order."""
        seen: list[str] = []
        for key, _ in self._items:
            if key not in seen:
                seen.append(key)
        return seen

    def items(self) -> list[tuple[str, str]]:
        return list(self._items)

    def copy(self, frozen: bool = False) -> "Headers":
        return Headers(self, frozen=frozen)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and any(k == name.lower() for k, _ in self._items)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            return self._items == other._items
        return NotImplemented

    def __repr__(self) -> str:
        return f"Headers({self._items!r})"


async def _read_body(body: Body) -> bytes:
    if body is None:
        return b""
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    chunks = []
    async for chunk in body:
        chunks.append(chunk if isinstance(chunk, bytes) else bytes(chunk))
    return b"".join(chunks)


@dataclass(frozen=True)
class Request:
    """
    Canonical inbound request. Immutable once constructed.

    A streamed body can only be read once.
    """

    method: Method
    url: str
    headers: Headers = field(default_factory=Headers)
    body: Body = None
    signal: CancelSignal = field(default_factory=CancelSignal)

    def __post_init__(self):
        if not isinstance(self.method, Method):
            object.__setattr__(self, "method", Method.parse(str(self.method)))
        object.__setattr__(self, "headers", Headers(self.headers, frozen=True))

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def query_string(self) -> str:
        return urlsplit(self.url).query

    @property
    def query(self) -> dict[str, list[str]]:
        return parse_qs(self.query_string, keep_blank_values=True)

    async def read(self) -> bytes:
        return await _read_body(self.body)

    async def text(self) -> str:
        return (await self.read()).decode("utf-8")

    async def json(self):
        return json.loads(await self.read() or b"null")


@dataclass
class Response:
    """Canonical outbound response. Repeated headers are kept as-is."""

    status: int = 200
    headers: Headers = field(default_factory=Headers)
    body: Body = None

    def __post_init__(self):
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "") or ""

    async def read(self) -> bytes:
        return await _read_body(self.body)

    async def text(self) -> str:
        return (await self.read()).decode("utf-8")


# --- Response helpers ---


def json_response(data, status: int = 200, headers: Optional[dict] = None) -> Response:
    response = Response(status=status, headers=Headers(headers), body=json.dumps(data, default=str))
    response.headers.set("Content-Type", CONTENT_TYPE_JSON)
    return response


def text_response(text: str, status: int = 200, content_type: str = CONTENT_TYPE_TEXT,
                  headers: Optional[dict] = None) -> Response:
    response = Response(status=status, headers=Headers(headers), body=text)
    response.headers.set("Content-Type", content_type)
    return response


def bytes_response(data: bytes, content_type: str = CONTENT_TYPE_OCTET, status: int = 200,
                   headers: Optional[dict] = None) -> Response:
    response = Response(status=status, headers=Headers(headers), body=data)
    response.headers.set("Content-Type", content_type)
    return response
