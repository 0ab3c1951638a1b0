"""
Ambient request context.

Service.handle enters request_scope(ctx) around dispatch; any code awaited
underneath reads the active context through the accessors below instead of
having it passed down. Each asyncio task copies the ContextVar at creation,
so concurrent requests never see each other's context.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from buildshelf.errors.exceptions import ContextMissing
from buildshelf.models.context import RequestContext

_current: ContextVar[Optional[RequestContext]] = ContextVar("buildshelf_request_context", default=None)


@contextmanager
def request_scope(ctx: RequestContext) -> Iterator[RequestContext]:
    """Make ctx the active context until the block exits (normally or not)."""
    token = _current.set(ctx)
    try:
        yield ctx
    finally:
        _current.reset(token)


def get_context() -> RequestContext:
    ctx = _current.get()
    if ctx is None:
        raise ContextMissing()
    return ctx


def get_context_or_none() -> Optional[RequestContext]:
    return _current.get()


def current_database():
    return get_context().database


def current_storage():
    return get_context().storage


def current_logger() -> logging.LoggerAdapter:
    return get_context().logger


def current_locale() -> str:
    return get_context().locale


def current_signal():
    """Active request's cancel signal, or None outside a request scope."""
    ctx = _current.get()
    return ctx.signal if ctx is not None else None
