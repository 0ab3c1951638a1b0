"""
Router — matches canonical requests to handlers.

Platform-agnostic: handlers receive (request, params) and return a Response.
They never see which platform the request came from.
"""

import inspect
import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Union

from buildshelf.context import get_context
from buildshelf.errors.handler import ErrorHandler
from buildshelf.models.http import Method, Request, Response, json_response
from buildshelf.router.paths import compile_pattern, join_paths, match_path, normalize_path, strip_prefix

logger = logging.getLogger("buildshelf.router")

Params = dict[str, str]
Handler = Callable[[Request, Params], Union[Response, Awaitable[Response]]]


@dataclass
class Route:
    method: Method
    pattern: str
    handler: Handler
    regex: re.Pattern = field(init=False, repr=False)
    param_names: list[str] = field(init=False, repr=False)

    def __post_init__(self):
        self.pattern = normalize_path(self.pattern)
        self.regex, self.param_names = compile_pattern(self.pattern)

    def match(self, method: Method, path: str) -> Optional[Params]:
        if method != self.method:
            return None
        return match_path(self.regex, self.param_names, path)


class Router:
    """
    Ordered route table. First registered match wins.
    """

    def __init__(self):
        self.routes: list[Route] = []

    # --- Registration ---

    def add(self, method: Union[Method, str], pattern: str, handler: Handler) -> "Router":
        if not isinstance(method, Method):
            method = Method.parse(method)
        self.routes.append(Route(method, pattern, handler))
        return self

    def route(self, method: Union[Method, str], pattern: str):
        """Decorator form of add()."""
        def decorator(handler: Handler) -> Handler:
            self.add(method, pattern, handler)
            return handler
        return decorator

    def get(self, pattern: str):
        return self.route(Method.GET, pattern)

    def post(self, pattern: str):
        return self.route(Method.POST, pattern)

    def put(self, pattern: str):
        return self.route(Method.PUT, pattern)

    def patch(self, pattern: str):
        return self.route(Method.PATCH, pattern)

    def delete(self, pattern: str):
        return self.route(Method.DELETE, pattern)

    def include(self, prefix: str, router: "Router") -> "Router":
        """Mount every route of another router under a path prefix."""
        for route in router.routes:
            self.add(route.method, join_paths(prefix, route.pattern), route.handler)
        return self

    # --- Dispatch ---

    def match(self, method: Method, path: str) -> Optional[tuple[Route, Params]]:
        for route in self.routes:
            params = route.match(method, path)
            if params is not None:
                return route, params
        return None

    async def dispatch(self, request: Request) -> Optional[Response]:
        """
        Route a request within the active request scope.

        Returns:
            The handler's response, a 500 response if the handler raised,
            or None when no route matched.

        Raises:
            ContextMissing: If called outside request_scope()
        """
        ctx = get_context()
        log = ctx.logger
        log.info(f"[{request.method.value}] {request.url}")

        path = normalize_path(strip_prefix(normalize_path(request.path), ctx.prefix))
        found = self.match(request.method, path)
        if found is None:
            log.debug(f"No route for {request.method.value} {path}")
            return None

        route, params = found
        try:
            result = route.handler(request, params)
            if inspect.isawaitable(result):
                result = await result
            if not isinstance(result, Response):
                raise TypeError(
                    f"Handler for {route.method.value} {route.pattern} returned "
                    f"{type(result).__name__}, expected Response"
                )
            return result
        except Exception as e:
            friendly = ErrorHandler(log).handle(e, context=f"{request.method.value} {path}")
            return json_response(friendly.to_server_error(), status=500)
