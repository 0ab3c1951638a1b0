"""
BuildShelf Local Development Server

A simple HTTP server that wires the configured backends to the Service.
Every request is translated to the canonical Request, handled by
Service.handle, and the canonical Response is written back.

Configuration comes from BUILDSHELF_* environment variables (or a .env file),
or from a YAML file passed with --config.

Usage:
    python -m adapters.local.dev_server
    python -m adapters.local.dev_server --config buildshelf.yaml
"""

import argparse
import asyncio
import logging
import os
import sys
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional

from buildshelf.config import ServiceConfig, create_service
from buildshelf.errors.exceptions import ConfigError
from buildshelf.models.http import Headers, Request, Response
from buildshelf.service import Service

logger = logging.getLogger("buildshelf.dev")

# --- Global state (initialized in main) ---
service: Service


def _run_async(coro):
    """Run async code from sync context."""
    return asyncio.run(coro)


def to_request(method: str, host: str, path: str, headers: list[tuple[str, str]], body: bytes) -> Request:
    """Translate one parsed HTTP request into the canonical model."""
    return Request(
        method=method,
        url=f"http://{host}{path}",
        headers=Headers(headers),
        body=body or None,
    )


async def _handle(request: Request) -> tuple[Response, bytes]:
    response = await service.handle(request)
    return response, await response.read()


class DevHandler(BaseHTTPRequestHandler):
    """HTTP request handler for local development."""

    def _dispatch(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""
        request = to_request(
            self.command,
            self.headers.get("Host") or f"localhost:{self.server.server_port}",
            self.path,
            list(self.headers.items()),
            body,
        )

        try:
            response, content = _run_async(_handle(request))
        except Exception:
            logger.exception("Unhandled error while writing response")
            self.send_error(500)
            return

        self.send_response(response.status)
        for name, value in response.headers:
            if name != "content-length":
                self.send_header(name, value)
        self.send_header("Content-Length", str(len(content)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(content)

    do_GET = _dispatch
    do_HEAD = _dispatch
    do_POST = _dispatch
    do_PUT = _dispatch
    do_PATCH = _dispatch
    do_DELETE = _dispatch
    do_OPTIONS = _dispatch

    def log_message(self, format, *args):
        pass


def load_config(path: Optional[str]) -> ServiceConfig:
    if path:
        return ServiceConfig.from_yaml(path)
    return ServiceConfig.from_env()


def init(config_path: Optional[str] = None) -> None:
    """Initialize all components."""
    global service

    try:
        config = load_config(config_path)
        service = create_service(config)
        _run_async(service.init())
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Start-up failed: {type(e).__name__}: {e}")
        sys.exit(1)

    logger.info(f"Backend: {config.backend} (prefix: '{config.prefix or '/'}')")


def main(argv: Optional[list[str]] = None):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="BuildShelf local development server")
    parser.add_argument("--config", help="YAML config file (default: BUILDSHELF_* environment)")
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8080")))
    args = parser.parse_args(argv)

    init(args.config)

    server = ThreadingHTTPServer(("0.0.0.0", args.port), DevHandler)

    logger.info(f"")
    logger.info(f"  BuildShelf Dev Server")
    logger.info(f"  http://localhost:{args.port}")
    logger.info(f"")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
