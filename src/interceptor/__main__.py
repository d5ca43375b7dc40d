"""
Command-line entry point: run a demo InterceptServer.

    python -m interceptor                     # 127.0.0.1:8080
    python -m interceptor --port 3000 -l DEBUG

Demo paths:

    /health   no authorizers
    /login    writes "hello", sets cookie S, writes " buddy"
    /update   rate limited, requires cookie S; adds ETag: a1

    curl -i localhost:8080/update                 → 401 missing cookie for S
    curl -i -b S=a1b2c3 localhost:8080/update     → 200 updated successfully
"""

from datetime import datetime, timedelta, timezone
import argparse
import sys

from . import __version__
from .config import ServerConfig
from .handlers import health_handler
from .http import Cookie, HTTPRequest
from .intercept import (
    AccessLogMonitor,
    InterceptPipeline,
    InterceptWriter,
    RateLimitAuthorizer,
    require_cookie,
)
from .server import InterceptServer


SESSION_COOKIE = "S"


def login(w: InterceptWriter, request: HTTPRequest) -> None:
    w.write(b"hello")
    w.set_cookie(Cookie(
        name=SESSION_COOKIE,
        value="a1b2c3",
        path="/",
        expires=datetime.now(timezone.utc) + timedelta(hours=1),
        http_only=True,
    ))
    w.write(b" buddy")


def update(w: InterceptWriter, request: HTTPRequest) -> None:
    w.add_header("ETag", "a1")
    w.write(b"updated successfully")


def build_server(config: ServerConfig) -> InterceptServer:
    """Mount the demo pipelines on a new server."""
    server = InterceptServer(config)
    access_log = AccessLogMonitor(log_format=config.log_format)

    server.mount("/health", InterceptPipeline(health_handler, monitors=[access_log]))
    server.mount("/login", InterceptPipeline(login, monitors=[access_log]))
    server.mount(
        "/update",
        InterceptPipeline(update)
        .add_authorizer(RateLimitAuthorizer(requests_per_second=5, burst_size=10))
        .add_authorizer(require_cookie(SESSION_COOKIE))
        .add_monitor(access_log),
    )
    return server


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="interceptor",
        description="Run the interceptor demo server",
    )
    parser.add_argument("--host", "-H", default=None,
                        help="Host to bind to (default: INTERCEPTOR_HOST or 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=None,
                        help="Port to listen on (default: INTERCEPTOR_PORT or 8080)")
    parser.add_argument("--workers", "-w", type=int, default=None,
                        help="Minimum worker threads; max is twice this")
    parser.add_argument("--log-level", "-l", default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (default: INTERCEPTOR_LOG_LEVEL or INFO)")
    parser.add_argument("--version", "-v", action="version",
                        version=f"interceptor {__version__}")

    args = parser.parse_args(argv)

    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        parser.error(f"invalid environment: {e}")

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.min_workers = args.workers
        config.max_workers = args.workers * 2
    if args.log_level is not None:
        config.log_level = args.log_level

    try:
        server = build_server(config)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    server.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
