"""
=============================================================================
INTERCEPT SERVER
=============================================================================

A small threaded HTTP/1.1 server whose only job is to host interception
pipelines, one per exact path.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         REQUEST FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   SocketServer.accept() ──► WorkerPool ──► _process_connection()     │
    │                                                  │                   │
    │        ┌─────────────────────────────────────────┘                   │
    │        ▼                                                             │
    │   read_request() ─► parse ─► pipelines[path]                         │
    │                                  │                                   │
    │                   missing ◄──────┼──────► found                      │
    │                   404            │        pipeline.handle(writer, r) │
    │                                  │        writer.finish()            │
    │                                  ▼                                   │
    │                        keep-alive? loop : close                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Path lookup is an exact dictionary match. There are no patterns, methods
or parameters: a pipeline receives every method sent to its path.

=============================================================================
FAULT BOUNDARY
=============================================================================

Pipelines do not catch exceptions raised by their callbacks. This server
does, per request:

    nothing committed yet   → 500 "Internal Server Error", close
    headers already sent    → close the connection (the client sees a
                              truncated response)

=============================================================================
USAGE
=============================================================================

    server = InterceptServer(ServerConfig(port=8080))

    @server.route("/update", authorizers=[require_cookie("S")])
    def update(w, request):
        w.add_header("ETag", "a1")
        w.write(b"updated successfully")

    server.mount("/health", InterceptPipeline(health_handler))
    server.run()

=============================================================================
"""

from typing import Callable, Dict, Iterable, Optional, Tuple
import logging
import threading

from .config import ServerConfig
from .core import Connection, ConnectionResponseWriter, SocketServer, WorkerPool
from .http import HTTPParseError, HTTPStatus, RequestParser, http_error
from .intercept import Authorizer, InterceptPipeline, ResourceHandler, ResponseMonitor


logger = logging.getLogger(__name__)


NOT_FOUND_MESSAGE = "404 page not found"


class InterceptServer:
    """
    Hosts InterceptPipelines behind a socket server and worker pool.

    Args:
        config: Server configuration; validated immediately.
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._pool = WorkerPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._pipelines: Dict[str, InterceptPipeline] = {}
        self._running = False
        self._stopped = threading.Event()

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def mount(self, path: str, pipeline: InterceptPipeline) -> "InterceptServer":
        """
        Serve path with pipeline.

        Mount everything before run(); the path table is not locked.

        Returns:
            Self for method chaining

        Raises:
            ValueError: If path does not start with "/" or is already mounted.
            RuntimeError: If the server is running.
        """
        if self._running:
            raise RuntimeError("Cannot mount pipelines while the server is running")
        if not path.startswith("/"):
            raise ValueError(f"Path must start with '/': {path!r}")
        if path in self._pipelines:
            raise ValueError(f"Path already mounted: {path}")

        self._pipelines[path] = pipeline
        logger.debug(f"Mounted {pipeline!r} at {path}")
        return self

    def route(
        self,
        path: str,
        authorizers: Iterable[Authorizer] = (),
        monitors: Iterable[ResponseMonitor] = (),
    ) -> Callable[[ResourceHandler], ResourceHandler]:
        """
        Decorator that wraps a resource handler in a pipeline and mounts it.

        The handler is returned unchanged, so it can still be called or
        tested directly.
        """
        def decorator(handler: ResourceHandler) -> ResourceHandler:
            self.mount(path, InterceptPipeline(handler, authorizers, monitors))
            return handler
        return decorator

    def pipeline(self, path: str) -> Optional[InterceptPipeline]:
        return self._pipelines.get(path)

    @property
    def paths(self) -> Tuple[str, ...]:
        return tuple(sorted(self._pipelines))

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once listening."""
        return self._socket_server.address

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def run(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """
        Serve until shutdown() or SIGINT/SIGTERM (blocking).

        Args:
            host: Override config host.
            port: Override config port.
        """
        if host is not None:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self._stopped.clear()
        self._running = True
        self._pool.start()

        logger.info(
            f"Starting {self.config.server_name} on {self.config.host}:{self.config.port} "
            f"with {len(self._pipelines)} pipelines"
        )
        for path in self.paths:
            logger.info(f"  {path} -> {self._pipelines[path]!r}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Ask a running server to stop, from any thread.

        Args:
            timeout: Seconds to wait for run() to return. None = don't wait.

        Returns:
            True if the server has stopped (or timeout is None).
        """
        self._socket_server.shutdown()
        if timeout is None:
            return True
        return self._stopped.wait(timeout)

    def _setup_logging(self) -> None:
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("interceptor").setLevel(level)

    def _shutdown(self) -> None:
        logger.info("Shutting down server...")
        self._running = False
        self._pool.shutdown(wait=True, timeout=self.config.keep_alive_timeout + 1.0)
        self._stopped.set()
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTIONS
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        submitted = self._pool.submit(self._process_connection, args=(conn,), block=False)
        if not submitted:
            logger.warning(f"[{conn.id}] Worker pool full, rejecting connection")
            self._send_error(conn, "Server overloaded", HTTPStatus.SERVICE_UNAVAILABLE)
            conn.close()

    def _process_connection(self, conn: Connection) -> None:
        """Keep-alive loop for one connection (runs on a worker thread)."""
        with conn:
            while self._running:
                try:
                    raw = conn.read_request()
                except TimeoutError:
                    self._send_error(conn, "Request timeout", HTTPStatus.REQUEST_TIMEOUT)
                    break
                except ValueError as e:
                    self._send_error(conn, str(e), HTTPStatus.PAYLOAD_TOO_LARGE)
                    break
                except OSError as e:
                    logger.debug(f"[{conn.id}] Read failed: {e}")
                    break

                if raw is None:
                    break

                try:
                    request = self._parser.parse(raw, conn.address)
                except HTTPParseError as e:
                    self._send_error(conn, str(e), e.status_code)
                    break

                writer = ConnectionResponseWriter(
                    conn,
                    version=request.version,
                    keep_alive=request.is_keep_alive and self.config.keep_alive,
                    head=request.method == "HEAD",
                    server_name=self.config.server_name,
                )

                try:
                    keep_open = self._serve(conn, writer, request)
                except OSError as e:
                    logger.debug(f"[{conn.id}] Client went away: {e}")
                    break

                if not keep_open or not writer.keep_alive:
                    break
                conn.set_keep_alive()

    def _serve(self, conn: Connection, writer: ConnectionResponseWriter, request) -> bool:
        """
        Run the request's pipeline and finish the response.

        Returns:
            False if the connection must be closed afterwards.
        """
        pipeline = self._pipelines.get(request.path)
        if pipeline is None:
            logger.debug(f"[{conn.id}] No pipeline for {request.path}")
            http_error(writer, NOT_FOUND_MESSAGE, HTTPStatus.NOT_FOUND)
            writer.finish()
            return True

        try:
            pipeline.handle(writer, request)
        except OSError:
            raise
        except Exception as e:
            logger.exception(f"[{conn.id}] Pipeline error on {request.method} {request.path}: {e}")
            if writer.committed:
                return False
            writer.keep_alive = False
            http_error(writer, "Internal Server Error", HTTPStatus.INTERNAL_SERVER_ERROR)
            writer.finish()
            return False

        if writer.aborted:
            logger.debug(f"[{conn.id}] Response to {request.path} truncated, closing connection")
            return False

        writer.finish()
        return True

    def _send_error(self, conn: Connection, message: str, status: int) -> None:
        """Error reply for failures before a request could be parsed."""
        writer = ConnectionResponseWriter(
            conn, keep_alive=False, server_name=self.config.server_name
        )
        try:
            http_error(writer, message, status)
            writer.finish()
        except OSError as e:
            logger.debug(f"[{conn.id}] Could not send {status}: {e}")


def create_app(config: Optional[ServerConfig] = None) -> InterceptServer:
    """Factory for an InterceptServer."""
    return InterceptServer(config)
