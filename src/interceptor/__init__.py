"""
=============================================================================
INTERCEPTOR
=============================================================================

Request interception for HTTP resource handlers: authorizers run before the
handler, response monitors run after it, and the handler's body is buffered
until every monitor has seen it.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   request ─► authorizers ─► handler ─► monitors ─► flush ─► client   │
    │                  │                                                   │
    │                  └── deny ─► status + message, nothing else runs     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE LAYOUT
=============================================================================

    interceptor/
    ├── intercept/     the pipeline, capture, outcomes, authorizers, monitors
    ├── http/          requests, response writers, headers, cookies, status
    ├── core/          sockets, connections, worker pool
    ├── handlers/      health check handlers
    ├── server.py      InterceptServer: hosts pipelines by exact path
    └── config.py      ServerConfig

=============================================================================
QUICK START
=============================================================================

    from interceptor import InterceptPipeline, ResponseRecorder, require_cookie

    def update(w, request):
        w.add_header("ETag", "a1")
        w.write(b"updated successfully")

    pipeline = InterceptPipeline(update).add_authorizer(require_cookie("S"))

    recorder = ResponseRecorder()
    pipeline.handle(recorder, request)
    recorder.status, bytes(recorder.body)

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .http import Cookie, HTTPRequest, ResponseRecorder, ResponseWriter, http_error
from .intercept import (
    AccessLogMonitor,
    AuthOutcome,
    BufferedResponse,
    InterceptPipeline,
    InterceptWriter,
    PipelineStage,
    RateLimitAuthorizer,
    allow,
    deny,
    require_cookie,
)
from .server import InterceptServer, create_app

__all__ = [
    "__version__",
    "InterceptPipeline",
    "PipelineStage",
    "InterceptWriter",
    "BufferedResponse",
    "AuthOutcome",
    "allow",
    "deny",
    "require_cookie",
    "RateLimitAuthorizer",
    "AccessLogMonitor",
    "ResponseWriter",
    "ResponseRecorder",
    "http_error",
    "HTTPRequest",
    "Cookie",
    "InterceptServer",
    "ServerConfig",
    "create_app",
]
