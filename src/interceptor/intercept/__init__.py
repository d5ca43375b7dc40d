"""
=============================================================================
INTERCEPTION
=============================================================================

Authorizers, a resource handler and response monitors run around one
request, with the body buffered until every monitor has seen it.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ capture.py      InterceptWriter, BufferedResponse                    │
    │ outcome.py      AuthOutcome, allow(), deny()                         │
    │ pipeline.py     InterceptPipeline, PipelineStage                     │
    │ authorizers.py  require_cookie(), RateLimitAuthorizer                │
    │ monitors.py     AccessLogMonitor                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .authorizers import RateLimitAuthorizer, RateLimitExceeded, TokenBucket, require_cookie
from .capture import BufferedResponse, InterceptWriter
from .monitors import AccessLogMonitor, RequestLog
from .outcome import AuthOutcome, AuthorizationError, allow, deny
from .pipeline import (
    Authorizer,
    InterceptPipeline,
    PipelineStage,
    ResourceHandler,
    ResponseMonitor,
)

__all__ = [
    # Pipeline
    "InterceptPipeline",
    "PipelineStage",
    "ResourceHandler",
    "Authorizer",
    "ResponseMonitor",

    # Capture
    "InterceptWriter",
    "BufferedResponse",

    # Outcomes
    "AuthOutcome",
    "AuthorizationError",
    "allow",
    "deny",

    # Authorizers
    "require_cookie",
    "RateLimitAuthorizer",
    "RateLimitExceeded",
    "TokenBucket",

    # Monitors
    "AccessLogMonitor",
    "RequestLog",
]
