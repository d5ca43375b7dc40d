"""
=============================================================================
ACCESS LOG MONITOR
=============================================================================

A response monitor that writes one access log line per delivered response.

It runs after the handler and before the flush, so it sees the body as
captured chunks rather than as a finished response:

    handler ─► chunks = (b"hello", b" buddy")
                  │
                  ▼
    AccessLogMonitor ─► 127.0.0.1 - - [19/Oct/2026:10:00:00 +0000]
                        "GET /login" 200 11 2 cookie=yes

Denied requests never reach monitors, so they are not logged here. The
pipeline logs denials itself.

Entries go to the "interceptor.access" logger, configurable separately:

    logging.getLogger("interceptor.access").setLevel(logging.WARNING)

=============================================================================
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence
import json
import logging
import time

from ..http.request import HTTPRequest
from .capture import InterceptWriter


logger = logging.getLogger("interceptor.access")


@dataclass
class RequestLog:
    """
    One access log entry.

    Attributes:
        method, path, query, client_ip, user_agent: From the request.
        status_code: Status on the real sink when the monitor ran.
        content_length: Sum of captured chunk lengths.
        chunks: Number of write() calls the handler made.
        set_cookie: Whether the response carries a Set-Cookie header.
        timestamp: Local time in common log format.
    """

    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    chunks: int
    set_cookie: bool
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "path": self.path,
            "query": self.query,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "chunks": self.chunks,
            "set_cookie": self.set_cookie,
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Common log format plus chunk count and cookie flag."""
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.chunks} '
            f'cookie={"yes" if self.set_cookie else "no"}'
        )


class AccessLogMonitor:
    """
    Logs every response that passes through a pipeline.

    Usage:
        pipeline.add_monitor(AccessLogMonitor())
        pipeline.add_monitor(AccessLogMonitor(log_format="json"))
        pipeline.add_monitor(AccessLogMonitor(skip_paths=["/health"]))

    Args:
        log_format: "text" or "json".
        log_level: Level for the entries.
        skip_paths: Paths that are never logged.
        access_logger: Logger to write to. Defaults to "interceptor.access".
    """

    FORMATS = ("text", "json")

    def __init__(
        self,
        log_format: str = "text",
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
        access_logger: Optional[logging.Logger] = None,
    ):
        if log_format not in self.FORMATS:
            raise ValueError(f"log_format must be one of {self.FORMATS}, got {log_format!r}")

        self.log_format = log_format
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])
        self.logger = access_logger or logger

    def __call__(
        self,
        w: InterceptWriter,
        request: HTTPRequest,
        chunks: Sequence[bytes],
    ) -> None:
        if request.path in self.skip_paths:
            return
        if not self.logger.isEnabledFor(self.log_level):
            return

        entry = self.build_entry(w, request, chunks)
        if self.log_format == "json":
            self.logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            self.logger.log(self.log_level, entry.to_text())

    def build_entry(
        self,
        w: InterceptWriter,
        request: HTTPRequest,
        chunks: Sequence[bytes],
    ) -> RequestLog:
        query = "&".join(
            f"{name}={value}"
            for name, values in request.query_params.items()
            for value in values
        )
        return RequestLog(
            method=request.method,
            path=request.path,
            query=query,
            client_ip=request.client_ip,
            user_agent=request.user_agent or "-",
            status_code=_sink_status(w),
            content_length=sum(len(chunk) for chunk in chunks),
            chunks=len(chunks),
            set_cookie="Set-Cookie" in w.headers,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )


def _sink_status(w: InterceptWriter) -> int:
    """Status of the real sink behind w; 200 if it cannot be seen."""
    writer = getattr(w, "writer", None)
    return getattr(writer, "status", 200)
