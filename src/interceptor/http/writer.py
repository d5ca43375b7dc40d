"""
=============================================================================
RESPONSE WRITERS (THE REAL SINK)
=============================================================================

A ResponseWriter is whatever actually delivers a response: a socket, an
in-memory recorder, an adapter around another server. The interception
pipeline only ever talks to this contract.

=============================================================================
THE COMMIT POINT
=============================================================================

HTTP puts the status line and headers BEFORE the body on the wire, so a
writer has a one-way "commit" moment:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      ResponseWriter lifecycle                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   OPEN                         COMMITTED                             │
    │   ────                         ─────────                             │
    │   headers.add(...)  ✔          headers.add(...)  ✘ not sent          │
    │   set_status(401)   ✔ commit   set_status(...)   ✘ ignored + logged  │
    │   write(b"...")     ✔ commit   write(b"...")     ✔ body bytes        │
    │        │                 ▲                                           │
    │        └─────────────────┘                                           │
    │        first set_status() or write() (implicit 200)                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Union
import logging

from .headers import Headers


logger = logging.getLogger(__name__)


BytesLike = Union[bytes, bytearray, memoryview]


class ResponseWriter(ABC):
    """
    Contract for the real response sink.

    Subclasses implement _commit() and _write_body(); the base class owns
    the commit bookkeeping so every sink agrees on when headers stop
    mattering.
    """

    def __init__(self):
        self._headers = Headers()
        self._status = 200
        self._committed = False
        self._aborted = False

    @property
    def headers(self) -> Headers:
        """The live header collection. Mutations after commit are not sent."""
        return self._headers

    @property
    def status(self) -> int:
        return self._status

    @property
    def committed(self) -> bool:
        """True once the status line and headers have been fixed."""
        return self._committed

    @property
    def aborted(self) -> bool:
        """True once abort() was called; the body on the wire is incomplete."""
        return self._aborted

    def abort(self) -> None:
        """
        Mark the response as truncated.

        Called when body delivery stopped part way. The transport must not
        report the body as complete, and must not reuse the connection.
        """
        self._aborted = True

    def set_status(self, code: int) -> None:
        """
        Set the status code and commit the header section.

        Args:
            code: Any integer status code. Not validated.
        """
        if self._committed:
            logger.warning(f"Superfluous set_status({code}): response already committed with {self._status}")
            return
        self._status = int(code)
        self._committed = True
        self._commit()

    def write(self, data: BytesLike) -> int:
        """
        Write body bytes, committing with 200 OK first if needed.

        Returns:
            Number of bytes accepted by the sink.

        Raises:
            OSError: If the underlying transport fails.
        """
        if not self._committed:
            self.set_status(self._status)
        return self._write_body(bytes(data))

    @abstractmethod
    def _commit(self) -> None:
        """Deliver the status line and the current headers."""

    @abstractmethod
    def _write_body(self, data: bytes) -> int:
        """Deliver body bytes. Only called after commit."""


def http_error(writer: ResponseWriter, message: str, status: int) -> None:
    """
    Reply with a plain-text error.

    The message is the entire body. Any Content-Length set earlier is
    removed because it described a body that will not be sent.

    Args:
        writer: The real sink.
        message: Body text.
        status: Status code, forwarded as-is.
    """
    headers = writer.headers
    headers.remove("Content-Length")
    headers.set("Content-Type", "text/plain; charset=utf-8")
    headers.set("X-Content-Type-Options", "nosniff")
    writer.set_status(status)
    writer.write(message.encode("utf-8"))


class ResponseRecorder(ResponseWriter):
    """
    In-memory ResponseWriter.

    Records what a client would have received, which makes it the sink of
    choice for unit tests and for embedding a pipeline in code that is not
    an HTTP server.

    Attributes:
        body: All body bytes written, concatenated.
        writes: Each write() call's bytes, in order.
        sent_headers: Snapshot of headers at commit time (None until then).
    """

    def __init__(self):
        super().__init__()
        self.body = bytearray()
        self.writes: List[bytes] = []
        self.sent_headers: Optional[Headers] = None

    def _commit(self) -> None:
        self.sent_headers = self._headers.copy()

    def _write_body(self, data: bytes) -> int:
        self.writes.append(data)
        self.body.extend(data)
        return len(data)

    @property
    def text(self) -> str:
        """Body decoded as UTF-8."""
        return self.body.decode("utf-8")

    def result_headers(self) -> Headers:
        """
        Headers as the client saw them.

        Before commit this is the live collection, matching what would be
        sent if the response were committed now.
        """
        if self.sent_headers is not None:
            return self.sent_headers
        return self._headers

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self._status,
            "headers": self.result_headers().items(),
            "body": bytes(self.body),
        }


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Thu, 01 Jan 2026 12:00:00 GMT

    Args:
        dt: Datetime in UTC.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
