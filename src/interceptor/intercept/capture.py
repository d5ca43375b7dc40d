"""
=============================================================================
BUFFERED RESPONSE CAPTURE
=============================================================================

The writer handed to authorizers, the resource handler and monitors.

It looks like a response sink, but it splits operations in two:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                 BufferedResponse (one per request)                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   PASS-THROUGH (hit the real sink now)     DEFERRED (held in memory) │
    │   ────────────────────────────────────     ───────────────────────── │
    │   headers          → real.headers          write(b"hello")           │
    │   set_status(code) → real.set_status        └─► chunks[0]            │
    │   set_cookie(c)    → real.headers.add       write(b" buddy")         │
    │   add_header(n, v) → real.headers.add        └─► chunks[1]           │
    │                                                                      │
    │                                    flush (pipeline, after monitors)  │
    │                                    chunks[0] ─► real.write           │
    │                                    chunks[1] ─► real.write           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Headers go first on the wire, so they are applied immediately and are
visible on the real sink before any body byte leaves the process. Body
bytes wait until every monitor has seen them.

Known sharp edge: a header or cookie applied here is live even if the
request later ends in an error response. Nothing is rolled back.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import List, Tuple, Union

from ..http.cookies import Cookie
from ..http.headers import Headers
from ..http.writer import ResponseWriter


WriteData = Union[bytes, bytearray, memoryview, str]


class InterceptWriter(ABC):
    """
    What callbacks in an interception pipeline write to.

    Not a ResponseWriter subclass: callbacks get header/status/cookie
    control and a buffered body, never direct access to the transport.
    """

    @property
    @abstractmethod
    def headers(self) -> Headers:
        """Mutable response headers of the real sink."""

    @abstractmethod
    def set_status(self, code: int) -> None:
        """Set the response status on the real sink."""

    @abstractmethod
    def write(self, data: WriteData) -> int:
        """Append body bytes; returns the number of bytes accepted."""

    @abstractmethod
    def set_cookie(self, cookie: Cookie) -> None:
        """Add a Set-Cookie header. May be called any number of times."""

    @abstractmethod
    def add_header(self, name: str, value: str) -> None:
        """Add a header value without replacing existing ones."""


class BufferedResponse(InterceptWriter):
    """
    InterceptWriter that buffers the body for one request.

    Created fresh by the pipeline for every request; never reused.

    Args:
        writer: The real sink for this request.
    """

    def __init__(self, writer: ResponseWriter):
        self._writer = writer
        self._chunks: List[bytes] = []
        self._size = 0

    @property
    def writer(self) -> ResponseWriter:
        """The real sink this capture passes metadata through to."""
        return self._writer

    # ─────────────────────────────────────────────────────────────────────
    # PASS-THROUGH
    # ─────────────────────────────────────────────────────────────────────

    @property
    def headers(self) -> Headers:
        return self._writer.headers

    def set_status(self, code: int) -> None:
        self._writer.set_status(code)

    def set_cookie(self, cookie: Cookie) -> None:
        self._writer.headers.add("Set-Cookie", cookie.to_header())

    def add_header(self, name: str, value: str) -> None:
        self._writer.headers.add(name, value)

    # ─────────────────────────────────────────────────────────────────────
    # DEFERRED
    # ─────────────────────────────────────────────────────────────────────

    def write(self, data: WriteData) -> int:
        """
        Capture one body chunk.

        The chunk is copied, so later changes to a bytearray or buffer the
        caller passed in do not leak into the response. Strings are encoded
        as UTF-8.

        Returns:
            The full chunk length. No I/O happens here, so there is no
            short write and no transport error.

        Raises:
            TypeError: If data is not bytes-like or str.
        """
        if isinstance(data, str):
            chunk = data.encode("utf-8")
        elif isinstance(data, (bytes, bytearray, memoryview)):
            chunk = bytes(data)
        else:
            raise TypeError(f"write() expects bytes or str, got {type(data).__name__}")

        self._chunks.append(chunk)
        self._size += len(chunk)
        return len(chunk)

    @property
    def chunks(self) -> Tuple[bytes, ...]:
        """Captured chunks in write order, as an immutable snapshot."""
        return tuple(self._chunks)

    @property
    def buffered_size(self) -> int:
        """Total captured body bytes."""
        return self._size

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    def __repr__(self) -> str:
        return f"BufferedResponse(chunks={len(self._chunks)}, bytes={self._size})"
