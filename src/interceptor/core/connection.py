"""
=============================================================================
CLIENT CONNECTIONS
=============================================================================

Two halves of one accepted socket:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ Connection                   bytes in, bytes out                     │
    │   read_request()             buffered recv() until a full request    │
    │   sendall()                  raises OSError when the peer is gone    │
    │   close()                    FIN, drain, release the descriptor      │
    │                                                                      │
    │ ConnectionResponseWriter     the real sink for one request           │
    │   set_status() / write()     commit status line + headers once       │
    │   write()                    frame and send body bytes               │
    │   finish()                   terminate the body                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BODY FRAMING
=============================================================================

Headers leave the process at commit, before the pipeline has flushed a
single body byte, so the writer cannot count the body first. It picks a
framing at commit time:

    handler set Content-Length        → sent as-is, body written raw
    HTTP/1.1, no Content-Length       → Transfer-Encoding: chunked
    HTTP/1.0, no Content-Length       → Connection: close, body until EOF
    status 1xx / 204 / 304, HEAD      → no body at all

    Chunked body on the wire for writes b"hello" and b" buddy":

        5\r\n hello \r\n 6\r\n  buddy \r\n 0\r\n \r\n
        └─ write 1 ─┘    └── write 2 ──┘   └ finish ┘

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple
import logging
import socket
import time
import uuid

from ..http.status_codes import body_allowed, reason_phrase
from ..http.writer import ResponseWriter, format_http_date


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client socket with buffered request reading.

    Attributes:
        socket: The accepted client socket.
        address: Peer (ip, port).
        id: Short identifier used in log lines.
        requests_handled: Requests read so far on this connection.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request (headers plus Content-Length body).

        Bytes past the end of the request stay buffered for the next call,
        so pipelined requests on a keep-alive connection are not lost.

        Returns:
            The request bytes, or None if the client closed the connection
            or went idle past keep_alive_timeout between requests.

        Raises:
            TimeoutError: If the first request does not arrive in time.
            ValueError: If the request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._append(chunk)

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break
                self._append(chunk)

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.state = ConnectionState.PROCESSING
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _append(self, chunk: bytes) -> None:
        self._buffer += chunk
        if len(self._buffer) > self.max_request_size:
            raise ValueError(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""
        self.last_activity = time.time()
        return data

    @staticmethod
    def _parse_content_length(headers: bytes) -> int:
        """Content-Length from raw header bytes; 0 if absent or malformed."""
        for line in headers.decode("latin-1").lower().split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(0, int(line.split(":", 1)[1].strip()))
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def sendall(self, data: bytes) -> int:
        """
        Send every byte of data.

        Returns:
            len(data)

        Raises:
            OSError: If the peer disconnected or the socket failed.
        """
        self.state = ConnectionState.WRITING
        self.socket.sendall(data)
        self.last_activity = time.time()
        return len(data)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def set_keep_alive(self) -> None:
        self.state = ConnectionState.KEEP_ALIVE

    def close(self) -> None:
        """Shut down writing, drain what the client still sends, close."""
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class ConnectionResponseWriter(ResponseWriter):
    """
    ResponseWriter that streams one response onto a Connection.

    Args:
        connection: Where bytes go.
        version: The request's HTTP version; picks the framing.
        keep_alive: Whether the client asked to keep the connection.
        head: True for HEAD requests (headers only).
        server_name: Value of the Server header.
    """

    def __init__(
        self,
        connection: Connection,
        version: str = "HTTP/1.1",
        keep_alive: bool = True,
        head: bool = False,
        server_name: str = "interceptor",
    ):
        super().__init__()
        self.connection = connection
        self.version = version if version in ("HTTP/1.0", "HTTP/1.1") else "HTTP/1.1"
        self.keep_alive = keep_alive
        self.head = head
        self.server_name = server_name

        self.bytes_sent = 0
        self._chunked = False
        self._has_body = True
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def abort(self) -> None:
        super().abort()
        self.keep_alive = False

    def _commit(self) -> None:
        headers = self._headers
        self._has_body = body_allowed(self._status) and not self.head

        headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        headers.setdefault("Server", self.server_name)

        if not body_allowed(self._status):
            headers.remove("Content-Length")
            headers.remove("Transfer-Encoding")
        elif "Content-Length" in headers:
            headers.remove("Transfer-Encoding")
        elif self.version == "HTTP/1.1":
            headers.set("Transfer-Encoding", "chunked")
            self._chunked = True
        else:
            self.keep_alive = False

        if not self.keep_alive:
            headers.set("Connection", "close")
        elif self.version == "HTTP/1.0":
            headers.set("Connection", "keep-alive")

        lines = [f"{self.version} {self._status} {reason_phrase(self._status)}"]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        head = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")

        self.connection.sendall(head)

    def _write_body(self, data: bytes) -> int:
        if self._finished:
            raise OSError("write after response finished")
        if not self._has_body or not data:
            return len(data)

        if self._chunked:
            self.connection.sendall(f"{len(data):x}\r\n".encode("ascii") + data + b"\r\n")
        else:
            self.connection.sendall(data)

        self.bytes_sent += len(data)
        return len(data)

    def finish(self) -> None:
        """
        Complete the response.

        Commits an empty 200 (Content-Length: 0) if nothing was written,
        and sends the terminating chunk for chunked bodies. An aborted
        response gets neither, so a truncated body is never framed as
        complete.

        Raises:
            OSError: If the final bytes cannot be sent.
        """
        if self._finished:
            return
        if self._aborted:
            self._finished = True
            return

        if not self._committed:
            self._headers.setdefault("Content-Length", "0")
            self.set_status(self._status)

        if self._chunked and self._has_body:
            self.connection.sendall(b"0\r\n\r\n")

        self._finished = True
