"""
=============================================================================
INTERCEPTION PIPELINE
=============================================================================

Runs authorization and response observation around a resource handler, so
the handler itself never has to implement either.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    ONE REQUEST THROUGH THE PIPELINE                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   request ──► ┌────────┐   ┌────────┐                                │
    │               │ auth A │──►│ auth B │──► deny? ──► http_error()      │
    │               └────────┘   └────────┘      │        (DENIED)         │
    │                                            │ allow                   │
    │                                            ▼                         │
    │                                     ┌────────────┐                   │
    │                                     │  handler   │ writes ► chunks   │
    │                                     └─────┬──────┘                   │
    │                                           ▼                          │
    │                           ┌───────────┐  ┌───────────┐               │
    │                           │ monitor 1 │─►│ monitor 2 │  read chunks  │
    │                           └───────────┘  └─────┬─────┘               │
    │                                                ▼                     │
    │                                   flush chunks ► real sink (DONE)    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Unlike an onion-style middleware stack, nothing wraps anything here. Each
stage is a flat, ordered list of callbacks:

    Authorizer       (writer, request)          -> AuthOutcome | None
    ResourceHandler  (writer, request)          -> None
    ResponseMonitor  (writer, request, chunks)  -> None

=============================================================================
STATES
=============================================================================

    IDLE ─► AUTHORIZING ─┬─► DENIED                                (end)
                         └─► HANDLING ─► MONITORING ─► FLUSHING ─► DONE

handle() returns the terminal state reached for the request.

=============================================================================
SHARING RULES
=============================================================================

One pipeline serves many requests, possibly on many threads at once:

    Shared, read-only while serving     Per request, never shared
    ───────────────────────────────     ─────────────────────────
    handler                             BufferedResponse (chunks)
    authorizers tuple                   the real sink
    monitors tuple                      the request

Register authorizers and monitors BEFORE traffic starts. Registering while
requests are in flight is unsupported. Each registration swaps in a new
tuple, so a request that already started keeps the chain it began with,
but the pipeline makes no further promise.

=============================================================================
"""

from enum import Enum
from typing import Callable, Iterable, Optional, Tuple
import logging

from ..http.request import HTTPRequest
from ..http.writer import ResponseWriter, http_error
from .capture import BufferedResponse, InterceptWriter
from .outcome import AuthOutcome


logger = logging.getLogger(__name__)


ResourceHandler = Callable[[InterceptWriter, HTTPRequest], None]
Authorizer = Callable[[InterceptWriter, HTTPRequest], Optional[AuthOutcome]]
ResponseMonitor = Callable[[InterceptWriter, HTTPRequest, Tuple[bytes, ...]], None]


class PipelineStage(Enum):
    """Where a single request is in the pipeline."""

    IDLE = "idle"
    AUTHORIZING = "authorizing"
    DENIED = "denied"
    HANDLING = "handling"
    MONITORING = "monitoring"
    FLUSHING = "flushing"
    DONE = "done"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineStage.DENIED, PipelineStage.DONE)


def _callback_name(fn: Callable) -> str:
    return getattr(fn, "__qualname__", None) or type(fn).__name__


class InterceptPipeline:
    """
    A resource handler plus its authorizer and monitor chains.

    Usage:
        def update(w, request):
            w.add_header("ETag", "a1")
            w.write(b"updated successfully")

        pipeline = (
            InterceptPipeline(update)
            .add_authorizer(RateLimitAuthorizer(requests_per_second=5))
            .add_authorizer(require_cookie("S"))
            .add_monitor(AccessLogMonitor())
        )

        stage = pipeline.handle(ResponseRecorder(), request)

    Args:
        handler: The resource handler. Fixed for the pipeline's lifetime.
        authorizers: Initial authorizers, run in this order.
        monitors: Initial monitors, run in this order.
        logger: Logger for denials and flush failures. Defaults to this
                module's logger.

    Raises:
        TypeError: If handler or any callback is not callable.
    """

    def __init__(
        self,
        handler: ResourceHandler,
        authorizers: Iterable[Authorizer] = (),
        monitors: Iterable[ResponseMonitor] = (),
        logger: Optional[logging.Logger] = None,
    ):
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {type(handler).__name__}")

        self._handler = handler
        self._authorizers: Tuple[Authorizer, ...] = ()
        self._monitors: Tuple[ResponseMonitor, ...] = ()
        self._logger = logger or logging.getLogger(__name__)

        for authorizer in authorizers:
            self.add_authorizer(authorizer)
        for monitor in monitors:
            self.add_monitor(monitor)

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    @property
    def handler(self) -> ResourceHandler:
        return self._handler

    @property
    def authorizers(self) -> Tuple[Authorizer, ...]:
        """Authorizers in registration order."""
        return self._authorizers

    @property
    def monitors(self) -> Tuple[ResponseMonitor, ...]:
        """Monitors in registration order."""
        return self._monitors

    def add_authorizer(self, authorizer: Authorizer) -> "InterceptPipeline":
        """
        Append an authorizer to the end of the chain.

        Order matters: put cheap checks (rate limits) before expensive
        ones (identity lookups).

        Returns:
            Self for method chaining
        """
        if not callable(authorizer):
            raise TypeError(f"authorizer must be callable, got {type(authorizer).__name__}")
        self._authorizers = self._authorizers + (authorizer,)
        self._logger.debug(f"Added authorizer: {_callback_name(authorizer)}")
        return self

    def add_monitor(self, monitor: ResponseMonitor) -> "InterceptPipeline":
        """
        Append a monitor to the end of the chain.

        Returns:
            Self for method chaining
        """
        if not callable(monitor):
            raise TypeError(f"monitor must be callable, got {type(monitor).__name__}")
        self._monitors = self._monitors + (monitor,)
        self._logger.debug(f"Added monitor: {_callback_name(monitor)}")
        return self

    # =========================================================================
    # REQUEST ENTRY
    # =========================================================================

    def handle(self, writer: ResponseWriter, request: HTTPRequest) -> PipelineStage:
        """
        Process one request.

        Steps:
            1. Wrap the real sink in a fresh BufferedResponse
            2. Run authorizers in order; the first denial writes an error
               response and ends the request
            3. Run the handler
            4. Run every monitor with the captured chunks
            5. Flush the chunks to the real sink, stopping at the first
               failed write

        Exceptions raised by callbacks are not caught.

        Args:
            writer: The real sink, owned by this request.
            request: Passed unmodified to every callback.

        Returns:
            PipelineStage.DENIED or PipelineStage.DONE
        """
        capture = BufferedResponse(writer)

        # Snapshot both chains so this request sees one consistent view
        authorizers = self._authorizers
        monitors = self._monitors

        self._enter(PipelineStage.AUTHORIZING, request)
        for authorizer in authorizers:
            outcome = authorizer(capture, request)
            if outcome is None or outcome.allowed:
                continue

            self._logger.info(
                f"authorizer denied request: {request.method} {request.path} "
                f"by {_callback_name(authorizer)} -> {outcome.status} ({outcome.error!r})"
            )
            http_error(writer, outcome.reason, outcome.status)
            self._enter(PipelineStage.DENIED, request)
            return PipelineStage.DENIED

        self._enter(PipelineStage.HANDLING, request)
        self._handler(capture, request)

        self._enter(PipelineStage.MONITORING, request)
        chunks = capture.chunks
        for monitor in monitors:
            monitor(capture, request, chunks)

        self._enter(PipelineStage.FLUSHING, request)
        self._flush(writer, chunks, request)

        self._enter(PipelineStage.DONE, request)
        return PipelineStage.DONE

    __call__ = handle

    def _flush(
        self,
        writer: ResponseWriter,
        chunks: Tuple[bytes, ...],
        request: HTTPRequest,
    ) -> None:
        """
        Write captured chunks to the real sink, in order.

        Best effort: on the first failure the remaining chunks are dropped
        and the failure is logged. Bytes already written stay written, so
        the client may see a truncated body. The sink is aborted so the
        transport knows not to finish the body or reuse the connection.
        """
        written = 0
        for index, chunk in enumerate(chunks):
            try:
                n = writer.write(chunk)
            except OSError as e:
                self._logger.warning(
                    f"Flush failed for {request.method} {request.path} at chunk "
                    f"{index + 1}/{len(chunks)} after {written} bytes: {e}"
                )
                writer.abort()
                return

            written += n
            if n < len(chunk):
                self._logger.warning(
                    f"Short write for {request.method} {request.path} at chunk "
                    f"{index + 1}/{len(chunks)}: {n} of {len(chunk)} bytes, "
                    f"{written} bytes written in total"
                )
                writer.abort()
                return

    def _enter(self, stage: PipelineStage, request: HTTPRequest) -> None:
        self._logger.debug(f"{request.method} {request.path}: {stage.value}")

    def __repr__(self) -> str:
        return (
            f"InterceptPipeline(handler={_callback_name(self._handler)}, "
            f"authorizers={len(self._authorizers)}, monitors={len(self._monitors)})"
        )
