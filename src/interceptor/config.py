"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Settings for the host server that runs interception pipelines.

Pipelines take no configuration of their own: their behaviour is fixed by
the handler, authorizers and monitors they are built from.

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

    INTERCEPTOR_HOST        bind address             (default 127.0.0.1)
    INTERCEPTOR_PORT        listen port, 0 = any     (default 8080)
    INTERCEPTOR_WORKERS     max worker threads       (default 16)
    INTERCEPTOR_TIMEOUT     socket timeout, seconds  (default 30)
    INTERCEPTOR_LOG_LEVEL   DEBUG/INFO/WARNING/...   (default INFO)
    INTERCEPTOR_LOG_FORMAT  text or json             (default text)

    INTERCEPTOR_PORT=3000 INTERCEPTOR_LOG_LEVEL=DEBUG python -m interceptor

=============================================================================
"""

from dataclasses import dataclass
from typing import Mapping, Optional
import os


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for InterceptServer.

    Development:
        ServerConfig(port=8080, log_level="DEBUG")

    Tests (let the OS pick a port):
        ServerConfig(port=0, min_workers=1, max_workers=4)
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    port: int = 8080
    backlog: int = 128
    buffer_size: int = 8192
    timeout: Optional[float] = 30.0

    # ─────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    # ─────────────────────────────────────────────────────────────────────
    # WORKERS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING AND IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    server_name: str = "interceptor/1.0"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Build a configuration from INTERCEPTOR_* environment variables.

        Args:
            environ: Mapping to read instead of os.environ.

        Raises:
            ValueError: If a numeric variable does not parse.
        """
        env = os.environ if environ is None else environ
        max_workers = int(env.get("INTERCEPTOR_WORKERS", "16"))

        return cls(
            host=env.get("INTERCEPTOR_HOST", "127.0.0.1"),
            port=int(env.get("INTERCEPTOR_PORT", "8080")),
            min_workers=min(cls.min_workers, max_workers),
            max_workers=max_workers,
            timeout=float(env.get("INTERCEPTOR_TIMEOUT", "30")),
            log_level=env.get("INTERCEPTOR_LOG_LEVEL", "INFO").upper(),
            log_format=env.get("INTERCEPTOR_LOG_FORMAT", "text").lower(),
        )

    def validate(self) -> None:
        """
        Check every value at startup.

        Raises:
            ValueError: On the first invalid setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")
        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")
        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")
        if self.max_request_size < 1024:
            raise ValueError("max_request_size must be >= 1024")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
