"""
=============================================================================
DISPATCHER CONFIGURATION
=============================================================================

All tunables live in one dataclass:

    config = ServerConfig(port=8080)
    app = Dispatcher(config)

or, for the common case, as keyword overrides:

    app = Dispatcher(port=8080, logger=my_log)

Configuration can also come from the environment (12-factor style):

    HTTP_PORT=3000 HTTP_LOG_LEVEL=DEBUG python examples/echo.py

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Callable, Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the dispatcher and its listener.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, max_header_size

    HTTP SETTINGS
    - keep_alive, server_name

    LOGGING
    - logger, log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "localhost"
    """
    The interface to bind to.
    - "localhost" - Loopback only (development)
    - "0.0.0.0"   - All interfaces (containers, production)
    """

    port: int = 1337
    """
    The TCP port to listen on. 0 lets the OS pick a free port; read it
    back from ``Dispatcher.address`` after start().
    """

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    buffer_size: int = 8192
    """Chunk size in bytes for reading request bodies."""

    max_header_size: int = 64 * 1024
    """
    Maximum size of the request head (request line + headers).
    Larger heads are answered with 431.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """
    Allow several requests per connection. When False every response
    carries "Connection: close".
    """

    server_name: str = "httpdispatch/1.0"
    """Value of the Server response header."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    logger: Optional[Callable[[str], None]] = None
    """
    Callable receiving lifecycle and error lines ("Started httpdispatch.
    Listening on ..."). None prints them to standard output.
    """

    log_level: str = "INFO"
    """Level used by configure_logging() (DEBUG shows per-request lines)."""

    @classmethod
    def from_env(cls, **overrides) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

            HTTP_HOST       Bind host (default: localhost)
            HTTP_PORT       Bind port (default: 1337)
            HTTP_BACKLOG    Listen backlog (default: 128)
            HTTP_LOG_LEVEL  Logging level (default: INFO)

        Keyword overrides win over the environment.

        =====================================================================
        """
        values = dict(
            host=os.getenv("HTTP_HOST", "localhost"),
            port=int(os.getenv("HTTP_PORT", "1337")),
            backlog=int(os.getenv("HTTP_BACKLOG", "128")),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO").upper(),
        )
        values.update(overrides)
        return cls(**values)

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by the Dispatcher constructor, so a bad value fails at
        construction rather than at start().
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")
        if not self.host:
            raise ValueError("host must not be empty")
        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")
        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")
        if self.max_header_size < 1024:
            raise ValueError("max_header_size must be >= 1024")
        if self.logger is not None and not callable(self.logger):
            raise ValueError("logger must be callable")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level: {self.log_level}. Must be one of {', '.join(LOG_LEVELS)}."
            )
