"""
=============================================================================
APPLICATION CONFIGURATION
=============================================================================

Everything an ``Application`` needs to know, passed in explicitly.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION SOURCES                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Command-line arguments     python -m hserver --port 3000       │
    │   2. Environment variables      HTTP_PORT=3000 python -m hserver    │
    │   3. Defaults in this dataclass                                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Validated eagerly when the application is created, so a bad port fails
at startup rather than on the first request.

=============================================================================
"""

import os
from dataclasses import asdict, dataclass
from typing import Optional

SERVER_NAME = "hserver/1.0"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class AppConfig:
    """
    Configuration for an ``Application`` and its transport.

    APPLICATION
    - proxy: trust X-Forwarded-Host / -Proto / -For
    - env: "development", "production", ...

    NETWORK
    - host, port, backlog, timeout

    HTTP
    - keep_alive, keep_alive_timeout, max_request_size, server_name

    LOGGING
    - log_level
    """

    # ─────────────────────────────────────────────────────────────────────
    # APPLICATION
    # ─────────────────────────────────────────────────────────────────────

    proxy: bool = False
    """
    Trust proxy headers. Only enable behind a reverse proxy that sets
    (and strips client-supplied) X-Forwarded-* headers.
    """

    env: str = "development"

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    port: int = 8080
    """0 lets the OS pick a free port (handy in tests)."""

    backlog: int = 128

    timeout: Optional[float] = 30.0
    """Seconds to wait for the first request on a connection."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    server_name: str = SERVER_NAME

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Build a configuration from environment variables.

            HSERVER_ENV     Application environment (default: development)
            HSERVER_PROXY   Trust proxy headers: 1/true/yes/on
            HTTP_HOST       Bind address (default: 127.0.0.1)
            HTTP_PORT       Port (default: 8080)
            HTTP_TIMEOUT    First-request timeout in seconds (default: 30)
            HTTP_LOG_LEVEL  Logging level (default: INFO)
        """
        return cls(
            env=os.getenv("HSERVER_ENV", "development"),
            proxy=os.getenv("HSERVER_PROXY", "").strip().lower() in _TRUTHY,
            host=os.getenv("HTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """Raise ValueError on values the server cannot run with."""
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")

        if self.max_request_size < 1024:
            raise ValueError("max_request_size must be >= 1024")

        if not self.env:
            raise ValueError("env must not be empty")

    def to_dict(self) -> dict:
        return asdict(self)
