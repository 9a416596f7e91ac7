"""Connection settings resolved once per client."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from urllib.parse import unquote, urlparse

DEFAULT_PORTS = {"http": 5984, "https": 6984}


@dataclass(frozen=True)
class ConnectionContext:
    """Immutable description of where the database lives and how to reach it."""

    db_name: str
    host: str = "localhost"
    port: int | None = None
    scheme: str = "http"
    path: str | None = None
    username: str | None = None
    password: str | None = None
    read_timeout: float = 60.0
    connect_timeout: float = 10.0
    max_connections: int = 100

    def __post_init__(self) -> None:
        if self.scheme not in DEFAULT_PORTS:
            raise ValueError(f"Unsupported scheme: {self.scheme}")
        if not self.host:
            raise ValueError("host must not be empty")
        if not self.db_name:
            raise ValueError("db_name must not be empty")
        if self.port is None:
            object.__setattr__(self, "port", DEFAULT_PORTS[self.scheme])

    @property
    def base_url(self) -> str:
        """Scheme, host, port and optional base path, without a trailing slash."""
        url = f"{self.scheme}://{self.host}:{self.port}"
        if self.path:
            url = f"{url}/{self.path.strip('/')}"
        return url

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def with_database(self, db_name: str) -> "ConnectionContext":
        return replace(self, db_name=db_name)

    @classmethod
    def from_url(cls, url: str, db_name: str, **overrides: object) -> "ConnectionContext":
        if "://" not in url:
            url = f"http://{url}"
        parsed = urlparse(url)
        scheme = parsed.scheme or "http"
        values: dict[str, object] = {
            "db_name": db_name,
            "scheme": scheme,
            "host": parsed.hostname or "localhost",
            "port": parsed.port,
            "path": parsed.path.strip("/") or None,
            "username": unquote(parsed.username) if parsed.username else None,
            "password": unquote(parsed.password) if parsed.password else None,
        }
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]

    @classmethod
    def from_env(cls, prefix: str = "COUCHLIGHT_") -> "ConnectionContext":
        url = os.getenv(f"{prefix}URL", "http://localhost:5984")
        db_name = os.getenv(f"{prefix}DB", "")
        overrides: dict[str, object] = {}
        if os.getenv(f"{prefix}USER"):
            overrides["username"] = os.getenv(f"{prefix}USER")
        if os.getenv(f"{prefix}PASSWORD"):
            overrides["password"] = os.getenv(f"{prefix}PASSWORD")
        if os.getenv(f"{prefix}READ_TIMEOUT"):
            overrides["read_timeout"] = float(os.environ[f"{prefix}READ_TIMEOUT"])
        return cls.from_url(url, db_name, **overrides)

    def __repr__(self) -> str:
        # Keep the password out of logs and tracebacks.
        return (
            f"ConnectionContext(base_url={self.base_url!r}, db_name={self.db_name!r}, "
            f"username={self.username!r})"
        )


__all__ = ["ConnectionContext", "DEFAULT_PORTS"]
