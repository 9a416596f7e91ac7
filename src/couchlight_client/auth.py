"""Authentication utilities for the Python client."""

from __future__ import annotations

import base64
from typing import Mapping

from .logger import BoundLogger


class AuthManager:
    """Adds HTTP Basic credentials to outgoing requests when configured."""

    def __init__(
        self,
        username: str | None,
        password: str | None,
        logger: BoundLogger,
    ) -> None:
        self.username = username
        self.password = password
        self._logger = logger.child("auth")
        self._header_value: str | None = None
        if self.has_credentials:
            self._header_value = self._basic_header()
            self._logger.debug("Using basic authentication for user %s", username)

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def add_http_headers(self, headers: Mapping[str, str] | None = None) -> dict[str, str]:
        merged = dict(headers or {})
        if self._header_value is None:
            return merged
        # An explicit Authorization header from the caller wins.
        if not any(key.lower() == "authorization" for key in merged):
            merged["Authorization"] = self._header_value
        return merged

    def _basic_header(self) -> str:
        raw = f"{self.username}:{self.password}".encode("utf-8")
        return "Basic " + base64.b64encode(raw).decode("ascii")


__all__ = ["AuthManager"]
