"""Immutable URI builder for database paths and query strings."""

from __future__ import annotations

from typing import Any, Mapping
from urllib.parse import quote, urlencode

DESIGN_PREFIX = "_design/"


def escape_segment(segment: str) -> str:
    """Percent-escape one path segment, slashes included.

    Design document ids keep their single ``_design/`` separator so that the
    server routes them to the design namespace.
    """
    if segment.startswith(DESIGN_PREFIX):
        return "_design/" + quote(segment[len(DESIGN_PREFIX):], safe="")
    return quote(segment, safe="")


def _render(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class URIBuilder:
    """Builds ``origin/seg1/seg2?name=value`` strings.

    Every method returns a new builder, so a shared base builder can be
    extended by concurrent callers without locking.
    """

    def __init__(
        self,
        origin: str = "",
        segments: tuple[str, ...] = (),
        params: tuple[tuple[str, str], ...] = (),
    ) -> None:
        self._origin = origin.rstrip("/")
        self._segments = segments
        self._params = params

    def path_segment(self, *segments: str) -> "URIBuilder":
        escaped = tuple(escape_segment(str(segment)) for segment in segments)
        return URIBuilder(self._origin, self._segments + escaped, self._params)

    def query(self, name: str, value: Any) -> "URIBuilder":
        if value is None:
            return self
        kept = tuple((key, val) for key, val in self._params if key != name)
        return URIBuilder(self._origin, self._segments, kept + ((name, _render(value)),))

    def query_params(self, params: Mapping[str, Any] | None) -> "URIBuilder":
        builder = self
        for name, value in (params or {}).items():
            builder = builder.query(name, value)
        return builder

    def build(self) -> str:
        uri = self._origin + "/" + "/".join(self._segments)
        if self._params:
            uri = f"{uri}?{urlencode(self._params)}"
        return uri

    def __str__(self) -> str:
        return self.build()


__all__ = ["URIBuilder", "escape_segment"]
