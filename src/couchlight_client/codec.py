"""JSON codec used for request payloads and response bodies."""

from __future__ import annotations

import dataclasses
import json
from typing import Any

from .errors import DecodeError


class JsonCodec:
    """Serializes values to JSON text and parses bodies back.

    Dataclass instances are encoded field by field. Replace the codec on the
    client to plug in custom encoders (dates, decimals and so on).
    """

    def __init__(self, *, sort_keys: bool = False) -> None:
        self._sort_keys = sort_keys

    def encode(self, value: Any) -> str:
        return json.dumps(value, default=self._default, sort_keys=self._sort_keys, separators=(",", ":"))

    def decode(self, data: bytes | str) -> Any:
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        try:
            return json.loads(data)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"Invalid JSON response: {exc}", context=data[:200]) from exc

    def to_object(self, value: Any) -> dict[str, Any]:
        """Encode ``value`` and return it as a JSON object."""
        tree = dict(value) if isinstance(value, dict) else self.decode(self.encode(value))
        if not isinstance(tree, dict):
            raise DecodeError(f"Expected a JSON object, got {type(tree).__name__}")
        return tree

    def _default(self, value: Any) -> Any:
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return {k: v for k, v in dataclasses.asdict(value).items() if v is not None}
        if isinstance(value, (set, frozenset)):
            return sorted(value)
        raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


__all__ = ["JsonCodec"]
