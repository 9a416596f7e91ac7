"""Typed results returned by document and feed operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import DecodeError

JsonObject = dict[str, Any]


def _require_object(data: Any, name: str) -> JsonObject:
    if not isinstance(data, dict):
        raise DecodeError(f"Expected a JSON object for {name}, got {type(data).__name__}")
    return data


@dataclass
class WriteResult:
    """Outcome of one document write.

    Mutating calls return one per document; bulk calls return one per input
    item, where ``ok`` is False for items the server rejected.
    """

    id: str | None
    rev: str | None = None
    ok: bool = False
    error: str | None = None
    reason: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> "WriteResult":
        obj = _require_object(data, "write result")
        error = obj.get("error")
        return cls(
            id=obj.get("id"),
            rev=obj.get("rev"),
            ok=obj.get("ok") is True and error is None,
            error=error,
            reason=obj.get("reason"),
        )


@dataclass
class ChangeRow:
    """One row of the changes feed."""

    seq: Any
    id: str
    changes: list[JsonObject] = field(default_factory=list)
    deleted: bool = False
    doc: JsonObject | None = None

    @property
    def revs(self) -> list[str]:
        return [change["rev"] for change in self.changes if "rev" in change]

    @classmethod
    def from_json(cls, data: Any) -> "ChangeRow":
        obj = _require_object(data, "change row")
        if "id" not in obj or "seq" not in obj:
            raise DecodeError("Change row is missing 'id' or 'seq'", context=obj)
        changes = obj.get("changes") or []
        if not isinstance(changes, list):
            raise DecodeError("Change row 'changes' is not an array", context=obj)
        doc = obj.get("doc")
        return cls(
            seq=obj["seq"],
            id=obj["id"],
            changes=changes,
            deleted=bool(obj.get("deleted", False)),
            doc=doc if isinstance(doc, dict) else None,
        )


@dataclass
class ChangesResult:
    """Result of a one-shot (``feed=normal``) changes request."""

    results: list[ChangeRow]
    last_seq: Any = None
    pending: int | None = None

    @classmethod
    def from_json(cls, data: Any) -> "ChangesResult":
        obj = _require_object(data, "changes result")
        rows = obj.get("results")
        if not isinstance(rows, list):
            raise DecodeError("Changes result has no 'results' array", context=obj)
        return cls(
            results=[ChangeRow.from_json(row) for row in rows],
            last_seq=obj.get("last_seq"),
            pending=obj.get("pending"),
        )


__all__ = ["ChangeRow", "ChangesResult", "JsonObject", "WriteResult"]
