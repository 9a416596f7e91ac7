"""Response classification and body decoding shared by every operation."""

from __future__ import annotations

import dataclasses
import enum
import json
from typing import Any, Callable

from .codec import JsonCodec
from .errors import (
    CouchError,
    DecodeError,
    DocumentConflictError,
    DocumentNotFoundError,
    RequestFailedError,
    ResponseError,
)
from .transport.base import TransportResponse

SUCCESS_STATUSES = frozenset({200, 201, 202})

_DEFAULT_CODEC = JsonCodec()


class Outcome(enum.Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FAILURE = "failure"


def classify(response: TransportResponse) -> Outcome:
    status = response.status
    if status in SUCCESS_STATUSES:
        return Outcome.SUCCESS
    if status == 404:
        return Outcome.NOT_FOUND
    if status == 409:
        return Outcome.CONFLICT
    return Outcome.FAILURE


def extract_error_reason(body: str | None) -> str:
    """Return the server's ``reason`` (or ``error``) from a JSON error body."""
    if not body:
        return ""
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        return body.strip()

    if isinstance(parsed, dict):
        for key in ("reason", "error"):
            value = parsed.get(key)
            if value is not None:
                return value if isinstance(value, str) else str(value)
    return body.strip()


def validate(response: TransportResponse) -> None:
    """Return on success; otherwise drain, close and raise the mapped error.

    The message is the status reason phrase followed by the full body text,
    so the server's own explanation is always visible to the caller.
    """
    outcome = classify(response)
    if outcome is Outcome.SUCCESS:
        return

    try:
        body_text = response.text()
    except CouchError:
        body_text = ""
    finally:
        response.close()

    reason = extract_error_reason(body_text) or response.reason
    message = f"{response.reason} {body_text}".strip() or f"HTTP {response.status}"
    error_cls: type[ResponseError]
    if outcome is Outcome.NOT_FOUND:
        error_cls = DocumentNotFoundError
    elif outcome is Outcome.CONFLICT:
        error_cls = DocumentConflictError
    else:
        error_cls = RequestFailedError
    raise error_cls(message, status=response.status, reason=reason, body=body_text)


def convert(value: Any, shape: Any = None) -> Any:
    """Convert a parsed JSON value into ``shape``.

    ``shape`` may be ``None`` (keep the raw value), a builtin JSON type checked
    with ``isinstance``, a class exposing ``from_json``, a dataclass built from
    its known fields, or any other one-argument callable.
    """
    if shape is None:
        return value
    if shape in (dict, list, str, int, float, bool):
        if not isinstance(value, shape):
            raise DecodeError(f"Expected {shape.__name__}, got {type(value).__name__}")
        return value
    from_json: Callable[[Any], Any] | None = getattr(shape, "from_json", None)
    if from_json is not None:
        try:
            return from_json(value)
        except DecodeError:
            raise
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            raise DecodeError(f"Cannot convert response to {shape!r}: {exc}") from exc
    if dataclasses.is_dataclass(shape) and isinstance(shape, type):
        if not isinstance(value, dict):
            raise DecodeError(f"Expected a JSON object for {shape.__name__}, got {type(value).__name__}")
        names = {f.name for f in dataclasses.fields(shape) if f.init}
        try:
            return shape(**{k: v for k, v in value.items() if k in names})
        except TypeError as exc:
            raise DecodeError(f"Cannot build {shape.__name__}: {exc}") from exc
    try:
        return shape(value)
    except (TypeError, ValueError, KeyError) as exc:
        raise DecodeError(f"Cannot convert response to {shape!r}: {exc}") from exc


def decode_as(response: TransportResponse, shape: Any = None, codec: JsonCodec | None = None) -> Any:
    """Validate, read and decode the body; the response is closed on every path."""
    try:
        validate(response)
        parsed = (codec or _DEFAULT_CODEC).decode(response.read())
        return convert(parsed, shape)
    finally:
        response.close()


def as_stream(response: TransportResponse) -> TransportResponse:
    """Validate and hand the still-open response to the caller, who closes it."""
    validate(response)
    return response


def drain(response: TransportResponse) -> None:
    """Validate, discard the body and release the connection."""
    try:
        validate(response)
        response.read()
    finally:
        response.close()


__all__ = [
    "Outcome",
    "SUCCESS_STATUSES",
    "as_stream",
    "classify",
    "convert",
    "decode_as",
    "drain",
    "extract_error_reason",
    "validate",
]
