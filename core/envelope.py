# =============================================================================
# core/envelope.py  —  The Uniform Tool-Invocation Envelope
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Every tool in every service follows the same five steps:
#
#     1. VALIDATE   the identifier (empty / nil GUID → fixed message)
#     2. FETCH      zero or more sequential calls to the CRM accessor
#     3. DERIVE     pure computation over what was fetched
#     4. ASSEMBLE   payload → JSON-ready camelCase body, success = true + timestamp
#     5. CATCH-ALL  any exception → success = false + "<prefix>: <message>"
#
#   invoke_tool() runs those steps once, so the tool modules only supply
#   the three pieces that actually differ: the validator, fetch and derive.
#
# THE WIRE CONTRACT:
#   {
#     "success": true | false,
#     ...payload fields (camelCase)  |  "error": "...",
#     "timestamp": "2026-10-18T09:30:00.000Z"
#   }
#
#   A response is ALWAYS valid JSON.  Failures never escape as exceptions —
#   the MCP host sees the same envelope shape whether things worked or not.
# =============================================================================

from __future__ import annotations

import dataclasses
import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional, TypeVar, Union

from core.models import CallContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

NIL_GUID = uuid.UUID(int=0)


class ValidationError(ValueError):
    """An identifier failed validation.  Never leaves the envelope."""


# =============================================================================
# Response variants
# =============================================================================
@dataclass(frozen=True)
class Success:
    payload: Mapping[str, Any]  # JSON-ready, camelCase keys
    timestamp: datetime

    success = True


@dataclass(frozen=True)
class Failure:
    message: str
    timestamp: datetime
    fields: Mapping[str, Any] = field(default_factory=dict)

    success = False


ToolResponse = Union[Success, Failure]


@dataclass(frozen=True)
class ToolSpec:
    """The fixed texts that make one tool's envelope distinct.

    Args:
        name: Tool name as the MCP host sees it (used in log lines).
        validation_message: Returned verbatim when the identifier is invalid.
        error_prefix: Prepended to the underlying error text on failure.
        failure_fields: Extra wire fields every failure of this tool carries.
    """

    name: str
    validation_message: str
    error_prefix: str
    failure_fields: Mapping[str, Any] = field(default_factory=dict)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Identifier validators
# =============================================================================
def require_text(identifier: Optional[str]) -> str:
    """Accept any non-blank string except the nil GUID (company names, opportunity ids)."""
    if identifier is None or not str(identifier).strip():
        raise ValidationError("identifier is empty")
    text = str(identifier)
    try:
        is_nil = uuid.UUID(text.strip()) == NIL_GUID
    except ValueError:
        is_nil = False
    if is_nil:
        raise ValidationError("identifier is the nil GUID")
    return text


def require_guid(identifier: Optional[str]) -> str:
    """Accept a GUID that is not the nil GUID.  Returns the canonical form."""
    text = require_text(identifier)
    try:
        value = uuid.UUID(text.strip())
    except ValueError as exc:
        raise ValidationError(f"'{text}' is not a GUID") from exc
    if value == NIL_GUID:
        raise ValidationError("identifier is the nil GUID")
    return str(value)


# =============================================================================
# invoke_tool — the envelope itself
# =============================================================================
def invoke_tool(
    spec: ToolSpec,
    identifier: Optional[str],
    fetch: Optional[Callable[[str], T]],
    derive: Callable[[str, T], Mapping[str, Any]],
    context: Optional[CallContext] = None,
    validate: Callable[[Optional[str]], str] = require_text,
) -> ToolResponse:
    """Run validate → fetch → derive → assemble, catching every failure.

    Args:
        spec: The tool's fixed texts.
        identifier: The raw identifier from the request.
        fetch: Called with the validated identifier; performs the external
            calls.  None for fully mocked tools.
        derive: Called with the validated identifier and the fetch result;
            returns the payload mapping (snake_case keys).  The Success
            payload holds it already converted to JSON-ready camelCase.
        context: The caller identity, used for log context only.
        validate: Identifier validator; raises ValidationError.

    Returns:
        Success or Failure.  Never raises.
    """
    context = context or CallContext()
    logger.info(
        "Tool invoked: %s | user=%s | user_id=%s | identifier=%s",
        spec.name, context.user_name, context.user_id, identifier,
    )

    try:
        key = validate(identifier)
    except ValidationError as exc:
        logger.warning("Tool %s: invalid identifier %r (%s)", spec.name, identifier, exc)
        return Failure(spec.validation_message, utc_now(), dict(spec.failure_fields))

    try:
        fetched = fetch(key) if fetch is not None else None
        payload = _to_jsonable(derive(key, fetched))
        json.dumps(payload)
    except Exception as exc:
        logger.exception("Tool %s failed for identifier=%s", spec.name, key)
        return Failure(f"{spec.error_prefix}: {exc}", utc_now(), dict(spec.failure_fields))

    logger.info("Tool %s succeeded | user=%s | identifier=%s", spec.name, context.user_name, key)
    return Success(payload, utc_now())


# =============================================================================
# Serialization
# =============================================================================
_CAMEL_BOUNDARY = re.compile(r"_([a-z0-9])")


def to_camel(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(lambda m: m.group(1).upper(), name)


def _isoformat(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def _to_jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {to_camel(str(k)): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, datetime):
        return _isoformat(value)
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def to_wire(response: ToolResponse) -> dict[str, Any]:
    """Build the wire dict: success flag first, timestamp last."""
    wire: dict[str, Any] = {"success": response.success}
    if isinstance(response, Success):
        body = _to_jsonable(response.payload)
    else:
        body = _to_jsonable(response.fields)
        body["error"] = response.message
    body.pop("success", None)
    body.pop("timestamp", None)
    wire.update(body)
    wire["timestamp"] = _isoformat(response.timestamp)
    return wire


def serialize(response: ToolResponse) -> str:
    """Indented, human-readable JSON for the MCP host."""
    return json.dumps(to_wire(response), indent=2, ensure_ascii=False)
