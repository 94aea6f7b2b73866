"""JSON encodings for queue items and checkpoint positions.

Queue item:  ``{"before": {...}|null, "after": {...}|null, "source": {"table": str}}``
Checkpoint:  ``{"name": str, "pos": uint32}``
"""

from __future__ import annotations

import json
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from binlog_relay.pipeline.normalizer import ChangeRecord
from binlog_relay.sources.base import MAX_OFFSET, Position


class CodecError(ValueError):
    """Raised when a queue item or checkpoint cannot be decoded."""


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, timedelta):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


def encode_record(record: ChangeRecord) -> str:
    """Encode a change record as a queue item."""
    return json.dumps(record.to_payload(), default=_json_default)


def decode_item(data: str | bytes) -> dict[str, Any]:
    """Decode a queue item into its payload dict."""
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        msg = f"Queue item is not valid JSON: {exc}"
        raise CodecError(msg) from exc
    if not isinstance(payload, dict):
        msg = f"Queue item must be a JSON object, got {type(payload).__name__}"
        raise CodecError(msg)
    return payload


def table_of(payload: dict[str, Any]) -> str | None:
    """Return ``source.table`` from a decoded queue item, if well-formed."""
    source = payload.get("source")
    if not isinstance(source, dict):
        return None
    table = source.get("table")
    return table if isinstance(table, str) and table else None


def encode_position(position: Position) -> str:
    return json.dumps({"name": position.log_name, "pos": position.offset})


def decode_position(data: str | bytes) -> Position:
    """Decode a checkpoint, validating field types and the uint32 range."""
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        msg = f"Checkpoint is not valid JSON: {exc}"
        raise CodecError(msg) from exc
    if not isinstance(raw, dict):
        msg = "Checkpoint must be a JSON object"
        raise CodecError(msg)
    name = raw.get("name")
    pos = raw.get("pos")
    if not isinstance(name, str):
        msg = "Checkpoint 'name' must be a string"
        raise CodecError(msg)
    if not isinstance(pos, int) or isinstance(pos, bool) or not 0 <= pos <= MAX_OFFSET:
        msg = f"Checkpoint 'pos' must be an unsigned 32-bit integer, got {pos!r}"
        raise CodecError(msg)
    return Position(log_name=name, offset=pos)
