"""Outbound webhook payload construction and serialization."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from eventhook.core.bus import Event


def format_rfc3339(dt: datetime) -> str:
    """Format dt as RFC 3339 with second precision.

    Naive datetimes are taken as UTC. A zero offset is written as 'Z'.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    text = dt.isoformat(timespec="seconds")
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def build_payload(event: Event, sent_at: datetime | None = None) -> dict[str, Any]:
    """Build the JSON envelope for one event.

    `timestamp` is the dispatch wall-clock time in UTC, independent of the
    event's own time. `data` is left out entirely when the event has none.
    """
    if sent_at is None:
        sent_at = datetime.now(timezone.utc)

    payload: dict[str, Any] = {
        "event": event.name,
        "eventTimestamp": format_rfc3339(event.timestamp),
        "timestamp": format_rfc3339(sent_at.astimezone(timezone.utc)),
    }
    if event.data is not None:
        payload["data"] = event.data
    return payload


def encode_payload(payload: dict[str, Any]) -> bytes:
    """Serialize to compact, key-sorted UTF-8 JSON.

    Raises TypeError for values JSON cannot represent and ValueError for
    NaN or infinite floats.
    """
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")
