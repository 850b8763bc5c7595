from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from makemyday.errors import ImportFormatError
from makemyday.models import Event, utcnow

EXPORT_VERSION = "1.0"


def export_events(events: List[Event], now: Optional[datetime] = None) -> dict:
    """Build the versioned export document carrying every event field."""
    now = now or utcnow()
    return {
        "version": EXPORT_VERSION,
        "exportDate": now.isoformat(),
        "events": [e.to_json_dict() for e in events],
    }


def export_filename(now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return f"makemyday-{now.strftime('%Y-%m-%d')}.json"


def _unwrap(data: Any) -> list:
    # versioned document, or the legacy bare array
    if isinstance(data, dict) and data.get("version") and "events" in data:
        events = data["events"]
    elif isinstance(data, list):
        events = data
    else:
        raise ValueError("invalid JSON format")
    if not isinstance(events, list):
        raise ValueError("invalid JSON format: events must be an array")
    return events


def import_events(content: Union[str, bytes]) -> List[Event]:
    """Parse an export document (or legacy array) into normalized events.

    All-or-nothing: one invalid entry rejects the whole import.
    """
    try:
        data = json.loads(content)
        raw_events = _unwrap(data)
        events: List[Event] = []
        for raw in raw_events:
            if not isinstance(raw, dict) or not raw.get("id") or not raw.get("title"):
                raise ValueError("invalid event data: missing required field id or title")
            events.append(Event.model_validate(raw))
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        raise ImportFormatError(f"Failed to parse JSON: {e}") from e
    return events
