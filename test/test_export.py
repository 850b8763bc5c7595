import json
from datetime import datetime, timezone

import pytest

from makemyday.errors import ImportFormatError
from makemyday.models import CompletionRecord, Event
from storage.export import EXPORT_VERSION, export_events, export_filename, import_events


def test_export_document_shape():
    events = [
        Event(id=1, title="Gym", event_type="recurring", completion_history=[CompletionRecord(note="done")]),
        Event(id=2, title="Tax", detail="forms"),
    ]
    doc = export_events(events, now=datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc))
    assert doc["version"] == EXPORT_VERSION
    assert doc["exportDate"].startswith("2026-03-04T12:00")
    assert doc["events"][0]["completionHistory"][0]["note"] == "done"
    assert doc["events"][1]["detail"] == "forms"


def test_export_filename():
    assert export_filename(datetime(2026, 3, 4)) == "makemyday-2026-03-04.json"


def test_import_accepts_exported_document():
    doc = export_events([Event(id=1, title="Gym", event_type="recurring")])
    events = import_events(json.dumps(doc))
    assert len(events) == 1 and events[0].is_recurring


def test_import_accepts_bare_array_and_normalizes():
    events = import_events('[{"id": 7, "title": "Old", "priority": "???"}]')
    assert events[0].priority.value == "not-urgent-not-important"
    assert events[0].is_expanded is True


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        '{"events": []}',
        '{"version": "1.0", "events": {}}',
        '[{"id": 1, "title": "ok"}, {"title": "no id"}]',
        '[{"id": 1, "title": ""}]',
    ],
)
def test_import_rejects_invalid_content(content):
    with pytest.raises(ImportFormatError) as exc:
        import_events(content)
    assert str(exc.value).startswith("Failed to parse JSON")


def test_import_clears_completion_on_recurring_events():
    events = import_events(
        '[{"id": 3, "title": "Walk", "eventType": "recurring", "completed": true, "completedAt": "2026-01-01T08:00:00Z"}]'
    )
    assert events[0].is_recurring
    assert not events[0].completed and events[0].completed_at is None
