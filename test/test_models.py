import pytest
from pydantic import ValidationError

from makemyday.models import (
    DEFAULT_PRIORITY,
    BackgroundSettings,
    Event,
    EventType,
    Goal,
    LLMConfig,
    Priority,
    Subtask,
    format_estimated_time,
    normalize_priority,
    parse_estimated_time,
)


def test_event_defaults():
    e = Event(id=1, title="Write report")
    assert e.priority == DEFAULT_PRIORITY == Priority.NOT_URGENT_NOT_IMPORTANT
    assert e.event_type == EventType.ONE_TIME
    assert e.completed is False
    assert e.is_expanded is True
    assert e.completion_history == []
    assert not e.is_goal_linked


def test_unknown_priority_falls_back_to_default():
    e = Event(id=1, title="x", priority="super-urgent")
    assert e.priority == Priority.NOT_URGENT_NOT_IMPORTANT
    assert normalize_priority(None) == DEFAULT_PRIORITY
    assert normalize_priority(" urgent-important ") == Priority.URGENT_IMPORTANT


def test_blank_title_rejected():
    with pytest.raises(ValidationError):
        Event(id=1, title="   ")


def test_only_explicit_false_collapses():
    assert Event(id=1, title="x", is_expanded=None).is_expanded is True
    assert Event(id=1, title="x", is_expanded=False).is_expanded is False


def test_event_wire_format_is_camel_case():
    e = Event.model_validate({"id": 5, "title": "Gym", "eventType": "recurring", "isExpanded": False})
    assert e.is_recurring
    data = e.to_json_dict()
    assert data["eventType"] == "recurring"
    assert data["isExpanded"] is False
    assert "completionHistory" in data


def test_goal_progress():
    g = Goal(
        id=1,
        title="Learn piano",
        subtasks=[
            Subtask(id=2, title="Scales", completed=True),
            Subtask(id=3, title="Chords"),
            Subtask(id=4, title="Song", projected=True),
        ],
    )
    assert g.progress() == (1, 3, 33)
    assert g.projected_count() == 1
    assert Goal(id=9, title="Empty").progress() == (0, 0, 0)


def test_llm_config_defaults():
    c = LLMConfig()
    assert not c.is_configured
    assert c.base_url.startswith("https://")
    assert LLMConfig(api_key="  sk-1 ").api_key == "sk-1"


def test_background_opacity_bounds():
    with pytest.raises(ValidationError):
        BackgroundSettings(container_opacity=150)


def test_estimated_time_parsing():
    assert parse_estimated_time("3天") == ("3", "day")
    assert parse_estimated_time("2 hours") == ("2", "hour")
    assert parse_estimated_time("soon") == ("", "hour")
    assert format_estimated_time("1.5", "week") == "1.5周"
    assert format_estimated_time("", "day") == ""


def test_recurring_event_is_never_completed():
    e = Event.model_validate(
        {"id": 1, "title": "Gym", "eventType": "recurring", "completed": True, "completedAt": "2026-01-01T08:00:00Z"}
    )
    assert e.completed is False
    assert e.completed_at is None


def test_turning_completed_event_recurring_clears_completion():
    e = Event(id=1, title="Once", completed=True)
    e.event_type = EventType.RECURRING
    assert e.completed is False and e.completed_at is None
