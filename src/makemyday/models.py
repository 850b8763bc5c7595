from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Priority(str, Enum):
    URGENT_IMPORTANT = "urgent-important"
    URGENT_NOT_IMPORTANT = "urgent-not-important"
    NOT_URGENT_IMPORTANT = "not-urgent-important"
    NOT_URGENT_NOT_IMPORTANT = "not-urgent-not-important"


DEFAULT_PRIORITY = Priority.NOT_URGENT_NOT_IMPORTANT

# Display order of the quadrant grid: left-to-right, top-to-bottom.
QUADRANT_ORDER: Tuple[Priority, ...] = (
    Priority.URGENT_IMPORTANT,
    Priority.NOT_URGENT_IMPORTANT,
    Priority.URGENT_NOT_IMPORTANT,
    Priority.NOT_URGENT_NOT_IMPORTANT,
)


def normalize_priority(value: Any) -> Priority:
    """Map any incoming value onto one of the four quadrant tags."""
    if isinstance(value, Priority):
        return value
    if isinstance(value, str):
        try:
            return Priority(value.strip())
        except ValueError:
            pass
    return DEFAULT_PRIORITY


class EventType(str, Enum):
    ONE_TIME = "one-time"
    RECURRING = "recurring"


def normalize_event_type(value: Any) -> EventType:
    if isinstance(value, EventType):
        return value
    if isinstance(value, str):
        try:
            return EventType(value.strip())
        except ValueError:
            pass
    return EventType.ONE_TIME


class _Model(BaseModel):
    # camelCase on the wire (storage, export), snake_case in Python
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class CompletionRecord(_Model):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    timestamp: datetime = Field(default_factory=utcnow)
    note: str = ""

    @field_validator("note", mode="before")
    @classmethod
    def note_or_empty(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()


class Event(_Model):
    id: int
    title: str = Field(..., min_length=1)
    priority: Priority = DEFAULT_PRIORITY
    suggestion: str = ""
    detail: str = ""

    completed: bool = False
    completed_at: Optional[datetime] = None
    event_type: EventType = EventType.ONE_TIME
    completion_history: List[CompletionRecord] = Field(default_factory=list)
    is_expanded: bool = True
    created_at: datetime = Field(default_factory=utcnow)

    # present only on events mirrored from a goal's subtask
    goal_id: Optional[int] = None
    subtask_id: Optional[int] = None
    goal_title: Optional[str] = None
    is_from_goal: bool = False

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("title must not be blank")
        return v2

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, v: Any) -> Priority:
        return normalize_priority(v)

    @field_validator("event_type", mode="before")
    @classmethod
    def _event_type(cls, v: Any) -> EventType:
        return normalize_event_type(v)

    @field_validator("suggestion", "detail", mode="before")
    @classmethod
    def _text_or_empty(cls, v: Any) -> str:
        return "" if v is None else v

    @field_validator("is_expanded", mode="before")
    @classmethod
    def _expanded_default(cls, v: Any) -> bool:
        # only an explicit false collapses a card
        return v is not False

    @field_validator("completion_history", mode="before")
    @classmethod
    def _history_list(cls, v: Any) -> list:
        return v if isinstance(v, list) else []

    @model_validator(mode="after")
    def _recurring_never_completed(self) -> "Event":
        # recurring events log completions instead; bypasses assignment validation
        if self.event_type == EventType.RECURRING and (self.completed or self.completed_at is not None):
            object.__setattr__(self, "completed", False)
            object.__setattr__(self, "completed_at", None)
        return self

    @property
    def is_recurring(self) -> bool:
        return self.event_type == EventType.RECURRING

    @property
    def is_goal_linked(self) -> bool:
        return self.is_from_goal and self.goal_id is not None and self.subtask_id is not None


class Subtask(_Model):
    id: int
    title: str = Field(..., min_length=1)
    suggestion: str = ""
    estimated_time: str = ""
    priority: Priority = DEFAULT_PRIORITY
    completed: bool = False
    projected: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("title must not be blank")
        return v2

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, v: Any) -> Priority:
        return normalize_priority(v)

    @field_validator("suggestion", "estimated_time", mode="before")
    @classmethod
    def _text_or_empty(cls, v: Any) -> str:
        return "" if v is None else v


class Goal(_Model):
    id: int
    title: str = Field(..., min_length=1)
    description: str = ""
    deadline: str = ""
    expanded: bool = True
    subtasks: List[Subtask] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("title must not be blank")
        return v2

    @field_validator("description", "deadline", mode="before")
    @classmethod
    def _text_or_empty(cls, v: Any) -> str:
        return "" if v is None else v

    def get_subtask(self, subtask_id: int) -> Optional[Subtask]:
        for subtask in self.subtasks:
            if subtask.id == subtask_id:
                return subtask
        return None

    def progress(self) -> Tuple[int, int, int]:
        """Return (completed, total, percent)."""
        total = len(self.subtasks)
        done = sum(1 for s in self.subtasks if s.completed)
        percent = int(done * 100 / total + 0.5) if total else 0
        return done, total, percent

    def projected_count(self) -> int:
        return sum(1 for s in self.subtasks if s.projected)


class LLMConfig(_Model):
    api_key: str = ""
    base_url: str = "https://api.siliconflow.cn/v1"
    model: str = "deepseek-ai/DeepSeek-V2.5"
    transcription_model: str = "FunAudioLLM/SenseVoiceSmall"
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(2000, gt=0)

    @field_validator("api_key", "base_url", "model", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class UISettings(_Model):
    show_completed: bool = True
    view_mode: Literal["list", "quadrant"] = "quadrant"


class BackgroundSettings(_Model):
    type: Literal["color", "image"] = "color"
    # CSS colour or a data: URL for an uploaded image
    value: str = "#f5f3ff"
    container_opacity: int = Field(50, ge=0, le=100)


TIME_UNITS = {
    "hour": "小时",
    "day": "天",
    "week": "周",
    "month": "月",
    "year": "年",
}

_UNIT_ALIASES = {
    "小时": "hour",
    "天": "day",
    "周": "week",
    "月": "month",
    "年": "year",
}

_ESTIMATE_RE = re.compile(
    r"^(\d+(?:\.\d+)?)\s*(小时|天|周|月|年|hour|day|week|month|year)s?$",
    re.IGNORECASE,
)


def parse_estimated_time(text: Optional[str]) -> Tuple[str, str]:
    """Split an estimate like "3天" or "2 hours" into (value, unit)."""
    if not text:
        return "", "hour"
    m = _ESTIMATE_RE.match(text.strip())
    if not m:
        return "", "hour"
    unit = m.group(2).lower()
    return m.group(1), _UNIT_ALIASES.get(unit, unit)


def format_estimated_time(value: str, unit: str) -> str:
    if not value:
        return ""
    return f"{value}{TIME_UNITS.get(unit, TIME_UNITS['hour'])}"
