from __future__ import annotations

import logging
from typing import Any, Iterable, List, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from makemyday.models import EventType, Priority, normalize_event_type, normalize_priority

logger = logging.getLogger(__name__)


class _Draft(BaseModel):
    # the model answers in camelCase; unknown keys are ignored
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    title: str = ""
    priority: Priority = Priority.NOT_URGENT_NOT_IMPORTANT
    suggestion: str = ""

    @field_validator("title", "suggestion", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else str(v)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, v: Any) -> Priority:
        return normalize_priority(v)


class TaskDraft(_Draft):
    detail: str = ""
    event_type: EventType = EventType.ONE_TIME

    @field_validator("detail", mode="before")
    @classmethod
    def _detail(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("event_type", mode="before")
    @classmethod
    def _event_type(cls, v: Any) -> EventType:
        return normalize_event_type(v)


class SubtaskDraft(_Draft):
    estimated_time: str = ""

    @field_validator("estimated_time", mode="before")
    @classmethod
    def _estimate(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()


D = TypeVar("D", bound=_Draft)


def drafts_from_payload(items: Iterable[Any], model: Type[D]) -> List[D]:
    """Turn parsed array elements into drafts, skipping anything that is not an object."""
    drafts: List[D] = []
    for item in items:
        if not isinstance(item, dict):
            logger.warning(f"Skipping non-object draft: {item!r}")
            continue
        try:
            drafts.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping invalid draft {item!r}: {e}")
    return drafts
