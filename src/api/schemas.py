from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _In(BaseModel):
    # the UI sends camelCase; snake_case is accepted as well
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EventIn(_In):
    title: str
    priority: Optional[str] = None
    suggestion: str = ""
    detail: str = ""
    event_type: Optional[str] = None


class EventPatch(_In):
    title: Optional[str] = None
    priority: Optional[str] = None
    suggestion: Optional[str] = None
    detail: Optional[str] = None
    event_type: Optional[str] = None
    is_expanded: Optional[bool] = None
    completed: Optional[bool] = None


class CompleteIn(_In):
    note: str = ""


class EditingIn(_In):
    editing: bool = True


class ReorderIn(_In):
    active_id: int
    over_id: int


class DragIn(_In):
    id: int
    target: Optional[Union[int, str]] = None


class RectIn(_In):
    left: float
    top: float
    width: float = Field(ge=0)
    height: float = Field(ge=0)


class DragGeometryIn(_In):
    id: int
    rect: RectIn
    droppables: Dict[str, RectIn] = Field(default_factory=dict)


class GoalIn(_In):
    title: str
    description: str = ""
    deadline: str = ""


class GoalPatch(_In):
    title: Optional[str] = None
    description: Optional[str] = None
    deadline: Optional[str] = None
    expanded: Optional[bool] = None


class SubtaskIn(_In):
    title: str
    suggestion: str = ""
    estimated_time: str = ""
    priority: Optional[str] = None
    projected: bool = False


class SubtaskPatch(_In):
    title: Optional[str] = None
    suggestion: Optional[str] = None
    estimated_time: Optional[str] = None
    priority: Optional[str] = None
    completed: Optional[bool] = None
    projected: Optional[bool] = None


class GenerateIn(_In):
    stream: bool = True


class PlanIn(_In):
    text: str
    stream: bool = True
    extended: bool = True


class ConfigPatch(_In):
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None
    transcription_model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
