from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import ValidationError

from makemyday.errors import StorageError
from makemyday.models import (
    BackgroundSettings,
    Event,
    Goal,
    LLMConfig,
    UISettings,
)
from storage.kv_store import KeyValueStore, MemoryStore

logger = logging.getLogger(__name__)

CONFIG_KEY = "makemyday_config"
EVENTS_KEY = "makemyday_events"
UI_SETTINGS_KEY = "makemyday_ui_settings"
BACKGROUND_KEY = "makemyday_background"
GOALS_KEY = "makemyday_goals"
STORAGE_WARNED_KEY = "makemyday_storage_warned"


class AppStorage:
    """Typed access to the application's keys.

    Loads never raise: a missing or corrupt value yields the default and is
    logged. Saves raise StorageError (or StorageQuotaExceededError) so the
    caller decides how loudly to report the failure.
    """

    def __init__(self, local: KeyValueStore, session: Optional[KeyValueStore] = None):
        self.local = local
        self.session = session if session is not None else MemoryStore()

    def _load(self, key: str, default=None):
        try:
            return self.local.get(key, default)
        except StorageError as e:
            logger.error(f"Failed to load {key}: {e}")
            return default

    # config

    def load_config(self) -> Optional[LLMConfig]:
        data = self._load(CONFIG_KEY)
        if not isinstance(data, dict):
            return None
        try:
            return LLMConfig.model_validate(data)
        except ValidationError as e:
            logger.error(f"Stored config is invalid, ignoring it: {e}")
            return None

    def save_config(self, config: LLMConfig) -> None:
        self.local.set(CONFIG_KEY, config.to_json_dict())

    # events

    def load_events(self) -> List[Event]:
        data = self._load(EVENTS_KEY, [])
        if not isinstance(data, list):
            logger.error(f"Stored events are not a list ({type(data).__name__}), starting empty")
            return []
        events: List[Event] = []
        for raw in data:
            try:
                events.append(Event.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Dropping unreadable stored event: {e}")
        return events

    def save_events(self, events: List[Event]) -> None:
        self.local.set(EVENTS_KEY, [e.to_json_dict() for e in events])

    # goals

    def load_goals(self) -> List[Goal]:
        data = self._load(GOALS_KEY, [])
        if not isinstance(data, list):
            logger.error("Stored goals are not a list, starting empty")
            return []
        goals: List[Goal] = []
        for raw in data:
            try:
                goals.append(Goal.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Dropping unreadable stored goal: {e}")
        return goals

    def save_goals(self, goals: List[Goal]) -> None:
        self.local.set(GOALS_KEY, [g.to_json_dict() for g in goals])

    # ancillary settings

    def load_ui_settings(self) -> UISettings:
        data = self._load(UI_SETTINGS_KEY)
        try:
            return UISettings.model_validate(data) if isinstance(data, dict) else UISettings()
        except ValidationError:
            return UISettings()

    def save_ui_settings(self, settings: UISettings) -> None:
        self.local.set(UI_SETTINGS_KEY, settings.to_json_dict())

    def load_background(self) -> BackgroundSettings:
        data = self._load(BACKGROUND_KEY)
        try:
            return (
                BackgroundSettings.model_validate(data)
                if isinstance(data, dict)
                else BackgroundSettings()
            )
        except ValidationError:
            return BackgroundSettings()

    def save_background(self, settings: BackgroundSettings) -> None:
        self.local.set(BACKGROUND_KEY, settings.to_json_dict())

    # session-scoped "data lives in local storage" warning

    def check_storage_warning(self) -> bool:
        return self.session.get(STORAGE_WARNED_KEY) == "true"

    def set_storage_warning(self) -> None:
        self.session.set(STORAGE_WARNED_KEY, "true")
