import os

from makemyday.models import LLMConfig
from board.drag_engine import DragReorderEngine
from board.entity_store import EntityStore
from llm.planner_client import PlannerClient
from storage.app_storage import AppStorage
from api import state

# Fallbacks used until a config has been saved through PUT /config
LLM_API_KEY = os.getenv("LLM_API_KEY", "").strip()
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "").strip()
LLM_MODEL = os.getenv("LLM_MODEL", "").strip()


def get_storage() -> AppStorage:
    state.ensure_initialized()
    return state.storage


def get_store() -> EntityStore:
    state.ensure_initialized()
    return state.store


def get_engine() -> DragReorderEngine:
    state.ensure_initialized()
    return state.engine


def current_config(storage: AppStorage) -> LLMConfig:
    saved = storage.load_config()
    if saved is not None:
        return saved
    defaults = {"api_key": LLM_API_KEY}
    if LLM_BASE_URL:
        defaults["base_url"] = LLM_BASE_URL
    if LLM_MODEL:
        defaults["model"] = LLM_MODEL
    return LLMConfig(**defaults)


def get_planner_client() -> PlannerClient:
    state.ensure_initialized()
    return PlannerClient(current_config(state.storage), provider=state.provider_override)
