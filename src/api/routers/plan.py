import asyncio
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from makemyday.errors import MakeMyDayError
from makemyday.models import LLMConfig
from board.entity_store import EntityStore
from llm.planner_client import PlannerClient
from storage.app_storage import AppStorage
from api import state
from api.backend import BackendAPI
from api.dependencies import current_config, get_planner_client, get_storage, get_store
from api.errors import http_errors, with_storage_warning
from api.metrics import EVENTS_CREATED_TOTAL, LLM_FAILURES_TOTAL, observe_request
from api.schemas import ConfigPatch, PlanIn

router = APIRouter()
logger = logging.getLogger(__name__)
backend = BackendAPI()


def _mask(api_key: str) -> str:
    if not api_key:
        return ""
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:4]}{'*' * (len(api_key) - 8)}{api_key[-4:]}"


def _merged(config: LLMConfig, patch: Optional[ConfigPatch]) -> LLMConfig:
    if patch is None:
        return config
    changes = patch.model_dump(exclude_unset=True)
    # the masked key from GET /config sent back unchanged
    if config.api_key and changes.get("api_key") == _mask(config.api_key):
        del changes["api_key"]
    return LLMConfig.model_validate({**config.model_dump(), **changes})


def _count_failure(e: Exception) -> None:
    try:
        LLM_FAILURES_TOTAL.labels(reason=type(e).__name__).inc()
    except Exception:
        pass


@router.post("/plan")
async def plan(
    payload: PlanIn,
    store: EntityStore = Depends(get_store),
    client: PlannerClient = Depends(get_planner_client),
) -> dict:
    """Turn free text into events appended to the board."""
    start = time.time()
    logger.info(f"Received plan request: {payload.text[:50]}...")

    with http_errors():
        try:
            drafts = await asyncio.to_thread(
                backend.draft_plan, client, payload.text, payload.stream, payload.extended
            )
        except MakeMyDayError as e:
            logger.error(f"Planning failed: {e}")
            _count_failure(e)
            observe_request("/plan", "error", start)
            raise

    # applied on the event loop so store mutations never interleave
    created = store.add_drafts(drafts)
    logger.info(f"Added {len(created)} planned events")

    try:
        EVENTS_CREATED_TOTAL.labels(source="plan").inc(len(created))
    except Exception:
        pass
    observe_request("/plan", "processed", start)
    return with_storage_warning(
        {"events": [e.to_json_dict() for e in created]},
        store.persist_error,
    )


@router.get("/plan/progress")
async def plan_progress(run_id: Optional[int] = None) -> dict:
    """Text received so far from a stream; the newest running one by default.

    A finished stream keeps its text, so a reply that failed to parse can
    still be read here.
    """
    return state.progress.snapshot(run_id)


@router.post("/transcribe")
async def transcribe(
    request: Request,
    filename: str = "audio.webm",
    client: PlannerClient = Depends(get_planner_client),
) -> dict:
    audio = await request.body()
    if not audio:
        raise HTTPException(status_code=400, detail="No audio received")
    with http_errors():
        try:
            text = await asyncio.to_thread(client.transcribe, audio, filename)
        except MakeMyDayError as e:
            logger.error(f"Transcription failed: {e}")
            _count_failure(e)
            raise
        except NotImplementedError as e:
            raise HTTPException(status_code=501, detail="Provider does not support transcription") from e
    return {"text": text}


@router.get("/config")
async def get_config(storage: AppStorage = Depends(get_storage)) -> dict:
    config = current_config(storage)
    body = config.to_json_dict()
    body["apiKey"] = _mask(config.api_key)
    body["configured"] = config.is_configured
    return body


@router.put("/config")
async def save_config(payload: ConfigPatch, storage: AppStorage = Depends(get_storage)) -> dict:
    with http_errors():
        config = _merged(current_config(storage), payload)
        storage.save_config(config)
    logger.info(f"Saved LLM config (model={config.model}, base_url={config.base_url})")
    body = config.to_json_dict()
    body["apiKey"] = _mask(config.api_key)
    body["configured"] = config.is_configured
    return body


@router.post("/config/test")
async def test_config(
    payload: Optional[ConfigPatch] = None,
    storage: AppStorage = Depends(get_storage),
) -> dict:
    """Send a tiny request with the saved config, or with unsaved form values."""
    with http_errors():
        config = _merged(current_config(storage), payload)
    client = PlannerClient(config, provider=state.provider_override)
    return await asyncio.to_thread(client.test_config)
