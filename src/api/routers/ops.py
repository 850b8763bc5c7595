import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from makemyday.errors import StorageError, StorageQuotaExceededError
from makemyday.models import BackgroundSettings, UISettings
from board.entity_store import EntityStore
from storage.app_storage import AppStorage
from storage.export import export_events, export_filename, import_events
from api.dependencies import get_storage, get_store
from api.errors import http_errors, with_storage_warning
from api.metrics import EVENTS_GAUGE

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(
    store: EntityStore = Depends(get_store),
    storage: AppStorage = Depends(get_storage),
) -> dict:
    """Health check endpoint for container orchestration."""
    health = {
        "status": "healthy",
        "events": len(store),
        "goals": len(store.goals()),
    }
    try:
        health["storage_bytes"] = storage.local.used_bytes()
    except OSError as e:
        health["status"] = "degraded"
        health["storage_error"] = str(e)
    if store.persist_error:
        health["status"] = "degraded"
        health["storage_warning"] = store.persist_error
    return health


@router.get("/metrics")
async def metrics(store: EntityStore = Depends(get_store)) -> Response:
    """
    Prometheus scrape endpoint.
    """
    try:
        EVENTS_GAUGE.set(len(store))
    except Exception:
        pass

    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@router.get("/export")
async def export(store: EntityStore = Depends(get_store)) -> Response:
    """Download every event as a versioned JSON document."""
    document = export_events(store.events())
    logger.info(f"Exporting {len(document['events'])} events")
    return Response(
        content=json.dumps(document, ensure_ascii=False, indent=2),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@router.post("/import")
async def import_(request: Request, store: EntityStore = Depends(get_store)) -> dict:
    """Replace all events with the ones in an exported file (raw JSON body)."""
    content = await request.body()
    with http_errors():
        events = import_events(content)
    count = store.replace_events(events)
    logger.info(f"Imported {count} events")
    return with_storage_warning({"imported": count}, store.persist_error)


@router.get("/settings/ui")
async def get_ui_settings(storage: AppStorage = Depends(get_storage)) -> dict:
    return storage.load_ui_settings().to_json_dict()


@router.put("/settings/ui")
async def save_ui_settings(payload: UISettings, storage: AppStorage = Depends(get_storage)) -> dict:
    with http_errors():
        storage.save_ui_settings(payload)
    return payload.to_json_dict()


@router.get("/settings/background")
async def get_background(storage: AppStorage = Depends(get_storage)) -> dict:
    return storage.load_background().to_json_dict()


@router.put("/settings/background")
async def save_background(payload: BackgroundSettings, storage: AppStorage = Depends(get_storage)) -> dict:
    try:
        storage.save_background(payload)
    except StorageQuotaExceededError as e:
        logger.warning(f"Background rejected: {e}")
        raise HTTPException(
            status_code=507,
            detail="Storage quota exceeded: the background image is too large, choose a smaller one",
        ) from e
    except StorageError as e:
        logger.error(f"Failed to save background: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e
    return payload.to_json_dict()


@router.get("/storage/warning")
async def storage_warning(storage: AppStorage = Depends(get_storage)) -> dict:
    """Whether to show the "data lives on this machine" notice; once per session."""
    show = not storage.check_storage_warning()
    if show:
        storage.set_storage_warning()
    return {"show": show}
