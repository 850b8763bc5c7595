import logging
import time

from fastapi import APIRouter, Depends

from board.drag_engine import DragReorderEngine
from board.entity_store import EntityStore
from api.dependencies import get_engine, get_store
from api.errors import http_errors, with_storage_warning
from api.metrics import DRAG_MUTATIONS_TOTAL, EVENTS_CREATED_TOTAL, observe_request
from api.schemas import CompleteIn, EditingIn, EventIn, EventPatch, ReorderIn

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/events")
async def list_events(store: EntityStore = Depends(get_store)) -> dict:
    """All events in their global order."""
    return {"events": [e.to_json_dict() for e in store.events()]}


@router.get("/board")
async def get_board(engine: DragReorderEngine = Depends(get_engine)) -> dict:
    """The quadrant view: one list per bin plus the completed bin."""
    return {
        "bins": {
            bin_id: [e.to_json_dict() for e in items]
            for bin_id, items in engine.board().items()
        },
        "active_id": engine.active_id,
    }


@router.post("/events")
async def create_event(payload: EventIn, store: EntityStore = Depends(get_store)) -> dict:
    start = time.time()
    with http_errors():
        event = store.add_event(
            payload.title,
            priority=payload.priority,
            suggestion=payload.suggestion,
            detail=payload.detail,
            event_type=payload.event_type,
        )
    logger.info(f"Created event {event.id}: {event.title}")
    try:
        EVENTS_CREATED_TOTAL.labels(source="manual").inc()
    except Exception:
        pass
    observe_request("/events", "created", start)
    return with_storage_warning({"event": event.to_json_dict()}, store.persist_error)


@router.patch("/events/{event_id}")
async def update_event(event_id: int, payload: EventPatch, store: EntityStore = Depends(get_store)) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    with http_errors():
        changed = store.update_event(event_id, **changes)
    return with_storage_warning(
        {"changed": changed, "event": store.get_event(event_id).to_json_dict()},
        store.persist_error,
    )


@router.delete("/events/{event_id}")
async def delete_event(event_id: int, store: EntityStore = Depends(get_store)) -> dict:
    with http_errors():
        event = store.delete_event(event_id)
    logger.info(f"Deleted event {event_id}")
    return with_storage_warning({"deleted": event.id}, store.persist_error)


@router.post("/events/reorder")
async def reorder_events(payload: ReorderIn, store: EntityStore = Depends(get_store)) -> dict:
    """Move one event to another's position in the global order (list view)."""
    moved = store.move_event(payload.active_id, payload.over_id)
    if moved:
        try:
            DRAG_MUTATIONS_TOTAL.labels(kind="reordered").inc()
        except Exception:
            pass
    return with_storage_warning({"moved": moved}, store.persist_error)


@router.post("/events/{event_id}/complete")
async def complete_event(
    event_id: int,
    payload: CompleteIn = CompleteIn(),
    store: EntityStore = Depends(get_store),
) -> dict:
    """Toggle a one-time event, or log a completion on a recurring one."""
    with http_errors():
        event = store.complete(event_id, payload.note)
    return with_storage_warning({"event": event.to_json_dict()}, store.persist_error)


@router.post("/events/{event_id}/expand")
async def toggle_expand(event_id: int, store: EntityStore = Depends(get_store)) -> dict:
    with http_errors():
        expanded = store.toggle_expanded(event_id)
    return with_storage_warning({"expanded": expanded}, store.persist_error)


@router.post("/events/{event_id}/editing")
async def set_editing(
    event_id: int,
    payload: EditingIn,
    engine: DragReorderEngine = Depends(get_engine),
) -> dict:
    """Mark an event as open in the editor; it cannot be dragged meanwhile."""
    if payload.editing:
        engine.mark_editing(event_id)
    else:
        engine.clear_editing(event_id)
    return {"id": event_id, "editing": payload.editing}
