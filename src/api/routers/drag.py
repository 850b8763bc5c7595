import logging

from fastapi import APIRouter, Depends

from board.collision import Rect
from board.drag_engine import DragReorderEngine, DropResult
from api.dependencies import get_engine
from api.errors import with_storage_warning
from api.metrics import DRAG_MUTATIONS_TOTAL
from api.schemas import DragGeometryIn, DragIn, RectIn

router = APIRouter(prefix="/drag")
logger = logging.getLogger(__name__)


def _rect(r: RectIn) -> Rect:
    return Rect(left=r.left, top=r.top, width=r.width, height=r.height)


def _count(kind: str) -> None:
    try:
        DRAG_MUTATIONS_TOTAL.labels(kind=kind).inc()
    except Exception:
        pass


def _drop_response(engine: DragReorderEngine, result: DropResult) -> dict:
    if result is not DropResult.NONE:
        _count(result.value)
    return with_storage_warning({"result": result.value}, engine.store.persist_error)


@router.post("/start")
async def start_drag(payload: DragIn, engine: DragReorderEngine = Depends(get_engine)) -> dict:
    started = engine.begin_drag(payload.id)
    return {"started": started, "active_id": engine.active_id}


@router.post("/over")
async def drag_over(payload: DragIn, engine: DragReorderEngine = Depends(get_engine)) -> dict:
    changed = engine.drag_over(payload.id, payload.target)
    if changed:
        _count("hover")
    return with_storage_warning({"changed": changed}, engine.store.persist_error)


@router.post("/end")
async def end_drag(payload: DragIn, engine: DragReorderEngine = Depends(get_engine)) -> dict:
    return _drop_response(engine, engine.end_drag(payload.id, payload.target))


@router.post("/cancel")
async def cancel_drag(engine: DragReorderEngine = Depends(get_engine)) -> dict:
    engine.cancel_drag()
    return {"active_id": None}


@router.post("/move")
async def drag_move(payload: DragGeometryIn, engine: DragReorderEngine = Depends(get_engine)) -> dict:
    """Hover given the dragged card's rectangle and every droppable's rectangle."""
    droppables = {key: _rect(r) for key, r in payload.droppables.items()}
    target = engine.resolve_target(_rect(payload.rect), droppables)
    changed = engine.drag_over(payload.id, target)
    if changed:
        _count("hover")
    return with_storage_warning({"target": target, "changed": changed}, engine.store.persist_error)


@router.post("/drop")
async def drag_drop(payload: DragGeometryIn, engine: DragReorderEngine = Depends(get_engine)) -> dict:
    droppables = {key: _rect(r) for key, r in payload.droppables.items()}
    return _drop_response(engine, engine.drop(payload.id, _rect(payload.rect), droppables))
