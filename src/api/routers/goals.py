import asyncio
import logging
import time

from fastapi import APIRouter, Depends

from makemyday.errors import MakeMyDayError, NotFoundError
from makemyday.models import Goal
from board.entity_store import EntityStore
from llm.planner_client import PlannerClient
from api.backend import BackendAPI
from api.dependencies import get_planner_client, get_store
from api.errors import http_errors, with_storage_warning
from api.metrics import LLM_FAILURES_TOTAL, observe_request
from api.schemas import GenerateIn, GoalIn, GoalPatch, ReorderIn, SubtaskIn, SubtaskPatch

router = APIRouter(prefix="/goals")
logger = logging.getLogger(__name__)
backend = BackendAPI()


def _goal_out(goal: Goal) -> dict:
    done, total, percent = goal.progress()
    body = goal.to_json_dict()
    body["progress"] = {"completed": done, "total": total, "percent": percent}
    body["projectedCount"] = goal.projected_count()
    return body


def _require_goal(store: EntityStore, goal_id: int) -> Goal:
    goal = store.get_goal(goal_id)
    if goal is None:
        raise NotFoundError(f"Goal {goal_id} not found")
    return goal


@router.get("")
async def list_goals(store: EntityStore = Depends(get_store)) -> dict:
    return {"goals": [_goal_out(g) for g in store.goals()]}


@router.post("")
async def create_goal(payload: GoalIn, store: EntityStore = Depends(get_store)) -> dict:
    with http_errors():
        goal = store.add_goal(payload.title, payload.description, payload.deadline)
    logger.info(f"Created goal {goal.id}: {goal.title}")
    return with_storage_warning({"goal": _goal_out(goal)}, store.persist_error)


@router.post("/reorder")
async def reorder_goals(payload: ReorderIn, store: EntityStore = Depends(get_store)) -> dict:
    moved = store.move_goal(payload.active_id, payload.over_id)
    return with_storage_warning({"moved": moved}, store.persist_error)


@router.patch("/{goal_id}")
async def update_goal(goal_id: int, payload: GoalPatch, store: EntityStore = Depends(get_store)) -> dict:
    with http_errors():
        changed = store.update_goal(goal_id, **payload.model_dump(exclude_unset=True))
        goal = _require_goal(store, goal_id)
    return with_storage_warning({"changed": changed, "goal": _goal_out(goal)}, store.persist_error)


@router.delete("/{goal_id}")
async def delete_goal(goal_id: int, store: EntityStore = Depends(get_store)) -> dict:
    with http_errors():
        goal = store.delete_goal(goal_id)
    logger.info(f"Deleted goal {goal_id} with {len(goal.subtasks)} subtasks")
    return with_storage_warning({"deleted": goal.id}, store.persist_error)


@router.post("/{goal_id}/expand")
async def toggle_goal_expanded(goal_id: int, store: EntityStore = Depends(get_store)) -> dict:
    with http_errors():
        expanded = store.toggle_goal_expanded(goal_id)
    return with_storage_warning({"expanded": expanded}, store.persist_error)


# subtasks


@router.post("/{goal_id}/subtasks")
async def create_subtask(goal_id: int, payload: SubtaskIn, store: EntityStore = Depends(get_store)) -> dict:
    with http_errors():
        subtask = store.add_subtask(
            goal_id,
            payload.title,
            suggestion=payload.suggestion,
            estimated_time=payload.estimated_time,
            priority=payload.priority,
            projected=payload.projected,
        )
    return with_storage_warning({"subtask": subtask.to_json_dict()}, store.persist_error)


@router.post("/{goal_id}/subtasks/reorder")
async def reorder_subtasks(goal_id: int, payload: ReorderIn, store: EntityStore = Depends(get_store)) -> dict:
    with http_errors():
        moved = store.move_subtask(goal_id, payload.active_id, payload.over_id)
    return with_storage_warning({"moved": moved}, store.persist_error)


@router.patch("/{goal_id}/subtasks/{subtask_id}")
async def update_subtask(
    goal_id: int,
    subtask_id: int,
    payload: SubtaskPatch,
    store: EntityStore = Depends(get_store),
) -> dict:
    with http_errors():
        changed = store.update_subtask(goal_id, subtask_id, **payload.model_dump(exclude_unset=True))
        goal = _require_goal(store, goal_id)
    return with_storage_warning(
        {"changed": changed, "subtask": goal.get_subtask(subtask_id).to_json_dict()},
        store.persist_error,
    )


@router.delete("/{goal_id}/subtasks/{subtask_id}")
async def delete_subtask(goal_id: int, subtask_id: int, store: EntityStore = Depends(get_store)) -> dict:
    with http_errors():
        subtask = store.delete_subtask(goal_id, subtask_id)
    return with_storage_warning({"deleted": subtask.id}, store.persist_error)


@router.post("/{goal_id}/subtasks/{subtask_id}/projection")
async def toggle_projection(goal_id: int, subtask_id: int, store: EntityStore = Depends(get_store)) -> dict:
    """Show or hide the subtask as an event on the board."""
    with http_errors():
        projected = store.toggle_projection(goal_id, subtask_id)
    return with_storage_warning({"projected": projected}, store.persist_error)


@router.post("/{goal_id}/generate")
async def generate_subtasks(
    goal_id: int,
    payload: GenerateIn = GenerateIn(),
    store: EntityStore = Depends(get_store),
    client: PlannerClient = Depends(get_planner_client),
) -> dict:
    """Ask the model to break the goal down and append the result."""
    start = time.time()
    with http_errors():
        goal = _require_goal(store, goal_id)
        try:
            drafts = await asyncio.to_thread(backend.draft_subtasks, client, goal, payload.stream)
        except MakeMyDayError as e:
            logger.error(f"Subtask generation failed for goal {goal_id}: {e}")
            try:
                LLM_FAILURES_TOTAL.labels(reason=type(e).__name__).inc()
            except Exception:
                pass
            observe_request("/goals/generate", "error", start)
            raise
        # back on the loop; the goal may have been deleted while we waited
        created = store.add_subtask_drafts(goal_id, drafts)

    observe_request("/goals/generate", "processed", start)
    return with_storage_warning(
        {"subtasks": [s.to_json_dict() for s in created]},
        store.persist_error,
    )
