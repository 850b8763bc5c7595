import logging
from typing import Callable, List, Optional, TypeVar

from makemyday.models import Goal
from llm.planner_client import PlannerClient, ProgressCallback
from llm.schemas import SubtaskDraft, TaskDraft
from api import state
from api.metrics import LLM_STREAM_TOKENS_TOTAL

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackendAPI:
    """Central orchestration of planner calls for the API layer.

    Methods block on the network and are meant for ``asyncio.to_thread``;
    they only produce drafts. Applying drafts to the store is left to the
    caller, back on the event loop.
    """

    def _tracked(self, kind: str, stream: bool, call: Callable[[Optional[ProgressCallback]], T]) -> T:
        if not stream:
            return call(None)

        progress = state.progress
        run_id = progress.start(kind)

        def on_progress(token: str, full_content: str) -> None:
            progress.update(run_id, token, full_content)
            try:
                LLM_STREAM_TOKENS_TOTAL.inc()
            except Exception:
                pass

        try:
            return call(on_progress)
        finally:
            progress.stop(run_id)

    def draft_plan(
        self,
        client: PlannerClient,
        text: str,
        stream: bool = True,
        extended: bool = True,
    ) -> List[TaskDraft]:
        """Turn free text into event drafts."""
        logger.info(f"Planning from text: {text[:50]}...")
        return self._tracked(
            "plan",
            stream,
            lambda cb: client.plan_events(text, on_progress=cb, extended=extended),
        )

    def draft_subtasks(self, client: PlannerClient, goal: Goal, stream: bool = True) -> List[SubtaskDraft]:
        logger.info(f"Generating subtasks for goal {goal.id} ({goal.title})")
        return self._tracked(
            "subtasks",
            stream,
            lambda cb: client.generate_subtasks(goal, on_progress=cb),
        )
