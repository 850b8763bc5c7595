import logging
import os
from typing import Callable, List, Optional

from makemyday.errors import MakeMyDayError
from makemyday.models import Goal, LLMConfig
from llm.prompts import (
    PLAN_SYSTEM_PROMPT,
    PLAN_SYSTEM_PROMPT_EXTENDED,
    SUBTASK_SYSTEM_PROMPT,
    build_goal_prompt,
)
from llm.providers.base import LLMProvider
from llm.response_parser import parse_json_array
from llm.schemas import SubtaskDraft, TaskDraft, drafts_from_payload
from llm.stream_assembler import StreamResponseAssembler

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str], None]


def get_provider(config: LLMConfig) -> LLMProvider:
    """Pick the provider named by LLM_PROVIDER ("openai" unless told otherwise)."""
    name = os.getenv("LLM_PROVIDER", "openai").strip().lower()
    if name == "mock":
        from llm.providers.mock_provider import MockProvider

        return MockProvider()
    from llm.providers.openai_provider import OpenAICompatibleProvider

    return OpenAICompatibleProvider(config)


class PlannerClient:
    """Builds planning requests and turns the model's reply into drafts.

    With a progress callback the request is streamed and every token is
    reported as it arrives; without one the endpoint is called once and the
    complete reply parsed. Either all drafts come back or an exception does.
    """

    def __init__(self, config: LLMConfig, provider: Optional[LLMProvider] = None):
        self.config = config
        self._provider = provider

    @property
    def provider(self) -> LLMProvider:
        # created lazily so a missing API key only fails on first use
        if self._provider is None:
            self._provider = get_provider(self.config)
        return self._provider

    def _complete(self, system: str, user: str, on_progress: Optional[ProgressCallback]) -> str:
        if on_progress is None:
            return self.provider.generate(
                system=system,
                user=user,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        assembler = StreamResponseAssembler(on_progress=on_progress)
        return self.provider.generate_stream(
            system=system,
            user=user,
            assembler=assembler,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

    def plan_events(
        self,
        text: str,
        on_progress: Optional[ProgressCallback] = None,
        extended: bool = True,
    ) -> List[TaskDraft]:
        if not text or not text.strip():
            return []
        system = PLAN_SYSTEM_PROMPT_EXTENDED if extended else PLAN_SYSTEM_PROMPT
        content = self._complete(system, text.strip(), on_progress)
        drafts = drafts_from_payload(parse_json_array(content), TaskDraft)
        logger.info(f"Planner produced {len(drafts)} event drafts")
        return drafts

    def generate_subtasks(self, goal: Goal, on_progress: Optional[ProgressCallback] = None) -> List[SubtaskDraft]:
        content = self._complete(SUBTASK_SYSTEM_PROMPT, build_goal_prompt(goal), on_progress)
        drafts = drafts_from_payload(parse_json_array(content), SubtaskDraft)
        logger.info(f"Planner produced {len(drafts)} subtask drafts for goal {goal.id}")
        return drafts

    def test_config(self) -> dict:
        try:
            self.provider.ping()
        except MakeMyDayError as e:
            return {"success": False, "message": str(e)}
        return {"success": True, "message": "API configuration works"}

    def transcribe(self, audio: bytes, filename: str = "audio.webm") -> str:
        return self.provider.transcribe(audio, filename)
