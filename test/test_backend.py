import threading

from api import state
from api.backend import BackendAPI
from api.state import StreamProgress
from llm.planner_client import PlannerClient
from llm.providers.base import LLMProvider
from llm.providers.mock_provider import MockProvider
from makemyday.models import LLMConfig

REPLY = '[{"title": "Slow one"}]'


class GatedProvider(LLMProvider):
    """Streams the first frame, then waits for the gate before the rest."""

    def __init__(self):
        self.first_frame_sent = threading.Event()
        self.gate = threading.Event()

    def generate(self, **kwargs) -> str:
        return REPLY

    def generate_stream(self, *, system, user, assembler, temperature=0.7, max_tokens=2000) -> str:
        frames = MockProvider().sse_frames(REPLY).split(b"\n\n")
        assembler.feed(frames[0] + b"\n\n")
        self.first_frame_sent.set()
        assert self.gate.wait(5)
        for frame in frames[1:]:
            assembler.feed(frame + b"\n\n")
        return assembler.finish()

    def ping(self) -> None:
        return None


def test_finished_run_does_not_reset_a_running_one(monkeypatch, fake_provider_factory):
    monkeypatch.setattr(state, "progress", StreamProgress())
    backend = BackendAPI()
    config = LLMConfig(api_key="sk-test")
    slow = GatedProvider()
    result = {}

    def run_slow():
        result["drafts"] = backend.draft_plan(PlannerClient(config, provider=slow), "slow")

    worker = threading.Thread(target=run_slow)
    worker.start()
    try:
        assert slow.first_frame_sent.wait(5)
        fast = fake_provider_factory('[{"title": "Fast one"}]')
        assert [d.title for d in backend.draft_plan(PlannerClient(config, provider=fast), "fast")] == ["Fast one"]

        snapshot = state.progress.snapshot()
        assert snapshot["running"] is True
        assert snapshot["active"] == 1
        assert snapshot["content"] and REPLY.startswith(snapshot["content"])
    finally:
        slow.gate.set()
        worker.join(5)

    assert [d.title for d in result["drafts"]] == ["Slow one"]
    done = state.progress.snapshot()
    assert done["running"] is False
    assert done["content"] == REPLY


def test_progress_keeps_text_after_stop():
    progress = StreamProgress()
    run_id = progress.start("plan")
    progress.update(run_id, "ab", "ab")
    progress.stop(run_id)
    assert progress.snapshot()["content"] == "ab"

    next_id = progress.start("subtasks")
    assert progress.snapshot()["id"] == next_id
    assert progress.snapshot()["content"] == ""
    assert progress.snapshot(run_id)["content"] == "ab"
