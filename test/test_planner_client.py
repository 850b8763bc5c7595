import json

import httpx
import pytest

from llm.planner_client import PlannerClient, get_provider
from llm.providers.mock_provider import MockProvider
from llm.providers.openai_provider import OpenAICompatibleProvider
from makemyday.errors import APIRequestError, ConfigurationError, EmptyResponseError, ResponseParseError
from makemyday.models import EventType, Goal, LLMConfig, Priority, Subtask

PLAN_REPLY = json.dumps(
    [
        {"title": "Buy milk", "priority": "urgent-important", "suggestion": "On the way home"},
        {"title": "Gym", "priority": "weird", "eventType": "recurring"},
        "not an object",
    ]
)


def _config(**kwargs):
    return LLMConfig(api_key="sk-test", base_url="https://llm.example/v1", **kwargs)


def _openai(handler):
    return OpenAICompatibleProvider(_config(), transport=httpx.MockTransport(handler))


def _sse(text: str) -> bytes:
    return MockProvider(chunk_size=10).sse_frames(text)


def test_plan_events_non_streaming(fake_provider_factory):
    provider = fake_provider_factory("Here it is:\n" + PLAN_REPLY)
    drafts = PlannerClient(_config(), provider=provider).plan_events("milk and gym")

    assert [d.title for d in drafts] == ["Buy milk", "Gym"]
    assert drafts[0].priority == Priority.URGENT_IMPORTANT
    assert drafts[1].priority == Priority.NOT_URGENT_NOT_IMPORTANT
    assert drafts[1].event_type == EventType.RECURRING
    assert provider.calls[0][2] is False


def test_plan_events_streaming_reports_progress(fake_provider_factory):
    provider = fake_provider_factory(PLAN_REPLY, chunk_size=3)
    seen = []
    drafts = PlannerClient(_config(), provider=provider).plan_events(
        "milk", on_progress=lambda token, full: seen.append(full)
    )
    assert len(drafts) == 2
    assert seen[-1] == PLAN_REPLY
    assert provider.calls[0][2] is True


def test_blank_text_makes_no_call(fake_provider_factory):
    provider = fake_provider_factory(PLAN_REPLY)
    assert PlannerClient(_config(), provider=provider).plan_events("   ") == []
    assert provider.calls == []


def test_unparseable_reply_raises(fake_provider_factory):
    provider = fake_provider_factory("I cannot help with that")
    with pytest.raises(ResponseParseError):
        PlannerClient(_config(), provider=provider).plan_events("anything")


def test_generate_subtasks_prompt_mentions_goal(fake_provider_factory):
    provider = fake_provider_factory('[{"title": "Step 1", "estimatedTime": "2 days"}]')
    goal = Goal(id=1, title="Write a book", deadline="2027-01-01", subtasks=[Subtask(id=2, title="Outline")])
    drafts = PlannerClient(_config(), provider=provider).generate_subtasks(goal)

    assert drafts[0].estimated_time == "2 days"
    user = provider.calls[0][1]
    assert "Write a book" in user and "2027-01-01" in user and "Outline" in user


def test_openai_streaming_request(monkeypatch):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, content=_sse(PLAN_REPLY))

    client = PlannerClient(_config(), provider=_openai(handler))
    drafts = client.plan_events("milk", on_progress=lambda token, full: None)

    assert [d.title for d in drafts] == ["Buy milk", "Gym"]
    assert captured["url"] == "https://llm.example/v1/chat/completions"
    assert captured["auth"] == "Bearer sk-test"
    assert captured["body"]["stream"] is True
    assert captured["body"]["messages"][1] == {"role": "user", "content": "milk"}


def test_openai_non_streaming_request():
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content)["stream"] is False
        return httpx.Response(200, json={"choices": [{"message": {"content": PLAN_REPLY}}]})

    drafts = PlannerClient(_config(), provider=_openai(handler)).plan_events("milk")
    assert len(drafts) == 2


def test_openai_error_message_is_surfaced():
    def handler(request):
        return httpx.Response(401, json={"error": {"message": "Invalid API key"}})

    with pytest.raises(APIRequestError) as exc:
        PlannerClient(_config(), provider=_openai(handler)).plan_events("milk")
    assert str(exc.value) == "Invalid API key"
    assert exc.value.status_code == 401


def test_openai_error_without_body_uses_status():
    def handler(request):
        return httpx.Response(503, text="upstream down")

    with pytest.raises(APIRequestError) as exc:
        PlannerClient(_config(), provider=_openai(handler)).plan_events("milk", on_progress=lambda t, f: None)
    assert str(exc.value) == "API request failed: 503"


def test_openai_network_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(APIRequestError) as exc:
        PlannerClient(_config(), provider=_openai(handler)).plan_events("milk")
    assert "Network request failed" in str(exc.value)


def test_openai_empty_content():
    def handler(request):
        return httpx.Response(200, json={"choices": [{"message": {"content": ""}}]})

    with pytest.raises(EmptyResponseError):
        PlannerClient(_config(), provider=_openai(handler)).plan_events("milk")


def test_empty_stream_is_an_empty_response():
    def handler(request):
        return httpx.Response(200, content=b"data: [DONE]\n\n")

    with pytest.raises(EmptyResponseError):
        PlannerClient(_config(), provider=_openai(handler)).plan_events("milk", on_progress=lambda t, f: None)


def test_missing_api_key_is_a_configuration_error(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    with pytest.raises(ConfigurationError):
        get_provider(LLMConfig())


def test_test_config_reports_failure_without_raising(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    result = PlannerClient(LLMConfig()).test_config()
    assert result["success"] is False
    assert "API key" in result["message"]


def test_test_config_success():
    def handler(request):
        body = json.loads(request.content)
        assert body["max_tokens"] == 10
        return httpx.Response(200, json={"choices": [{"message": {"content": "Hi"}}]})

    assert PlannerClient(_config(), provider=_openai(handler)).test_config()["success"] is True


def test_transcribe_posts_audio():
    def handler(request):
        assert str(request.url).endswith("/audio/transcriptions")
        assert b"FunAudioLLM/SenseVoiceSmall" in request.content
        return httpx.Response(200, json={"text": " buy milk "})

    assert PlannerClient(_config(), provider=_openai(handler)).transcribe(b"\x00\x01", "a.webm") == "buy milk"


def test_mock_provider_selected_by_env(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "mock")
    assert isinstance(get_provider(LLMConfig()), MockProvider)
