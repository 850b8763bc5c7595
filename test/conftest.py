import pytest

from board.entity_store import EntityStore
from llm.providers.base import LLMProvider
from llm.providers.mock_provider import MockProvider
from storage.app_storage import AppStorage
from storage.kv_store import MemoryStore


class FakeProvider(LLMProvider):
    """Returns a fixed reply; streamed replies are split into small SSE chunks."""

    def __init__(self, response_text: str, chunk_size: int = 7):
        self._response_text = response_text
        self._frames = MockProvider(chunk_size=chunk_size)
        self.calls = []

    def generate(self, *, system: str, user: str, temperature: float = 0.7, max_tokens: int = 2000) -> str:
        self.calls.append((system, user, False))
        return self._response_text

    def generate_stream(self, *, system, user, assembler, temperature=0.7, max_tokens=2000) -> str:
        self.calls.append((system, user, True))
        raw = self._frames.sse_frames(self._response_text)
        size = self._frames.chunk_size
        for i in range(0, len(raw), size):
            assembler.feed(raw[i:i + size])
        return assembler.finish()

    def ping(self) -> None:
        return None


class FailingProvider(LLMProvider):
    def __init__(self, exc: Exception):
        self.exc = exc

    def generate(self, **kwargs) -> str:
        raise self.exc

    def generate_stream(self, **kwargs) -> str:
        raise self.exc

    def ping(self) -> None:
        raise self.exc


class CountingStore(MemoryStore):
    """MemoryStore that records every write."""

    def __init__(self, quota_bytes=None):
        super().__init__(quota_bytes)
        self.writes = []

    def set(self, key, value) -> None:
        super().set(key, value)
        self.writes.append(key)


@pytest.fixture
def fake_provider_factory():
    def _make(response_text: str, chunk_size: int = 7):
        return FakeProvider(response_text, chunk_size=chunk_size)
    return _make


@pytest.fixture
def failing_provider_factory():
    def _make(exc: Exception):
        return FailingProvider(exc)
    return _make


@pytest.fixture
def local_store():
    return CountingStore()


@pytest.fixture
def app_storage(local_store):
    return AppStorage(local_store, MemoryStore())


@pytest.fixture
def store(app_storage):
    s = EntityStore(app_storage)
    s.load()
    return s


@pytest.fixture
def api_client(tmp_path):
    from fastapi.testclient import TestClient

    from api import state
    from api.main import app

    state.init_state(data_dir=str(tmp_path / "data"), provider=MockProvider())
    with TestClient(app) as client:
        yield client
