import logging
import os
import threading
from typing import Dict, Optional

from board.drag_engine import DragReorderEngine
from board.entity_store import EntityStore
from llm.providers.base import LLMProvider
from storage.app_storage import AppStorage
from storage.kv_store import DEFAULT_QUOTA_BYTES, JsonFileStore, MemoryStore

logger = logging.getLogger(__name__)

DATA_DIR = os.getenv("MAKEMYDAY_DATA_DIR", "data")
STORAGE_QUOTA_BYTES = int(os.getenv("STORAGE_QUOTA_BYTES", str(DEFAULT_QUOTA_BYTES)))


class StreamProgress:
    """Live text of the streams currently running, for the UI to poll.

    Every call to start() opens its own run, so overlapping requests do not
    reset each other. A finished run keeps its text (a reply that failed to
    parse stays readable) until the next run starts.

    Written from the worker threads running the LLM calls, read from the
    event loop; the lock keeps each run consistent for readers.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._runs: Dict[int, dict] = {}
        self._last_id = 0
        self._last_stopped: Optional[int] = None

    def start(self, kind: str) -> int:
        with self._lock:
            self._last_id += 1
            run_id = self._last_id
            self._runs = {
                i: run for i, run in self._runs.items() if run["running"] or i == self._last_stopped
            }
            self._runs[run_id] = {"id": run_id, "running": True, "kind": kind, "content": "", "tokens": 0}
            return run_id

    def update(self, run_id: int, token: str, full_content: str) -> None:
        with self._lock:
            run = self._runs.get(run_id)
            if run is not None:
                run["content"] = full_content
                run["tokens"] += 1

    def stop(self, run_id: int) -> None:
        with self._lock:
            run = self._runs.get(run_id)
            if run is not None:
                run["running"] = False
                self._last_stopped = run_id

    def snapshot(self, run_id: Optional[int] = None) -> dict:
        """One run: the given one, else the newest running, else the last finished."""
        with self._lock:
            active = [run for run in self._runs.values() if run["running"]]
            if run_id is not None:
                run = self._runs.get(run_id)
            elif active:
                run = active[-1]
            else:
                run = self._runs.get(self._last_stopped)
            if run is None:
                body = {"id": run_id, "running": False, "kind": None, "content": "", "tokens": 0}
            else:
                body = dict(run)
            body["active"] = len(active)
            return body


# Global instances initialized at startup
storage: Optional[AppStorage] = None
store: Optional[EntityStore] = None
engine: Optional[DragReorderEngine] = None
progress = StreamProgress()

# Set by tests or offline runs to bypass provider selection
provider_override: Optional[LLMProvider] = None


def init_state(
    data_dir: Optional[str] = None,
    quota_bytes: Optional[int] = None,
    provider: Optional[LLMProvider] = None,
) -> None:
    global storage, store, engine, provider_override, progress

    path = data_dir or DATA_DIR
    storage = AppStorage(
        JsonFileStore(path, quota_bytes=quota_bytes or STORAGE_QUOTA_BYTES),
        MemoryStore(),
    )
    store = EntityStore(storage)
    store.load()
    engine = DragReorderEngine(store)
    provider_override = provider
    progress = StreamProgress()
    logger.info(f"State initialized from {path}")


def ensure_initialized() -> None:
    if store is None:
        init_state()
