"""
Entity Store for Make My Day.

Holds the canonical ordered collection of events and the ordered goals with
their subtasks. Event order is one global list of ids; quadrant views are
derived from it on demand (see board.drag_engine) and never stored.

Every mutation that changes something is flushed synchronously to
AppStorage. Persistence is best-effort: a storage failure is logged and kept
in ``persist_error`` but does not undo the in-memory change.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from makemyday.errors import NotFoundError, StorageError, StorageQuotaExceededError
from makemyday.models import (
    CompletionRecord,
    Event,
    EventType,
    Goal,
    Priority,
    Subtask,
    utcnow,
)
from storage.app_storage import AppStorage

logger = logging.getLogger(__name__)

UNTITLED_EVENT = "Untitled event"
UNTITLED_SUBTASK = "Untitled task"

EVENT_FIELDS = {"title", "priority", "suggestion", "detail", "event_type", "is_expanded", "completed"}
GOAL_FIELDS = {"title", "description", "deadline", "expanded"}
SUBTASK_FIELDS = {"title", "suggestion", "estimated_time", "priority", "completed", "projected"}


def _move(items: list, old_index: int, new_index: int) -> None:
    item = items.pop(old_index)
    items.insert(new_index, item)


def _draft_fields(draft: Any) -> dict:
    if hasattr(draft, "model_dump"):
        return draft.model_dump()
    return dict(draft)


class EntityStore:
    def __init__(self, storage: AppStorage):
        self.storage = storage
        self._order: List[int] = []
        self._events: Dict[int, Event] = {}
        self._goals: List[Goal] = []
        self._last_id = 0
        self.persist_error: Optional[str] = None

    # ids

    def _next_id(self) -> int:
        now_ms = int(time.time() * 1000)
        self._last_id = max(now_ms, self._last_id + 1)
        return self._last_id

    def _observe_id(self, value: int) -> None:
        if value > self._last_id:
            self._last_id = value

    # persistence

    def _flush(self, what: str, save: Callable[[], None]) -> None:
        try:
            save()
            self.persist_error = None
        except StorageQuotaExceededError as e:
            logger.error(f"Storage quota exceeded while saving {what}: {e}")
            self.persist_error = f"Storage quota exceeded: {what} could not be saved"
        except StorageError as e:
            logger.error(f"Failed to save {what}: {e}")
            self.persist_error = f"Failed to save {what}: {e}"

    def _persist_events(self) -> None:
        self._flush("events", lambda: self.storage.save_events(self._ordered_events()))

    def _persist_goals(self) -> None:
        self._flush("goals", lambda: self.storage.save_goals(self._goals))

    def load(self) -> None:
        """Read events and goals from storage; called once at startup."""
        self._order = []
        self._events = {}
        for event in self.storage.load_events():
            if event.id in self._events:
                logger.warning(f"Duplicate stored event id {event.id}, keeping the first")
                continue
            self._order.append(event.id)
            self._events[event.id] = event
            self._observe_id(event.id)

        self._goals = self.storage.load_goals()
        for goal in self._goals:
            self._observe_id(goal.id)
            for subtask in goal.subtasks:
                self._observe_id(subtask.id)

        events_changed, goals_changed = self._reconcile_projections()
        if events_changed:
            self._persist_events()
        if goals_changed:
            self._persist_goals()
        logger.info(f"Loaded {len(self._order)} events and {len(self._goals)} goals")

    # event queries

    def _ordered_events(self) -> List[Event]:
        return [self._events[i] for i in self._order]

    def events(self) -> List[Event]:
        return [e.model_copy(deep=True) for e in self._ordered_events()]

    def events_where(self, predicate: Callable[[Event], bool]) -> List[Event]:
        return [e.model_copy(deep=True) for e in self._ordered_events() if predicate(e)]

    def get_event(self, event_id: int) -> Optional[Event]:
        event = self._events.get(event_id)
        return event.model_copy(deep=True) if event is not None else None

    def has_event(self, event_id: int) -> bool:
        return event_id in self._events

    def index_of(self, event_id: int) -> int:
        return self._order.index(event_id)

    def __len__(self) -> int:
        return len(self._order)

    def _require_event(self, event_id: int) -> Event:
        event = self._events.get(event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found")
        return event

    # event mutations

    def add_event(
        self,
        title: str,
        priority: Any = Priority.NOT_URGENT_NOT_IMPORTANT,
        suggestion: str = "",
        detail: str = "",
        event_type: Any = EventType.ONE_TIME,
        **extra: Any,
    ) -> Event:
        event = Event(
            id=self._next_id(),
            title=title,
            priority=priority,
            suggestion=suggestion,
            detail=detail,
            event_type=event_type,
            **extra,
        )
        self._append(event)
        self._persist_events()
        return event.model_copy(deep=True)

    def add_drafts(self, drafts: Iterable[Any]) -> List[Event]:
        """Materialize LLM drafts as events, appended in draft order, one write."""
        created: List[Event] = []
        for draft in drafts:
            fields = _draft_fields(draft)
            event = Event(
                id=self._next_id(),
                title=(fields.get("title") or "").strip() or UNTITLED_EVENT,
                priority=fields.get("priority"),
                suggestion=fields.get("suggestion"),
                detail=fields.get("detail"),
                event_type=fields.get("event_type"),
            )
            self._append(event)
            created.append(event.model_copy(deep=True))
        if created:
            self._persist_events()
        return created

    def _append(self, event: Event) -> None:
        self._order.append(event.id)
        self._events[event.id] = event

    def update_event(self, event_id: int, **changes: Any) -> bool:
        """Apply field changes atomically; returns whether anything changed."""
        current = self._require_event(event_id)
        unknown = set(changes) - EVENT_FIELDS
        if unknown:
            raise ValueError(f"Unknown event fields: {', '.join(sorted(unknown))}")

        candidate = current.model_copy(deep=True)
        for name in ("title", "priority", "suggestion", "detail", "event_type", "is_expanded"):
            if name in changes:
                setattr(candidate, name, changes[name])
        if "completed" in changes:
            self._set_completed(candidate, bool(changes["completed"]))
        if candidate.is_recurring and candidate.completed:
            # a one-time event turned recurring drops its completion
            candidate.completed = False
            candidate.completed_at = None

        if candidate == current:
            return False
        self._events[event_id] = candidate
        if candidate.is_goal_linked:
            self._sync_subtask_from_event(candidate)
        self._persist_events()
        return True

    @staticmethod
    def _set_completed(event: Event, completed: bool) -> None:
        if completed == event.completed:
            return
        if completed and event.is_recurring:
            raise ValueError("Recurring events record completions instead of being completed")
        event.completed = completed
        event.completed_at = utcnow() if completed else None

    def set_priority(self, event_id: int, priority: Any) -> bool:
        return self.update_event(event_id, priority=priority)

    def toggle_completed(self, event_id: int) -> Event:
        event = self._require_event(event_id)
        if event.is_recurring:
            raise ValueError("Recurring events record completions instead of being completed")
        self.update_event(event_id, completed=not event.completed)
        return self._events[event_id].model_copy(deep=True)

    def record_completion(self, event_id: int, note: str = "") -> CompletionRecord:
        event = self._require_event(event_id)
        if not event.is_recurring:
            raise ValueError("Only recurring events keep a completion history")
        record = CompletionRecord(note=note)
        event.completion_history = [*event.completion_history, record]
        self._persist_events()
        return record

    def complete(self, event_id: int, note: str = "") -> Event:
        """What the card's completion button does for either event type."""
        event = self._require_event(event_id)
        if event.is_recurring:
            self.record_completion(event_id, note)
            return self._events[event_id].model_copy(deep=True)
        return self.toggle_completed(event_id)

    def toggle_expanded(self, event_id: int) -> bool:
        event = self._require_event(event_id)
        self.update_event(event_id, is_expanded=not event.is_expanded)
        return self._events[event_id].is_expanded

    def delete_event(self, event_id: int) -> Event:
        event = self._require_event(event_id)
        self._order.remove(event_id)
        del self._events[event_id]
        if event.is_goal_linked:
            found = self._find_subtask(event.goal_id, event.subtask_id)
            if found is not None:
                goal, subtask = found
                subtask.projected = False
                self._sync_projection(goal, subtask)
                self._persist_goals()
        self._persist_events()
        return event

    def replace_events(self, events: Iterable[Event]) -> int:
        """Swap in a whole new event list (import)."""
        self._order = []
        self._events = {}
        for event in events:
            if event.id in self._events:
                logger.warning(f"Duplicate event id {event.id} in replacement set, keeping the first")
                continue
            self._append(event.model_copy(deep=True))
            self._observe_id(event.id)
        _, goals_changed = self._reconcile_projections()
        if goals_changed:
            self._persist_goals()
        self._persist_events()
        return len(self._order)

    def move_event(self, active_id: int, over_id: int) -> bool:
        """List move on the global order: take active out, insert at over's index."""
        if active_id == over_id:
            return False
        if active_id not in self._events or over_id not in self._events:
            return False
        old_index = self._order.index(active_id)
        new_index = self._order.index(over_id)
        _move(self._order, old_index, new_index)
        self._persist_events()
        return True

    # goals

    def goals(self) -> List[Goal]:
        return [g.model_copy(deep=True) for g in self._goals]

    def get_goal(self, goal_id: int) -> Optional[Goal]:
        goal = self._find_goal(goal_id)
        return goal.model_copy(deep=True) if goal is not None else None

    def _find_goal(self, goal_id: int) -> Optional[Goal]:
        for goal in self._goals:
            if goal.id == goal_id:
                return goal
        return None

    def _require_goal(self, goal_id: int) -> Goal:
        goal = self._find_goal(goal_id)
        if goal is None:
            raise NotFoundError(f"Goal {goal_id} not found")
        return goal

    def _find_subtask(self, goal_id: Optional[int], subtask_id: Optional[int]) -> Optional[Tuple[Goal, Subtask]]:
        goal = self._find_goal(goal_id) if goal_id is not None else None
        if goal is None or subtask_id is None:
            return None
        subtask = goal.get_subtask(subtask_id)
        if subtask is None:
            return None
        return goal, subtask

    def _require_subtask(self, goal_id: int, subtask_id: int) -> Tuple[Goal, Subtask]:
        goal = self._require_goal(goal_id)
        subtask = goal.get_subtask(subtask_id)
        if subtask is None:
            raise NotFoundError(f"Subtask {subtask_id} not found in goal {goal_id}")
        return goal, subtask

    def add_goal(self, title: str, description: str = "", deadline: str = "") -> Goal:
        goal = Goal(id=self._next_id(), title=title, description=description, deadline=deadline)
        self._goals.append(goal)
        self._persist_goals()
        return goal.model_copy(deep=True)

    def update_goal(self, goal_id: int, **changes: Any) -> bool:
        goal = self._require_goal(goal_id)
        unknown = set(changes) - GOAL_FIELDS
        if unknown:
            raise ValueError(f"Unknown goal fields: {', '.join(sorted(unknown))}")
        candidate = goal.model_copy(deep=True)
        for name, value in changes.items():
            setattr(candidate, name, value)
        if candidate == goal:
            return False
        self._goals[self._goals.index(goal)] = candidate
        if candidate.title != goal.title:
            events_changed = False
            for subtask in candidate.subtasks:
                events_changed |= self._sync_projection(candidate, subtask)
            if events_changed:
                self._persist_events()
        self._persist_goals()
        return True

    def toggle_goal_expanded(self, goal_id: int) -> bool:
        goal = self._require_goal(goal_id)
        self.update_goal(goal_id, expanded=not goal.expanded)
        return not goal.expanded

    def delete_goal(self, goal_id: int) -> Goal:
        goal = self._require_goal(goal_id)
        self._goals.remove(goal)
        events_changed = False
        for subtask in goal.subtasks:
            subtask.projected = False
            events_changed |= self._sync_projection(goal, subtask)
        if events_changed:
            self._persist_events()
        self._persist_goals()
        return goal

    def move_goal(self, active_id: int, over_id: int) -> bool:
        if active_id == over_id:
            return False
        ids = [g.id for g in self._goals]
        if active_id not in ids or over_id not in ids:
            return False
        _move(self._goals, ids.index(active_id), ids.index(over_id))
        self._persist_goals()
        return True

    # subtasks

    def add_subtask(
        self,
        goal_id: int,
        title: str,
        suggestion: str = "",
        estimated_time: str = "",
        priority: Any = Priority.NOT_URGENT_NOT_IMPORTANT,
        projected: bool = False,
    ) -> Subtask:
        goal = self._require_goal(goal_id)
        subtask = Subtask(
            id=self._next_id(),
            title=title,
            suggestion=suggestion,
            estimated_time=estimated_time,
            priority=priority,
            projected=projected,
        )
        goal.subtasks = [*goal.subtasks, subtask]
        subtask = goal.subtasks[-1]
        if self._sync_projection(goal, subtask):
            self._persist_events()
        self._persist_goals()
        return subtask.model_copy(deep=True)

    def add_subtask_drafts(self, goal_id: int, drafts: Iterable[Any]) -> List[Subtask]:
        """Append generated subtasks after the existing ones; none are projected."""
        goal = self._require_goal(goal_id)
        created: List[Subtask] = []
        for draft in drafts:
            fields = _draft_fields(draft)
            created.append(
                Subtask(
                    id=self._next_id(),
                    title=(fields.get("title") or "").strip() or UNTITLED_SUBTASK,
                    priority=fields.get("priority"),
                    suggestion=fields.get("suggestion"),
                    estimated_time=fields.get("estimated_time"),
                )
            )
        if created:
            goal.subtasks = [*goal.subtasks, *created]
            self._persist_goals()
        return [s.model_copy(deep=True) for s in created]

    def update_subtask(self, goal_id: int, subtask_id: int, **changes: Any) -> bool:
        goal, subtask = self._require_subtask(goal_id, subtask_id)
        unknown = set(changes) - SUBTASK_FIELDS
        if unknown:
            raise ValueError(f"Unknown subtask fields: {', '.join(sorted(unknown))}")
        candidate = subtask.model_copy(deep=True)
        for name, value in changes.items():
            setattr(candidate, name, value)
        if candidate == subtask:
            return False
        subtasks = list(goal.subtasks)
        subtasks[subtasks.index(subtask)] = candidate
        goal.subtasks = subtasks
        if self._sync_projection(goal, goal.get_subtask(subtask_id)):
            self._persist_events()
        self._persist_goals()
        return True

    def toggle_projection(self, goal_id: int, subtask_id: int) -> bool:
        _, subtask = self._require_subtask(goal_id, subtask_id)
        projected = not subtask.projected
        self.update_subtask(goal_id, subtask_id, projected=projected)
        return projected

    def delete_subtask(self, goal_id: int, subtask_id: int) -> Subtask:
        goal, subtask = self._require_subtask(goal_id, subtask_id)
        subtask.projected = False
        if self._sync_projection(goal, subtask):
            self._persist_events()
        goal.subtasks = [s for s in goal.subtasks if s.id != subtask_id]
        self._persist_goals()
        return subtask

    def move_subtask(self, goal_id: int, active_id: int, over_id: int) -> bool:
        goal = self._require_goal(goal_id)
        if active_id == over_id:
            return False
        ids = [s.id for s in goal.subtasks]
        if active_id not in ids or over_id not in ids:
            return False
        subtasks = list(goal.subtasks)
        _move(subtasks, ids.index(active_id), ids.index(over_id))
        goal.subtasks = subtasks
        self._persist_goals()
        return True

    # projection: subtask <-> mirrored event

    def _mirror_ids(self, goal_id: int, subtask_id: int) -> List[int]:
        return [
            i
            for i in self._order
            if self._events[i].is_from_goal
            and self._events[i].goal_id == goal_id
            and self._events[i].subtask_id == subtask_id
        ]

    def _sync_projection(self, goal: Goal, subtask: Subtask) -> bool:
        """Make the event list agree with subtask.projected.

        Exactly one mirror event exists while the subtask is projected and
        none otherwise. Returns whether the event list changed; the caller
        persists.
        """
        mirror_ids = self._mirror_ids(goal.id, subtask.id)

        if not subtask.projected:
            for event_id in mirror_ids:
                self._order.remove(event_id)
                del self._events[event_id]
            return bool(mirror_ids)

        if not mirror_ids:
            mirror = Event(
                id=self._next_id(),
                title=subtask.title,
                priority=subtask.priority,
                suggestion=subtask.suggestion,
                completed=subtask.completed,
                completed_at=utcnow() if subtask.completed else None,
                goal_id=goal.id,
                subtask_id=subtask.id,
                goal_title=goal.title,
                is_from_goal=True,
            )
            self._append(mirror)
            return True

        changed = False
        for extra_id in mirror_ids[1:]:
            self._order.remove(extra_id)
            del self._events[extra_id]
            changed = True

        current = self._events[mirror_ids[0]]
        candidate = current.model_copy(deep=True)
        candidate.title = subtask.title
        candidate.priority = subtask.priority
        candidate.suggestion = subtask.suggestion
        candidate.goal_title = goal.title
        if not candidate.is_recurring and candidate.completed != subtask.completed:
            self._set_completed(candidate, subtask.completed)
        if candidate != current:
            self._events[current.id] = candidate
            changed = True
        return changed

    def _sync_subtask_from_event(self, event: Event) -> None:
        found = self._find_subtask(event.goal_id, event.subtask_id)
        if found is None:
            logger.debug(f"Event {event.id} points at a missing subtask, nothing to sync")
            return
        goal, subtask = found
        candidate = subtask.model_copy(deep=True)
        candidate.title = event.title
        candidate.priority = event.priority
        candidate.suggestion = event.suggestion
        if not event.is_recurring:
            candidate.completed = event.completed
        if candidate != subtask:
            goal.subtasks = [candidate if s.id == subtask.id else s for s in goal.subtasks]
            self._persist_goals()

    def _reconcile_projections(self) -> Tuple[bool, bool]:
        """Repair linkage after a bulk load: projected == a mirror exists.

        Mirrors whose subtask no longer exists become plain events; duplicate
        mirrors beyond the first are dropped.
        """
        events_changed = goals_changed = False
        subtasks = {
            (goal.id, subtask.id): subtask for goal in self._goals for subtask in goal.subtasks
        }
        seen = set()
        for event_id in list(self._order):
            event = self._events[event_id]
            if not event.is_from_goal:
                continue
            key = (event.goal_id, event.subtask_id)
            if key not in subtasks:
                logger.info(f"Unlinking event {event_id}: its subtask no longer exists")
                event.is_from_goal = False
                event.goal_id = event.subtask_id = event.goal_title = None
                events_changed = True
            elif key in seen:
                self._order.remove(event_id)
                del self._events[event_id]
                events_changed = True
            else:
                seen.add(key)

        for key, subtask in subtasks.items():
            projected = key in seen
            if subtask.projected != projected:
                subtask.projected = projected
                goals_changed = True
        return events_changed, goals_changed
