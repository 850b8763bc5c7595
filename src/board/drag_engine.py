"""
Drag/Reorder Engine for the quadrant board.

Turns a drag gesture (begin, any number of hovers, release) over the four
quadrant bins into mutations of the EntityStore. The store stays the only
source of truth: a bin is the stable sub-sequence of the global event order
whose members share the bin tag, recomputed on every read.

Hovering an item over a different bin commits the priority change right
away (live preview); releasing it over another item either re-categorizes it
or moves it within the global order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Hashable, List, Optional, Set, Tuple, Union

from board.collision import CollisionStrategy, Rect, closest_corners
from board.entity_store import EntityStore
from makemyday.models import QUADRANT_ORDER, Event, Priority

logger = logging.getLogger(__name__)

COMPLETED_BIN = "completed"
BIN_IDS = frozenset(p.value for p in Priority) | {COMPLETED_BIN}

TargetId = Union[int, str]


class DropResult(str, Enum):
    NONE = "none"
    RECATEGORIZED = "recategorized"
    REORDERED = "reordered"


@dataclass
class DragSession:
    item_id: int
    origin_bin: str
    preview_bin: str


def bin_of(event: Event) -> str:
    # recurring events never leave their quadrant
    if event.completed and not event.is_recurring:
        return COMPLETED_BIN
    return event.priority.value


def _completed_sort_key(event: Event) -> Tuple[float, int]:
    if event.completed_at is not None:
        return event.completed_at.timestamp() * 1000, event.id
    return float(event.id), event.id


class DragReorderEngine:
    def __init__(self, store: EntityStore, collision: CollisionStrategy = closest_corners):
        self.store = store
        self.collision = collision
        self.session: Optional[DragSession] = None
        self._editing: Set[int] = set()

    # views

    def bin_items(self, bin_id: str) -> List[Event]:
        if bin_id == COMPLETED_BIN:
            return self.completed_items()
        return self.store.events_where(lambda e: bin_of(e) == bin_id)

    def completed_items(self) -> List[Event]:
        """Completed one-time events, most recently completed first."""
        done = self.store.events_where(lambda e: bin_of(e) == COMPLETED_BIN)
        return sorted(done, key=_completed_sort_key, reverse=True)

    def board(self) -> Dict[str, List[Event]]:
        view = {p.value: self.bin_items(p.value) for p in QUADRANT_ORDER}
        view[COMPLETED_BIN] = self.completed_items()
        return view

    # transient edit state; an item open in the editor cannot be lifted

    def mark_editing(self, item_id: int) -> None:
        self._editing.add(item_id)

    def clear_editing(self, item_id: int) -> None:
        self._editing.discard(item_id)

    @property
    def active_id(self) -> Optional[int]:
        return self.session.item_id if self.session else None

    def _resolve(self, target_id: Optional[TargetId]) -> Union[str, int, None]:
        """A bin tag stays a string; anything else is read as an event id."""
        if target_id is None:
            return None
        if isinstance(target_id, str):
            if target_id in BIN_IDS:
                return target_id
            try:
                return int(target_id)
            except ValueError:
                return None
        return target_id

    # gesture

    def begin_drag(self, item_id: int) -> bool:
        event = self.store.get_event(item_id)
        if event is None:
            logger.debug(f"begin_drag: event {item_id} does not exist")
            return False
        if item_id in self._editing:
            logger.debug(f"begin_drag: event {item_id} is being edited")
            return False
        current = bin_of(event)
        if current == COMPLETED_BIN:
            return False
        self.session = DragSession(item_id=item_id, origin_bin=current, preview_bin=current)
        return True

    def drag_over(self, item_id: int, target_id: Optional[TargetId]) -> bool:
        """Hover update; returns True when the store was mutated."""
        target = self._resolve(target_id)
        if not isinstance(target, str) or target == COMPLETED_BIN:
            return False
        event = self.store.get_event(item_id)
        if event is None:
            return False
        current = bin_of(event)
        if current == COMPLETED_BIN or current == target:
            return False

        changed = self.store.set_priority(item_id, target)
        if self.session is not None and self.session.item_id == item_id:
            self.session.preview_bin = target
        if changed:
            logger.info(f"Event {item_id} moved {current} -> {target} (hover)")
        return changed

    def end_drag(self, item_id: int, target_id: Optional[TargetId]) -> DropResult:
        try:
            return self._drop(item_id, self._resolve(target_id))
        finally:
            self.session = None

    def cancel_drag(self) -> None:
        self.session = None

    def _drop(self, item_id: int, target: Union[str, int, None]) -> DropResult:
        if target is None or target == item_id:
            return DropResult.NONE

        active = self.store.get_event(item_id)
        if active is None:
            return DropResult.NONE
        active_bin = bin_of(active)

        if isinstance(target, str):
            # released over an empty part of a quadrant: same as the hover path
            return DropResult.RECATEGORIZED if self.drag_over(item_id, target) else DropResult.NONE

        over = self.store.get_event(target)
        if over is None:
            logger.info(f"Drop target {target} vanished during drag of {item_id}, ignoring")
            return DropResult.NONE
        over_bin = bin_of(over)

        if active_bin != over_bin:
            if COMPLETED_BIN in (active_bin, over_bin):
                return DropResult.NONE
            if self.store.set_priority(item_id, over.priority):
                logger.info(f"Event {item_id} moved {active_bin} -> {over_bin} (drop)")
                return DropResult.RECATEGORIZED
            return DropResult.NONE

        if active_bin == COMPLETED_BIN:
            return DropResult.NONE
        if self.store.move_event(item_id, target):
            return DropResult.REORDERED
        return DropResult.NONE

    # pointer geometry

    def resolve_target(self, rect: Rect, droppables: Dict[Hashable, Rect]) -> Optional[Hashable]:
        ranked = self.collision(rect, droppables)
        return ranked[0] if ranked else None

    def drag_move(self, item_id: int, rect: Rect, droppables: Dict[Hashable, Rect]) -> bool:
        return self.drag_over(item_id, self.resolve_target(rect, droppables))

    def drop(self, item_id: int, rect: Rect, droppables: Dict[Hashable, Rect]) -> DropResult:
        return self.end_drag(item_id, self.resolve_target(rect, droppables))
