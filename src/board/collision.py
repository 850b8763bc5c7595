from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, List, Tuple


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return self.left + self.width / 2, self.top + self.height / 2

    @property
    def corners(self) -> Tuple[Tuple[float, float], ...]:
        return (
            (self.left, self.top),
            (self.right, self.top),
            (self.left, self.bottom),
            (self.right, self.bottom),
        )


CollisionStrategy = Callable[[Rect, Dict[Hashable, Rect]], List[Hashable]]


def _rank(scores: List[Tuple[float, int, Hashable]]) -> List[Hashable]:
    # distance first, then registration order so equal distances stay stable
    return [key for _, _, key in sorted(scores, key=lambda s: (s[0], s[1]))]


def closest_corners(active: Rect, droppables: Dict[Hashable, Rect]) -> List[Hashable]:
    """Rank droppables by the summed distance between matching corners."""
    scores = []
    for order, (key, rect) in enumerate(droppables.items()):
        distance = sum(
            math.dist(a, b) for a, b in zip(active.corners, rect.corners)
        )
        scores.append((distance, order, key))
    return _rank(scores)


def closest_center(active: Rect, droppables: Dict[Hashable, Rect]) -> List[Hashable]:
    scores = [
        (math.dist(active.center, rect.center), order, key)
        for order, (key, rect) in enumerate(droppables.items())
    ]
    return _rank(scores)
