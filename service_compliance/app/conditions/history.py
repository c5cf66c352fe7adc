"""
Per-group undo/redo history for condition editing.

Each group owns an append-only list of immutable snapshots and a cursor
pointing at the current one. Recording after an undo discards the redo tail.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .models import Condition

Snapshot = Tuple[Condition, ...]


@dataclass
class _Timeline:
    snapshots: List[Snapshot] = field(default_factory=list)
    cursor: int = -1

    @property
    def current(self) -> Optional[Snapshot]:
        return self.snapshots[self.cursor] if self.cursor >= 0 else None


def _freeze(conditions: Sequence[Condition]) -> Snapshot:
    return tuple(copy.deepcopy(list(conditions)))


def _thaw(snapshot: Snapshot) -> List[Condition]:
    return copy.deepcopy(list(snapshot))


class ConditionHistory:
    """Snapshot history keyed by condition group id.

    With a ``limit``, each group keeps at most that many snapshots and the
    oldest are dropped first.
    """

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit
        self._timelines: Dict[Any, _Timeline] = {}

    def record(self, group_id: Any, conditions: Sequence[Condition]) -> bool:
        """Append the group's current conditions; ``False`` if unchanged."""
        timeline = self._timelines.setdefault(group_id, _Timeline())
        snapshot = _freeze(conditions)
        if timeline.current == snapshot:
            return False

        del timeline.snapshots[timeline.cursor + 1:]
        timeline.snapshots.append(snapshot)
        if self.limit and len(timeline.snapshots) > self.limit:
            del timeline.snapshots[:len(timeline.snapshots) - self.limit]
        timeline.cursor = len(timeline.snapshots) - 1
        return True

    def can_undo(self, group_id: Any) -> bool:
        timeline = self._timelines.get(group_id)
        return timeline is not None and timeline.cursor > 0

    def can_redo(self, group_id: Any) -> bool:
        timeline = self._timelines.get(group_id)
        return timeline is not None and timeline.cursor < len(timeline.snapshots) - 1

    def undo(self, group_id: Any) -> Optional[List[Condition]]:
        """Step back and return the conditions to restore, or ``None``."""
        if not self.can_undo(group_id):
            return None
        timeline = self._timelines[group_id]
        timeline.cursor -= 1
        return _thaw(timeline.snapshots[timeline.cursor])

    def redo(self, group_id: Any) -> Optional[List[Condition]]:
        if not self.can_redo(group_id):
            return None
        timeline = self._timelines[group_id]
        timeline.cursor += 1
        return _thaw(timeline.snapshots[timeline.cursor])

    def current(self, group_id: Any) -> Optional[List[Condition]]:
        timeline = self._timelines.get(group_id)
        if timeline is None or timeline.current is None:
            return None
        return _thaw(timeline.current)

    def clear(self, group_id: Any) -> None:
        self._timelines.pop(group_id, None)
