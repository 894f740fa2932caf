"""
Line-reveal bookkeeping for assistant turns.

Per turn: Pending (0 lines) -> Revealing (0 < k < total) -> Complete (total).
Scheduling lives in the controller; this module only holds the counts.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..config import RevealMode


class RevealPhase(Enum):
    PENDING = "pending"
    REVEALING = "revealing"
    COMPLETE = "complete"


class AnimationState:
    """
    Visible line count per turn id plus the currently animating id(s).
    Counts never decrease and never exceed the turn's total.
    """

    def __init__(self, mode: RevealMode = RevealMode.EXCLUSIVE):
        self.mode = mode
        self.visible: Dict[str, int] = {}
        self._totals: Dict[str, int] = {}
        self._active: List[str] = []

    @property
    def active_id(self) -> Optional[str]:
        """Most recently started turn that is still animating."""
        return self._active[-1] if self._active else None

    @property
    def active_ids(self) -> Tuple[str, ...]:
        return tuple(self._active)

    def is_active(self, turn_id: str) -> bool:
        return turn_id in self._active

    def total(self, turn_id: str) -> int:
        return self._totals.get(turn_id, 0)

    def begin(self, turn_id: str, total: int) -> Optional[str]:
        """
        Register a turn at 0 visible lines and make it active.
        In exclusive mode returns the id it preempted, if any; the preempted
        turn keeps its count but is no longer advanced.
        """
        preempted = None
        if self.mode is RevealMode.EXCLUSIVE and self._active:
            preempted = self._active.pop()
            self._active.clear()
        self.visible[turn_id] = 0
        self._totals[turn_id] = total
        self._active.append(turn_id)
        return preempted

    def advance(self, turn_id: str) -> int:
        """Reveal one more line of an active turn; no-op for inactive turns."""
        count = self.visible.get(turn_id, 0)
        if turn_id not in self._active:
            return count
        total = self._totals[turn_id]
        if count < total:
            count += 1
            self.visible[turn_id] = count
        if count >= total:
            self._active.remove(turn_id)
        return count

    def phase(self, turn_id: str) -> Optional[RevealPhase]:
        if turn_id not in self.visible:
            return None
        count = self.visible[turn_id]
        if count >= self._totals[turn_id]:
            return RevealPhase.COMPLETE
        if count == 0:
            return RevealPhase.PENDING
        return RevealPhase.REVEALING

    def clear(self) -> None:
        self.visible.clear()
        self._totals.clear()
        self._active.clear()
