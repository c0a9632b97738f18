from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


class InvalidTransition(ValueError):
    pass


class StaleTransition(Exception):
    """The caller's view of the machine is out of date (version moved on)."""
    pass


HistoryEntry = Dict[str, Any]
Hook = Callable[[HistoryEntry], None]


class StateMachine:
    """
    Small state machine with:
      - allowed transitions map
      - history recording (with actor / metadata)
      - a version counter bumped on every transition; callers may pass
        expected_version to refuse acting on a stale view
      - optional after hooks per (from, to) pair

    Usage:
      sm = StateMachine(state="anonymous", allowed_transitions=SESSION_TRANSITIONS)
      seen = sm.version
      ...
      sm.apply("authenticating", expected_version=seen)
    """

    def __init__(self, state: str, allowed_transitions: Dict[str, List[str]], version: int = 0,
                 history: Optional[List[HistoryEntry]] = None):
        self.state = state or ""
        self.allowed_transitions = allowed_transitions or {}
        self.version = int(version or 0)
        self.history: List[HistoryEntry] = list(history or [])
        self._after_hooks: Dict[Tuple[str, str], List[Hook]] = {}

    def can_transition(self, to_state: str) -> bool:
        return to_state in self.allowed_transitions.get(self.state, [])

    def on(self, from_state: str, to_state: str, fn: Hook) -> None:
        self._after_hooks.setdefault((from_state, to_state), []).append(fn)

    def apply(self, to_state: str, actor: Optional[str] = None, meta: Optional[Dict[str, Any]] = None,
              expected_version: Optional[int] = None) -> HistoryEntry:
        """
        Move to `to_state`. Raises InvalidTransition or StaleTransition.
        Returns the recorded history entry.
        """
        to_state = (to_state or "").strip()
        if not to_state:
            raise InvalidTransition("Empty target state")

        if expected_version is not None and int(expected_version) != self.version:
            raise StaleTransition(f"Version mismatch (expected {expected_version}, got {self.version})")

        if not self.can_transition(to_state):
            raise InvalidTransition(f"Invalid transition: {self.state} -> {to_state}")

        entry: HistoryEntry = {
            "from": self.state,
            "to": to_state,
            "at": datetime.now(timezone.utc).isoformat(sep=" "),
            "actor": actor,
            "meta": dict(meta or {}),
        }

        prev_state = self.state
        self.state = to_state
        self.history.append(entry)
        self.version += 1

        # a failing hook must not undo a transition that already happened
        for fn in self._after_hooks.get((prev_state, to_state), []):
            try:
                fn(entry)
            except Exception:
                logger.exception("Transition hook failed for %s -> %s", prev_state, to_state)

        return entry
