"""
Observable state holder shared by the controllers and the asset store.
"""

import copy
import logging
import threading
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], None]


class BaseController:
    """
    Holds a named state dict and notifies subscribers on every update.

    Subclasses set `name` and pass their initial state. Listeners receive a
    deep copy of the new state, so they can never mutate it in place.
    """

    name = "BaseController"

    def __init__(self, state: Dict[str, Any] = None):
        self._state: Dict[str, Any] = dict(state or {})
        self._listeners: List[Listener] = []
        self._state_lock = threading.RLock()
        self.disabled = False

    @property
    def state(self) -> Dict[str, Any]:
        with self._state_lock:
            return copy.deepcopy(self._state)

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> bool:
        """Remove a listener; returns False if it was not subscribed."""
        if listener not in self._listeners:
            return False
        self._listeners.remove(listener)
        return True

    def update(self, state: Dict[str, Any], overwrite: bool = False) -> None:
        """
        Merge (or replace) state and notify listeners.

        Args:
            state: Partial state to merge
            overwrite: Replace the whole state instead of merging
        """
        self.notify(self._apply(state, overwrite))

    def _apply(self, state: Dict[str, Any], overwrite: bool = False) -> Dict[str, Any]:
        """Change state without notifying; returns a copy of the new state."""
        with self._state_lock:
            if overwrite:
                self._state = dict(state)
            else:
                self._state.update(state)
            return copy.deepcopy(self._state)

    def notify(self, snapshot: Dict[str, Any] = None) -> None:
        if snapshot is None:
            snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("%s listener failed", self.name)
