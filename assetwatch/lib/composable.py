"""
Controller that composes several controllers into one observable state tree.
"""

from typing import Any, Dict, Iterable

from .base_controller import BaseController


class ComposableController(BaseController):
    """
    Merges child controller state, keyed by each child's `name`.

    Every child notification replaces that child's entry and republishes
    the merged tree. Keys are partitioned by name, so no merge conflicts
    exist; the per-child entry is always the latest published snapshot.
    """

    name = "ComposableController"

    def __init__(self, controllers: Iterable[BaseController] = ()):
        self.controllers = list(controllers)
        names = [c.name for c in self.controllers]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"Duplicate controller names: {', '.join(sorted(duplicates))}")

        super().__init__({c.name: c.state for c in self.controllers})
        for controller in self.controllers:
            controller.subscribe(self._child_listener(controller))

    def _child_listener(self, controller: BaseController):
        def listener(state: Dict[str, Any]) -> None:
            # Re-read under our lock so an out-of-order notification cannot
            # leave an older snapshot in place
            with self._state_lock:
                snapshot = self._apply({controller.name: controller.state})
            self.notify(snapshot)

        return listener

    @property
    def flat_state(self) -> Dict[str, Any]:
        """
        Merged state of all child controllers, keyed by controller name.

        Returns:
            A copy of the composed state tree
        """
        return self.state
