"""
Shared plumbing for the workspace model stores.

A store owns exactly one immutable snapshot. Mutators compute a new snapshot
and hand it to ``_commit``, which swaps it in and notifies subscribers with
``(previous, current)``. Rendering surfaces can also contribute per-stop
actions (e.g. focus a stop on a map) through a scoped register/unregister
pair.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Dict, Generic, Iterator, List, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

StateT = TypeVar("StateT", bound=BaseModel)
ModelT = TypeVar("ModelT", bound=BaseModel)
Listener = Callable[[StateT, StateT], None]
StopAction = Callable[[int], None]


class WorkspaceStore(Generic[StateT]):
    """Single-owner holder of a workspace snapshot."""

    def __init__(self, initial_state: StateT):
        self._state: StateT = initial_state
        self._listeners: List[Listener] = []
        self._stop_actions: Dict[int, List[StopAction]] = {}
        self._history_size = 0

    @property
    def state(self) -> StateT:
        """Current snapshot. Snapshots are frozen and never change after commit."""
        return self._state

    @property
    def history_size(self) -> int:
        """Number of committed transitions."""
        return self._history_size

    def _commit(self, new_state: StateT, reason: str) -> StateT:
        previous = self._state
        self._state = new_state
        self._history_size += 1
        logger.debug(f"[Workspace] {reason}")
        for listener in list(self._listeners):
            try:
                listener(previous, new_state)
            except Exception as e:
                logger.error(f"[Workspace] Listener failed after '{reason}': {e}")
        return new_state

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns the matching unregister callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @contextmanager
    def subscription(self, listener: Listener) -> Iterator[None]:
        unsubscribe = self.subscribe(listener)
        try:
            yield
        finally:
            unsubscribe()

    # =========================================================================
    # Stop actions
    # =========================================================================

    def register_stop_action(self, stop_index: int, action: StopAction) -> Callable[[], None]:
        """
        Register an action for the stop at ``stop_index``.

        Returns:
            Callable removing exactly this registration
        """
        self._stop_actions.setdefault(stop_index, []).append(action)

        def unregister() -> None:
            actions = self._stop_actions.get(stop_index, [])
            if action in actions:
                actions.remove(action)
            if not actions:
                self._stop_actions.pop(stop_index, None)

        return unregister

    @contextmanager
    def stop_action(self, stop_index: int, action: StopAction) -> Iterator[None]:
        unregister = self.register_stop_action(stop_index, action)
        try:
            yield
        finally:
            unregister()

    def registered_stop_actions(self, stop_index: int) -> int:
        return len(self._stop_actions.get(stop_index, []))

    def focus_stop(self, stop_index: int) -> int:
        """Run the actions registered for ``stop_index``; returns how many ran."""
        actions = list(self._stop_actions.get(stop_index, []))
        for action in actions:
            action(stop_index)
        return len(actions)


def validated_copy(model: ModelT, **fields) -> ModelT:
    """
    Copy of ``model`` with ``fields`` applied through pydantic validation.

    Form values arrive as plain strings (``"SPECIAL"``, ``"INBOUND"``); unlike
    ``model_copy(update=...)`` this coerces them to the field types.

    Raises:
        pydantic.ValidationError: When a value cannot be coerced
    """
    return type(model).model_validate({**dict(model), **fields})


def replace_at(items: list, index: int, value) -> list:
    """New list with ``items[index]`` replaced."""
    updated = list(items)
    updated[index] = value
    return updated


def in_range(items: list, index: int) -> bool:
    return 0 <= index < len(items)
