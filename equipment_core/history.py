"""
Command-based undo/redo.

A command pairs a forward action with its inverse. Commands are recorded
after the action has already been applied, so recording never executes
anything; undo/redo invoke the stored callables.

The stack is domain-agnostic: it never inspects what a command touches.
Callers capture value snapshots (not live references) when building a
command so later mutations cannot corrupt its "before" state.
"""

import logging
from collections import deque
from typing import Callable, Optional


logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 100


class Command:
    """An atomic reversible action."""

    def __init__(self, description: str, undo: Callable[[], None], redo: Callable[[], None]):
        self.description = description
        self._undo = undo
        self._redo = redo

    def undo(self):
        self._undo()

    def redo(self):
        self._redo()

    def __repr__(self) -> str:
        return f"Command({self.description!r})"


class CompoundCommand(Command):
    """
    An ordered group of commands recorded as one undo step.

    Children are undone in reverse order and redone in forward order.
    """

    def __init__(self, description: str, commands: Optional[list[Command]] = None):
        self.description = description
        self.commands: list[Command] = list(commands or [])

    def add(self, command: Command):
        self.commands.append(command)

    def undo(self):
        for command in reversed(self.commands):
            command.undo()

    def redo(self):
        for command in self.commands:
            command.redo()

    def __len__(self) -> int:
        return len(self.commands)

    def __repr__(self) -> str:
        return f"CompoundCommand({self.description!r}, {len(self.commands)} commands)"


class UndoRedoStack:
    """
    Two-stack undo/redo history.

    Features:
    - Bounded depth (oldest entries dropped silently on overflow)
    - Recording a new command invalidates redo history
    - State-changed callbacks for UI refresh (can_undo/can_redo labels)
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE):
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self._max_size = max_size
        self._undo_stack: deque[Command] = deque(maxlen=max_size)
        self._redo_stack: deque[Command] = deque(maxlen=max_size)
        self._on_state_changed_callbacks: list[Callable[[], None]] = []

    # --- Properties ---

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self._undo_stack) > 0

    @property
    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self._redo_stack) > 0

    @property
    def undo_depth(self) -> int:
        return len(self._undo_stack)

    @property
    def redo_depth(self) -> int:
        return len(self._redo_stack)

    @property
    def undo_description(self) -> Optional[str]:
        """Description of the command undo would revert, if any."""
        return self._undo_stack[-1].description if self._undo_stack else None

    @property
    def redo_description(self) -> Optional[str]:
        """Description of the command redo would re-apply, if any."""
        return self._redo_stack[-1].description if self._redo_stack else None

    # --- Change Callbacks ---

    def on_state_changed(self, callback: Callable[[], None]):
        """Register a callback invoked after record/undo/redo/clear."""
        self._on_state_changed_callbacks.append(callback)

    def _notify(self):
        for callback in self._on_state_changed_callbacks:
            callback()

    # --- Operations ---

    def record(self, command: Command):
        """Push an already-applied command and clear redo history."""
        self._undo_stack.append(command)
        self._redo_stack.clear()
        logger.debug("Recorded %r (depth %d)", command, len(self._undo_stack))
        self._notify()

    def undo(self) -> Optional[Command]:
        """Revert the most recent command. Returns it, or None if empty."""
        if not self._undo_stack:
            return None

        command = self._undo_stack.pop()
        command.undo()
        self._redo_stack.append(command)
        logger.debug("Undid %r", command)
        self._notify()
        return command

    def redo(self) -> Optional[Command]:
        """Re-apply the most recently undone command. Returns it, or None if empty."""
        if not self._redo_stack:
            return None

        command = self._redo_stack.pop()
        command.redo()
        self._undo_stack.append(command)
        logger.debug("Redid %r", command)
        self._notify()
        return command

    def clear(self):
        """Empty both stacks."""
        self._undo_stack.clear()
        self._redo_stack.clear()
        self._notify()
