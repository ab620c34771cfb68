"""Lifecycle state machine for a managed server."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class LifecycleState(Enum):
    """Server lifecycle state."""
    NOT_INSTALLED = "not_installed"
    INSTALLED = "installed"
    STARTING = "starting"
    UPGRADING = "upgrading"
    ONLINE = "online"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


_ALLOWED_TRANSITIONS: dict[LifecycleState, frozenset[LifecycleState]] = {
    LifecycleState.NOT_INSTALLED: frozenset({LifecycleState.INSTALLED, LifecycleState.STARTING}),
    LifecycleState.INSTALLED: frozenset({LifecycleState.INSTALLED, LifecycleState.STARTING}),
    LifecycleState.STARTING: frozenset({LifecycleState.UPGRADING, LifecycleState.ONLINE}),
    LifecycleState.UPGRADING: frozenset({LifecycleState.ONLINE}),
    LifecycleState.ONLINE: frozenset({LifecycleState.STOPPING}),
    LifecycleState.STOPPING: frozenset({LifecycleState.STOPPED}),
    LifecycleState.STOPPED: frozenset({LifecycleState.INSTALLED, LifecycleState.STARTING}),
    # Recovery from a failure is always an explicit caller retry.
    LifecycleState.FAILED: frozenset(
        {LifecycleState.INSTALLED, LifecycleState.STARTING, LifecycleState.STOPPING}
    ),
}


class InvalidTransition(Exception):
    """Raised when a transition is not permitted from the current state."""

    def __init__(self, current: LifecycleState, target: LifecycleState) -> None:
        super().__init__(f"Cannot transition from {current.name} to {target.name}")
        self.current = current
        self.target = target


@dataclass
class StateChange:
    """A recorded transition."""
    state: LifecycleState
    at: float
    reason: str = ""


@dataclass
class LifecycleStateMachine:
    """Tracks the current lifecycle state and its history.

    Every state may move to FAILED; other moves follow the transition table.
    """
    state: LifecycleState = LifecycleState.NOT_INSTALLED
    history: list[StateChange] = field(default_factory=list)
    error_message: str = ""

    def __post_init__(self) -> None:
        self.history.append(StateChange(self.state, time.time()))

    def can_transition(self, target: LifecycleState) -> bool:
        if target is LifecycleState.FAILED:
            return True
        return target in _ALLOWED_TRANSITIONS[self.state]

    def transition(self, target: LifecycleState, reason: str = "") -> None:
        """Move to ``target``.

        Raises:
            InvalidTransition: If the move is not permitted.
        """
        if not self.can_transition(target):
            raise InvalidTransition(self.state, target)
        self.state = target
        if target is not LifecycleState.FAILED:
            self.error_message = ""
        self.history.append(StateChange(target, time.time(), reason))

    def fail(self, error: str) -> None:
        """Mark the lifecycle as failed.

        Args:
            error: Error message.
        """
        self.transition(LifecycleState.FAILED, reason=error)
        self.error_message = error

    def visited(self) -> list[LifecycleState]:
        """Return the states entered so far, oldest first."""
        return [change.state for change in self.history]
