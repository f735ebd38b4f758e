"""Lifecycle state machine for the server controller."""

from __future__ import annotations

from enum import Enum, auto

from utils.logging import get_logger

logger = get_logger("relay.state")


class ControllerState(Enum):
    IDLE = auto()
    STARTING = auto()
    RUNNING = auto()
    DRAINING = auto()
    STOPPED = auto()
    FAILED = auto()


class ControllerEvent(Enum):
    START = auto()
    STARTED = auto()
    FAIL = auto()
    SIGNAL = auto()
    DRAINED = auto()


_TRANSITIONS = {
    ControllerState.IDLE: {
        ControllerEvent.START: ControllerState.STARTING,
    },
    ControllerState.STARTING: {
        ControllerEvent.STARTED: ControllerState.RUNNING,
        ControllerEvent.FAIL: ControllerState.FAILED,
    },
    ControllerState.RUNNING: {
        ControllerEvent.SIGNAL: ControllerState.DRAINING,
        ControllerEvent.FAIL: ControllerState.FAILED,
    },
    ControllerState.DRAINING: {
        ControllerEvent.DRAINED: ControllerState.STOPPED,
    },
}


class LifecycleStateMachine:
    def __init__(self):
        self.state = ControllerState.IDLE

    def can(self, event: ControllerEvent) -> bool:
        return event in _TRANSITIONS.get(self.state, {})

    def transition(self, event: ControllerEvent) -> ControllerState:
        if not self.can(event):
            logger.warning(
                "Invalid state transition: %s --%s--> %s", self.state, event, self.state
            )
            return self.state
        self.state = _TRANSITIONS[self.state][event]
        return self.state
