#!/usr/bin/env python
# Channel attach state machine
import enum
from typing import Dict, FrozenSet


class ChannelState(str, enum.Enum):
    DETACHED = "detached"
    ATTACHING = "attaching"
    ATTACHED = "attached"
    SUSPENDED = "suspended"
    FAILED = "failed"


TRANSITIONS: Dict[ChannelState, FrozenSet[ChannelState]] = {
    ChannelState.DETACHED: frozenset({ChannelState.ATTACHING}),
    ChannelState.ATTACHING: frozenset({ChannelState.ATTACHED, ChannelState.FAILED, ChannelState.DETACHED}),
    ChannelState.ATTACHED: frozenset({ChannelState.SUSPENDED, ChannelState.DETACHED}),
    ChannelState.SUSPENDED: frozenset({ChannelState.ATTACHING, ChannelState.DETACHED}),
    ChannelState.FAILED: frozenset({ChannelState.ATTACHING, ChannelState.DETACHED}),
}


class InvalidTransition(Exception):
    def __init__(self, current: ChannelState, target: ChannelState):
        self.current = current
        self.target = target
        super().__init__(f"Invalid channel transition {current.value} -> {target.value}")


def can_transition(current: ChannelState, target: ChannelState) -> bool:
    return target in TRANSITIONS[current]


def transition(current: ChannelState, target: ChannelState) -> ChannelState:
    """Validate a state change and return the new state"""
    if not can_transition(current, target):
        raise InvalidTransition(current, target)
    return target


def backoff_delay(attempt: int, base: float, maximum: float) -> float:
    """Delay before retry number `attempt` (1-based): base, 2*base, 4*base... capped"""
    if attempt < 1:
        return 0.0
    return min(base * (2 ** (attempt - 1)), maximum)
