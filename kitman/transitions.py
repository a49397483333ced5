"""
Allocation state machine.

The transition table is closed: any (state, event) pair not listed below
is rejected with InvalidTransition.
"""

from enum import Enum

from kitman.exceptions import InvalidTransition
from kitman.models.enums import AllocationStatus


class AllocationEvent(str, Enum):
    PICK = 'PICK'
    ISSUE = 'ISSUE'
    CONSUME = 'CONSUME'
    RETURN = 'RETURN'
    FLOOR_STOCK = 'FLOOR_STOCK'
    CANCEL = 'CANCEL'


TRANSITIONS: dict[tuple[AllocationStatus, AllocationEvent], AllocationStatus] = {
    (AllocationStatus.ACTIVE, AllocationEvent.PICK): AllocationStatus.PICKED,
    (AllocationStatus.PICKED, AllocationEvent.ISSUE): AllocationStatus.ISSUED,
    (AllocationStatus.ISSUED, AllocationEvent.CONSUME): AllocationStatus.CONSUMED,
    (AllocationStatus.ISSUED, AllocationEvent.RETURN): AllocationStatus.RETURNED,
    (AllocationStatus.ISSUED, AllocationEvent.FLOOR_STOCK): AllocationStatus.FLOOR_STOCK,
    (AllocationStatus.ACTIVE, AllocationEvent.CANCEL): AllocationStatus.CANCELLED,
    (AllocationStatus.PICKED, AllocationEvent.CANCEL): AllocationStatus.CANCELLED,
}

# State an event leads to, used to report what was requested on rejection
EVENT_TARGETS = {event: target for (_state, event), target in TRANSITIONS.items()}


def next_status(current, event: AllocationEvent) -> AllocationStatus:
    """
    Return the state `event` moves an allocation in `current` to.

    Raises:
        InvalidTransition: If the pair is not in the table
    """
    try:
        current = AllocationStatus(current)
    except ValueError:
        raise InvalidTransition(current=current, requested=EVENT_TARGETS[event]) from None

    target = TRANSITIONS.get((current, event))
    if target is None:
        raise InvalidTransition(current=current, requested=EVENT_TARGETS[event])
    return target


def allowed_events(current) -> list[AllocationEvent]:
    """Events accepted in `current` (empty for terminal states)."""
    return [event for (state, event) in TRANSITIONS if state == current]


def apply(allocation, event: AllocationEvent) -> AllocationStatus:
    """Move `allocation` to its next state in memory. Caller saves."""
    allocation.status = next_status(allocation.status, event)
    return allocation.status
