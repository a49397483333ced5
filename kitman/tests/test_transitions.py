"""
Tests for the allocation transition table.
"""

import pytest

from kitman.exceptions import InvalidTransition
from kitman.models import AllocationStatus
from kitman.transitions import TRANSITIONS, AllocationEvent, allowed_events, next_status


class TestTransitionTable:
    """The table is closed: listed pairs succeed, everything else raises."""

    @pytest.mark.parametrize('current, event, expected', [
        (AllocationStatus.ACTIVE, AllocationEvent.PICK, AllocationStatus.PICKED),
        (AllocationStatus.PICKED, AllocationEvent.ISSUE, AllocationStatus.ISSUED),
        (AllocationStatus.ISSUED, AllocationEvent.CONSUME, AllocationStatus.CONSUMED),
        (AllocationStatus.ISSUED, AllocationEvent.RETURN, AllocationStatus.RETURNED),
        (AllocationStatus.ISSUED, AllocationEvent.FLOOR_STOCK, AllocationStatus.FLOOR_STOCK),
        (AllocationStatus.ACTIVE, AllocationEvent.CANCEL, AllocationStatus.CANCELLED),
        (AllocationStatus.PICKED, AllocationEvent.CANCEL, AllocationStatus.CANCELLED),
    ])
    def test_allowed(self, current, event, expected):
        assert next_status(current, event) == expected

    def test_every_other_pair_rejected(self):
        for status in AllocationStatus:
            for event in AllocationEvent:
                if (status, event) in TRANSITIONS:
                    continue
                with pytest.raises(InvalidTransition):
                    next_status(status, event)

    def test_issue_from_active_reports_states(self):
        with pytest.raises(InvalidTransition) as exc:
            next_status(AllocationStatus.ACTIVE, AllocationEvent.ISSUE)

        assert exc.value.code == 'INVALID_TRANSITION'
        assert exc.value.current == AllocationStatus.ACTIVE
        assert exc.value.requested == AllocationStatus.ISSUED

    def test_plain_strings_accepted(self):
        assert next_status('ACTIVE', AllocationEvent.PICK) == AllocationStatus.PICKED

    def test_unknown_state_rejected(self):
        with pytest.raises(InvalidTransition):
            next_status('LOST', AllocationEvent.PICK)

    @pytest.mark.parametrize('terminal', [
        AllocationStatus.CONSUMED,
        AllocationStatus.RETURNED,
        AllocationStatus.FLOOR_STOCK,
        AllocationStatus.CANCELLED,
    ])
    def test_terminal_states_accept_nothing(self, terminal):
        assert allowed_events(terminal) == []
