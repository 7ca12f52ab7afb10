# tests/application/test_outcome.py
import pytest
from application.outcome import HandlerOutcome
from domain.run import RestartType


class TestHandlerOutcome:
    def test_defaults(self):
        outcome = HandlerOutcome(handled=True)
        assert outcome.handled is True
        assert outcome.restart_type == RestartType.NONE
        assert outcome.do_break is False
        assert outcome.restart_from is None
        assert outcome.message == ""

    def test_declined(self):
        outcome = HandlerOutcome.declined("not mine")
        assert outcome.handled is False
        assert outcome.do_break is False
        assert outcome.message == "not mine"

    def test_abort_is_handled_and_breaks(self):
        outcome = HandlerOutcome.abort("give up")
        assert outcome.handled is True
        assert outcome.do_break is True
        assert outcome.message == "give up"

    def test_full_restart_outcome(self):
        outcome = HandlerOutcome(handled=True, restart_type=RestartType.FULL, restart_from="remote_folder")
        assert outcome.restart_type == RestartType.FULL
        assert outcome.restart_from == "remote_folder"

    def test_outcome_frozen(self):
        outcome = HandlerOutcome(handled=True)
        with pytest.raises(Exception):  # FrozenInstanceError
            outcome.handled = False
