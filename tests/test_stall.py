"""
Idle-stall detector tests.
"""

import time

from tidepool.core import config, dao
from tidepool.core.stall import IdleStallDetector, stall_message


class TestStallMessage:

    def test_three_hour_window(self):
        text = stall_message(12, 100, 10800)
        assert "No offerings in 3 hours." in text
        assert "Count: <b>12/100</b>" in text

    def test_one_hour_window(self):
        assert "No offerings in 1 hour." in stall_message(0, 100, 3600)


class TestIdleStallDetector:

    def test_notifies_when_idle(self, state, notifier):
        state.set("count", 12)
        detector = IdleStallDetector(state, notifier, window_sec=10800)

        assert detector.check() is True
        assert len(notifier.containing("Tide stalling")) == 1
        assert "12/100" in notifier.messages[0]

    def test_recent_click_suppresses(self, state, notifier):
        dao.insert_click_record("1.2.3.4", clicked_at=time.time() - 60)

        assert IdleStallDetector(state, notifier, window_sec=10800).check() is False
        assert notifier.messages == []

    def test_old_click_does_not_count(self, state, notifier):
        dao.insert_click_record("1.2.3.4", clicked_at=time.time() - 4 * 3600)

        assert IdleStallDetector(state, notifier, window_sec=10800).check() is True

    def test_launched_is_silent(self, state, notifier):
        state.set("launched", True)

        assert IdleStallDetector(state, notifier).check() is False
        assert notifier.messages == []

    def test_does_not_mutate_state(self, state, notifier):
        before = state.get_all()
        IdleStallDetector(state, notifier).check()
        assert state.get_all() == before

    def test_explicit_now(self, state, notifier):
        dao.insert_click_record("1.2.3.4", clicked_at=1000.0)
        detector = IdleStallDetector(state, notifier, window_sec=100)

        assert detector.check(now=1050.0) is False
        assert detector.check(now=1200.0) is True

    def test_store_failure_swallowed(self, tmp_path, monkeypatch, notifier):
        monkeypatch.setattr(config, "DB_PATH", str(tmp_path))
        from tidepool.core.state import StateRepository

        assert IdleStallDetector(StateRepository(), notifier).check() is False
        assert notifier.messages == []
