"""
Admin command tests - authorization, every command, and the CONFIRM protocol.
"""

import pytest

from tidepool.core import dao
from tidepool.core.admin import AdminCommandProcessor, HELP_TEXT, parse_command
from tidepool.core.confirmations import InMemoryConfirmationStore, StoreConfirmationStore
from tidepool.core.state import DEFAULT_LOCK_MSG, DEFAULT_TIDE_WARNING

ADMIN = "1001"


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def admin(state, notifier, clock):
    return AdminCommandProcessor(state, notifier, InMemoryConfirmationStore(),
                                 admin_chat=ADMIN, confirm_timeout_sec=60, clock=clock)


def events():
    return [e.event for e in dao.list_logs(100)]


class TestParseCommand:

    def test_lowercases_and_splits(self):
        assert parse_command("/setCA  abc def ") == ("/setca", "abc def")

    def test_strips_bot_suffix(self):
        assert parse_command("/count@TidePoolBot") == ("/count", "")

    def test_empty(self):
        assert parse_command("   ") == ("", "")


class TestAuthorization:

    def test_other_chat_dropped(self, admin, state, notifier):
        assert admin.handle_message("999", "/settarget 5") is None
        assert notifier.messages == []
        assert state.get_target() == 100
        assert "tg_command" not in events()

    def test_unconfigured_admin_drops_everything(self, state, notifier):
        processor = AdminCommandProcessor(state, notifier, InMemoryConfirmationStore(), admin_chat="")
        assert processor.handle_message("", "/count") is None
        assert notifier.messages == []

    def test_commands_are_logged(self, admin):
        admin.handle_message(ADMIN, "/count")
        entries = dao.list_logs()
        assert entries[0].event == "tg_command"
        assert entries[0].detail == "/count"

    def test_handle_update(self, admin, notifier):
        reply = admin.handle_update({"message": {"chat": {"id": int(ADMIN)}, "text": "/count"}})
        assert "0 / 100" in reply
        assert notifier.messages == [reply]

    def test_update_without_message_ignored(self, admin, notifier):
        assert admin.handle_update({"edited_message": {"text": "/count"}}) is None
        assert admin.handle_update({}) is None
        assert notifier.messages == []


class TestCommands:

    def test_ping(self, admin):
        reply = admin.handle_message(ADMIN, "/ping")
        assert "All systems alive" in reply
        assert "CA: <b>not set</b>" in reply

    def test_count(self, admin, state):
        state.set("count", 25)
        assert admin.handle_message(ADMIN, "/count") == "🌊 Count: <b>25 / 100</b> (25%)"

    def test_status_shows_raw_values(self, admin, state):
        state.set_many({"count": 3, "decree": "<hi>"})
        reply = admin.handle_message(ADMIN, "/status")
        assert "Count: <b>3/100</b>" in reply
        assert "Launched: <b>false</b>" in reply
        assert "&lt;hi&gt;" in reply

    def test_setca(self, admin, state):
        reply = admin.handle_message(ADMIN, "/setCA So1anaContract111")
        assert "Contract address live" in reply
        assert state.get("ca") == "So1anaContract111"
        assert "set_ca" in events()

    def test_setca_too_short(self, admin, state):
        assert admin.handle_message(ADMIN, "/setCA short") == "Usage: /setCA YourSolanaContractAddress"
        assert state.get("ca") == ""

    def test_decree_and_clear(self, admin, state):
        admin.handle_message(ADMIN, "/decree Feed the pool")
        assert state.get("decree") == "Feed the pool"

        admin.handle_message(ADMIN, "/cleardecree")
        assert state.get("decree") == ""

    def test_decree_requires_text(self, admin):
        assert admin.handle_message(ADMIN, "/decree") == "Usage: /decree Your message here"

    def test_bless(self, admin, state):
        assert "#42" in admin.handle_message(ADMIN, "/bless 42")
        assert state.get_blessed() == 42

    @pytest.mark.parametrize("arg", ["", "abc", "0", "-4"])
    def test_bless_invalid(self, admin, state, arg):
        assert admin.handle_message(ADMIN, f"/bless {arg}") == "Usage: /bless 42"
        assert state.get_blessed() is None

    def test_lockdown_default_message(self, admin, state):
        admin.handle_message(ADMIN, "/lockdown")
        assert state.get_bool("locked") is True
        assert state.get("lock_msg") == DEFAULT_LOCK_MSG

    def test_lockdown_custom_message_and_unlock(self, admin, state):
        admin.handle_message(ADMIN, "/lockdown Maintenance")
        assert state.get("lock_msg") == "Maintenance"

        assert "unlocked" in admin.handle_message(ADMIN, "/unlock")
        assert state.get_bool("locked") is False

    def test_settarget(self, admin, state):
        assert admin.handle_message(ADMIN, "/settarget 150") == "✅ Target updated to <b>150</b>."
        assert state.get_target() == 150

    def test_count_reports_new_target(self, admin, state):
        state.set("count", 30)
        admin.handle_message(ADMIN, "/settarget 150")

        assert admin.handle_message(ADMIN, "/count") == "🌊 Count: <b>30 / 150</b> (20%)"

    def test_settarget_invalid(self, admin, state):
        assert admin.handle_message(ADMIN, "/settarget abc") == "Usage: /settarget 150"
        assert state.get_target() == 100

    def test_today(self, admin, state):
        dao.insert_click_record("1.1.1.1")
        dao.insert_click_record("2.2.2.2")
        state.set("count", 2)
        assert admin.handle_message(ADMIN, "/today") == "📅 Last 24h: <b>2</b> offerings\nTotal: <b>2/100</b>"

    def test_velocity_steady_when_idle(self, admin):
        reply = admin.handle_message(ADMIN, "/velocity")
        assert "Last hour: <b>0</b>" in reply
        assert "Steady" in reply

    def test_velocity_surging(self, admin):
        for i in range(3):
            dao.insert_click_record(f"3.3.3.{i}")
        assert "Surging" in admin.handle_message(ADMIN, "/velocity")

    def test_velocity_stalling(self, admin):
        import time
        for i in range(6):
            dao.insert_click_record(f"4.4.4.{i}", clicked_at=time.time() - 3 * 3600)
        assert "Stalling" in admin.handle_message(ADMIN, "/velocity")

    def test_tidewarning(self, admin, state):
        admin.handle_message(ADMIN, "/tidewarning")
        assert state.get("tide_warning") == DEFAULT_TIDE_WARNING

        admin.handle_message(ADMIN, "/tidewarning Last call")
        assert state.get("tide_warning") == "Last call"

        admin.handle_message(ADMIN, "/cleartidewarning")
        assert state.get("tide_warning") == ""

    def test_logs(self, admin):
        dao.append_log("unlock", "")
        reply = admin.handle_message(ADMIN, "/logs")
        assert "Last 20 events" in reply
        assert "unlock" in reply

    def test_help(self, admin):
        assert admin.handle_message(ADMIN, "/help") == HELP_TEXT

    def test_unknown_command(self, admin):
        assert admin.handle_message(ADMIN, "/dance") == "Unknown: <code>/dance</code> — send /help"

    def test_handler_failure_reported(self, admin, monkeypatch):
        def boom(chat_id, arg):
            raise RuntimeError("disk <full>")
        monkeypatch.setitem(admin.commands, "/count", boom)

        assert admin.handle_message(ADMIN, "/count") == "Error: disk &lt;full&gt;"


class TestResetConfirmation:

    def seed(self, state):
        state.set_many({"count": 57, "ca": "So1anaContract111", "blessed": 60, "decree": "x",
                        "tide_warning": "y", "launched": True, "locked": True,
                        "lock_msg": "Closed", "target": 200})
        dao.insert_click_record("1.2.3.4")

    def test_reset_requires_confirm(self, admin, state):
        self.seed(state)
        reply = admin.handle_message(ADMIN, "/reset")

        assert "RESET WARNING" in reply
        assert "within 60 seconds" in reply
        assert state.get_int("count") == 57
        assert "reset_requested" in events()

    def test_confirm_within_window(self, admin, state, clock):
        self.seed(state)
        admin.handle_message(ADMIN, "/reset")
        clock.advance(30)

        assert admin.handle_message(ADMIN, "CONFIRM") == "✅ Reset complete. Count is 0. All cleared."
        values = state.get_all()
        assert values["count"] == "0"
        assert values["ca"] == ""
        assert values["blessed"] == ""
        assert values["decree"] == ""
        assert values["tide_warning"] == ""
        assert values["launched"] == "false"
        assert dao.count_clicks_since(86400) == 0
        assert "reset" in events()

    def test_reset_keeps_lock_and_target(self, admin, state, clock):
        self.seed(state)
        admin.handle_message(ADMIN, "/reset")
        admin.handle_message(ADMIN, "CONFIRM")

        assert state.get_bool("locked") is True
        assert state.get("lock_msg") == "Closed"
        assert state.get_target() == 200

    def test_confirm_after_expiry(self, admin, state, clock):
        self.seed(state)
        admin.handle_message(ADMIN, "/reset")
        clock.advance(61)

        assert admin.handle_message(ADMIN, "CONFIRM") == "Confirmation expired. Send the command again."
        assert state.get_int("count") == 57
        assert "reset_expired" in events()

        # The expired entry is gone; a second CONFIRM is just an unknown command
        assert admin.handle_message(ADMIN, "CONFIRM").startswith("Unknown:")

    def test_confirm_without_pending(self, admin, state):
        assert admin.handle_message(ADMIN, "CONFIRM") == "Unknown: <code>confirm</code> — send /help"

    def test_confirm_is_case_sensitive(self, admin, state):
        self.seed(state)
        admin.handle_message(ADMIN, "/reset")

        assert admin.handle_message(ADMIN, "confirm").startswith("Unknown:")
        assert state.get_int("count") == 57

    def test_new_request_replaces_pending(self, admin, state, clock):
        self.seed(state)
        admin.handle_message(ADMIN, "/reset")
        clock.advance(50)
        admin.handle_message(ADMIN, "/reset")
        clock.advance(50)

        assert admin.handle_message(ADMIN, "CONFIRM").startswith("✅ Reset complete")

    def test_confirm_consumed_once(self, admin, state):
        admin.handle_message(ADMIN, "/reset")
        admin.handle_message(ADMIN, "CONFIRM")
        state.set("count", 5)

        admin.handle_message(ADMIN, "CONFIRM")
        assert state.get_int("count") == 5

    def test_store_backend(self, state, notifier, clock):
        first = AdminCommandProcessor(state, notifier, StoreConfirmationStore(),
                                      admin_chat=ADMIN, confirm_timeout_sec=60, clock=clock)
        second = AdminCommandProcessor(state, notifier, StoreConfirmationStore(),
                                       admin_chat=ADMIN, confirm_timeout_sec=60, clock=clock)
        self.seed(state)

        first.handle_message(ADMIN, "/reset")
        assert second.handle_message(ADMIN, "CONFIRM").startswith("✅ Reset complete")
        assert state.get_int("count") == 0
