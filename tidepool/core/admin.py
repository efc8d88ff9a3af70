"""
Admin command processor for the operator's Telegram chat.

Each chat moves IDLE -> PENDING_CONFIRM -> (CONFIRMED | EXPIRED) -> IDLE for
destructive commands; every other command runs immediately. Messages from
any chat other than the configured operator chat are dropped without reply.
"""

import html
import time
from typing import Any, Callable, Dict, Optional

from . import config, dao
from .errors import AuthorizationError, ExpiredConfirmationError, ValidationError
from .milestones import percent
from .state import DEFAULT_LOCK_MSG, DEFAULT_TIDE_WARNING, StateRepository, parse_int
from ..util.logging import logger

CONFIRM_TOKEN = "CONFIRM"
DESTRUCTIVE_COMMANDS = {"/reset"}

HELP_TEXT = (
    "🦞 <b>Tide Pool Commands</b>\n\n"
    "/ping /count /status /today /velocity /logs\n"
    "/setCA &lt;addr&gt;\n"
    "/decree &lt;msg&gt; — /cleardecree\n"
    "/bless &lt;n&gt;\n"
    "/settarget &lt;n&gt;\n"
    "/lockdown [msg] — /unlock\n"
    "/tidewarning [msg] — /cleartidewarning\n"
    "/reset"
)


def parse_command(text: str):
    """Split a message into (command, argument).

    The command is the first whitespace-delimited token, lowercased, with any
    "@botname" suffix removed. The argument is the trimmed remainder.
    """
    parts = text.strip().split(None, 1)
    if not parts:
        return "", ""
    command = parts[0].lower().split("@", 1)[0]
    argument = parts[1].strip() if len(parts) > 1 else ""
    return command, argument


def _positive_int(arg: str, usage: str) -> int:
    value = parse_int(arg)
    if value is None or value < 1:
        raise ValidationError(usage)
    return value


class AdminCommandProcessor:
    """Parse, authorize and execute operator commands."""

    def __init__(self, state: StateRepository, notifier, confirmations,
                 admin_chat: str = None, confirm_timeout_sec: int = None,
                 clock: Callable[[], float] = time.time):
        self.state = state
        self.notifier = notifier
        self.confirmations = confirmations
        self.admin_chat = str(config.TELEGRAM_ADMIN_CHAT if admin_chat is None else admin_chat)
        self.confirm_timeout_sec = config.CONFIRM_TIMEOUT_SEC if confirm_timeout_sec is None else confirm_timeout_sec
        self.clock = clock

        self.commands: Dict[str, Callable[[str, str], Optional[str]]] = {
            "/ping": self.cmd_ping,
            "/count": self.cmd_count,
            "/status": self.cmd_status,
            "/setca": self.cmd_setca,
            "/decree": self.cmd_decree,
            "/cleardecree": self.cmd_cleardecree,
            "/bless": self.cmd_bless,
            "/lockdown": self.cmd_lockdown,
            "/unlock": self.cmd_unlock,
            "/settarget": self.cmd_settarget,
            "/today": self.cmd_today,
            "/velocity": self.cmd_velocity,
            "/tidewarning": self.cmd_tidewarning,
            "/cleartidewarning": self.cmd_cleartidewarning,
            "/logs": self.cmd_logs,
            "/reset": self.cmd_reset,
            "/help": self.cmd_help,
        }
        self.confirmed_handlers: Dict[str, Callable[[], str]] = {
            "/reset": self.execute_reset,
        }

    # Entry points
    def handle_update(self, update: Dict[str, Any]) -> Optional[str]:
        """Handle a Telegram webhook update. Updates without a message are ignored."""
        message = (update or {}).get("message")
        if not message:
            return None

        chat_id = str((message.get("chat") or {}).get("id"))
        text = (message.get("text") or "").strip()
        return self.handle_message(chat_id, text)

    def handle_message(self, chat_id: str, text: str) -> Optional[str]:
        """Process one operator message and return the reply that was sent, if any."""
        chat_id = str(chat_id)
        text = (text or "").strip()

        try:
            self._authorize(chat_id)
        except AuthorizationError:
            logger.log_admin_command(chat_id, parse_command(text)[0], "dropped", {"reason": "unauthorized"})
            return None

        reply = None
        try:
            dao.append_log("tg_command", text[:120])
            reply = self._process(chat_id, text)
        except ValidationError as e:
            logger.log_admin_command(chat_id, parse_command(text)[0], "rejected", {"usage": e.usage})
            reply = e.usage
        except ExpiredConfirmationError as e:
            logger.log_admin_command(chat_id, e.command, "expired")
            self._append_log_quietly(f"{e.command.lstrip('/')}_expired", e.command)
            reply = "Confirmation expired. Send the command again."
        except Exception as e:
            logger.error(f"Admin command failed: {e}")
            reply = f"Error: {html.escape(str(e))}"

        if reply:
            self.notifier.send(reply)
        return reply

    def _authorize(self, chat_id: str) -> None:
        if not self.admin_chat or chat_id != self.admin_chat:
            raise AuthorizationError(chat_id)

    def _process(self, chat_id: str, text: str) -> Optional[str]:
        if text == CONFIRM_TOKEN:
            pending = self.confirmations.pop(chat_id)
            if pending is not None:
                if pending.is_expired(self.clock()):
                    raise ExpiredConfirmationError(pending.command)
                logger.log_admin_command(chat_id, pending.command, "confirmed")
                return self.confirmed_handlers[pending.command]()

        command, arg = parse_command(text)
        handler = self.commands.get(command)
        if handler is None:
            logger.log_admin_command(chat_id, command, "unknown")
            return f"Unknown: <code>{html.escape(command)}</code> — send /help"

        if command in DESTRUCTIVE_COMMANDS:
            return self._request_confirmation(chat_id, command, handler, arg)

        reply = handler(chat_id, arg)
        logger.log_admin_command(chat_id, command)
        return reply

    def _request_confirmation(self, chat_id: str, command: str, handler, arg: str) -> str:
        """Park a destructive command until CONFIRM arrives; a newer request replaces an older one."""
        self.confirmations.put(chat_id, command, self.clock() + self.confirm_timeout_sec)
        dao.append_log(f"{command.lstrip('/')}_requested", command)
        logger.log_admin_command(chat_id, command, "pending", {"timeout_sec": self.confirm_timeout_sec})
        return handler(chat_id, arg)

    def _append_log_quietly(self, event: str, detail: str) -> None:
        try:
            dao.append_log(event, detail)
        except Exception as e:
            logger.error(f"Could not append log '{event}': {e}")

    # Commands
    def cmd_ping(self, chat_id: str, arg: str) -> str:
        dao.ping()
        s = self.state.snapshot()
        return (
            "✅ <b>All systems alive.</b>\n\n"
            "Database: online\n"
            f"Count: <b>{s.count}/{s.target}</b>\n"
            f"CA: <b>{'set' if s.ca else 'not set'}</b>"
        )

    def cmd_count(self, chat_id: str, arg: str) -> str:
        count = self.state.get_int("count")
        target = self.state.get_target()
        return f"🌊 Count: <b>{count} / {target}</b> ({percent(count, target)}%)"

    def cmd_status(self, chat_id: str, arg: str) -> str:
        s = self.state.get_all()
        return (
            "📊 <b>Status</b>\n\n"
            f"Count: <b>{s['count']}/{s['target']}</b>\n"
            f"Launched: <b>{s['launched']}</b>\n"
            f"Locked: <b>{s['locked']}</b>\n"
            f"CA: <b>{html.escape(s['ca']) or 'not set'}</b>\n"
            f"Decree: <b>{html.escape(s['decree']) or 'none'}</b>\n"
            f"Warning: <b>{html.escape(s['tide_warning']) or 'none'}</b>\n"
            f"Blessed: <b>{s['blessed'] or 'none'}</b>"
        )

    def cmd_setca(self, chat_id: str, arg: str) -> str:
        if not arg or len(arg) < 10:
            raise ValidationError("Usage: /setCA YourSolanaContractAddress")
        self.state.set("ca", arg)
        dao.append_log("set_ca", arg)
        return (
            "✅ <b>Contract address live.</b>\n\n"
            f"<code>{html.escape(arg)}</code>\n\n"
            "Site updates within 30 seconds."
        )

    def cmd_decree(self, chat_id: str, arg: str) -> str:
        if not arg:
            raise ValidationError("Usage: /decree Your message here")
        self.state.set("decree", arg)
        dao.append_log("decree", arg)
        return f"✅ Decree live:\n<i>\"{html.escape(arg)}\"</i>"

    def cmd_cleardecree(self, chat_id: str, arg: str) -> str:
        self.state.set("decree", "")
        dao.append_log("clear_decree", "")
        return "✅ Decree cleared. Daily quote restored."

    def cmd_bless(self, chat_id: str, arg: str) -> str:
        n = _positive_int(arg, "Usage: /bless 42")
        self.state.set("blessed", n)
        dao.append_log("bless", str(n))
        return f"✅ Click <b>#{n}</b> marked as The Blessed One."

    def cmd_lockdown(self, chat_id: str, arg: str) -> str:
        message = arg or DEFAULT_LOCK_MSG
        self.state.set_many({"locked": True, "lock_msg": message})
        dao.append_log("lockdown", message)
        return (
            "🔒 <b>Site locked.</b>\n\n"
            f"<i>\"{html.escape(message)}\"</i>\n\n"
            "Use /unlock to reopen."
        )

    def cmd_unlock(self, chat_id: str, arg: str) -> str:
        self.state.set("locked", False)
        dao.append_log("unlock", "")
        return "🔓 Site unlocked. Button active again."

    def cmd_settarget(self, chat_id: str, arg: str) -> str:
        n = _positive_int(arg, "Usage: /settarget 150")
        self.state.set("target", n)
        dao.append_log("set_target", str(n))
        return f"✅ Target updated to <b>{n}</b>."

    def cmd_today(self, chat_id: str, arg: str) -> str:
        day = dao.count_clicks_since(24 * 60 * 60)
        total = self.state.get_int("count")
        target = self.state.get_target()
        return f"📅 Last 24h: <b>{day}</b> offerings\nTotal: <b>{total}/{target}</b>"

    def cmd_velocity(self, chat_id: str, arg: str) -> str:
        last_6h = dao.count_clicks_since(6 * 60 * 60)
        last_1h = dao.count_clicks_since(60 * 60)
        avg = last_6h / 6

        trend = "➡️ Steady"
        if last_1h > avg * 1.5:
            trend = "📈 Surging"
        elif last_1h < avg * 0.5 and last_6h > 0:
            trend = "📉 Stalling"

        return (
            "⚡ <b>Velocity</b>\n\n"
            f"Last hour: <b>{last_1h}</b>\n"
            f"6h avg: <b>{avg:.1f}/hr</b>\n"
            f"{trend}"
        )

    def cmd_tidewarning(self, chat_id: str, arg: str) -> str:
        message = arg or DEFAULT_TIDE_WARNING
        self.state.set("tide_warning", message)
        dao.append_log("tide_warning", message)
        return f"⚠️ Warning set:\n<i>\"{html.escape(message)}\"</i>"

    def cmd_cleartidewarning(self, chat_id: str, arg: str) -> str:
        self.state.set("tide_warning", "")
        dao.append_log("clear_tide_warning", "")
        return "✅ Tide warning cleared."

    def cmd_logs(self, chat_id: str, arg: str) -> str:
        entries = dao.list_logs(20)
        if not entries:
            return "No logs yet."

        lines = ["📋 <b>Last 20 events:</b>\n"]
        for entry in entries:
            line = f"<code>{entry.created_at.strftime('%H:%M:%S')}</code> <b>{html.escape(entry.event)}</b>"
            if entry.detail:
                line += f" — {html.escape(entry.detail[:50])}"
            lines.append(line)
        return "\n".join(lines)

    def cmd_reset(self, chat_id: str, arg: str) -> str:
        return (
            "⚠️ <b>RESET WARNING</b>\n\n"
            "This wipes count, CA, and all click records.\n\n"
            f"Reply <b>{CONFIRM_TOKEN}</b> within {self.confirm_timeout_sec} seconds to proceed."
        )

    def cmd_help(self, chat_id: str, arg: str) -> str:
        return HELP_TEXT

    # Confirmed destructive operations
    def execute_reset(self) -> str:
        """Zero the counter, clear operator fields and forget every click."""
        self.state.set_many({
            "count": 0,
            "ca": "",
            "blessed": "",
            "decree": "",
            "tide_warning": "",
            "launched": False,
        })
        deleted = dao.delete_all_click_records()
        dao.append_log("reset", "Full reset")
        logger.log_operation("reset", "success", {"clicks_deleted": deleted})
        return "✅ Reset complete. Count is 0. All cleared."
