"""
Outbound notification channel to the operator's Telegram chat.

send() never blocks the caller and never raises: messages are queued onto a
single background worker which delivers them with a bounded timeout and a
small number of retries. Messages that still fail are dead-lettered to the
audit log.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, Optional

import requests

from . import config, dao
from .errors import TransientStoreError
from ..util.logging import logger


def _is_permanent(error: requests.RequestException) -> bool:
    response = getattr(error, "response", None)
    if not isinstance(error, requests.HTTPError) or response is None:
        return False
    return 400 <= response.status_code < 500 and response.status_code != 429


class LogOnlyNotifier:
    """Notifier used when no bot token is configured: messages are only logged."""

    def send(self, text: str) -> None:
        logger.log_notification("skipped", text, error="telegram not configured")

    def flush(self, timeout: float = None) -> None:
        pass

    def close(self) -> None:
        pass


class TelegramNotifier:
    """Fire-and-forget sender for the Telegram Bot API."""

    def __init__(self, bot_token: str, chat_id: str, api_base: str = None,
                 timeout_sec: float = None, retries: int = None, backoff_sec: float = None,
                 session: Optional[requests.Session] = None):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.api_base = (api_base or config.TELEGRAM_API_BASE).rstrip("/")
        self.timeout_sec = config.NOTIFY_TIMEOUT_SEC if timeout_sec is None else timeout_sec
        self.retries = config.NOTIFY_RETRIES if retries is None else retries
        self.backoff_sec = config.NOTIFY_RETRY_BACKOFF_SEC if backoff_sec is None else backoff_sec
        self.session = session or requests.Session()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="notify")
        self._futures: List = []
        self._futures_lock = threading.Lock()

    def _url(self, method: str) -> str:
        return f"{self.api_base}/bot{self.bot_token}/{method}"

    def send(self, text: str) -> None:
        """Queue a message for delivery and return immediately."""
        with self._futures_lock:
            try:
                future = self._executor.submit(self.deliver, text)
            except RuntimeError as e:
                # Executor already shut down
                logger.log_notification("failed", text, error=str(e))
                return
            self._futures = [f for f in self._futures if not f.done()]
            self._futures.append(future)

    def deliver(self, text: str) -> bool:
        """Deliver one message synchronously, retrying on failure.

        Client errors (4xx other than 429) are rejected by Telegram for good,
        e.g. malformed HTML, and go straight to the dead letter.
        """
        attempts = self.retries + 1
        last_error = None
        for attempt in range(1, attempts + 1):
            try:
                response = self.session.post(
                    self._url("sendMessage"),
                    json={"chat_id": self.chat_id, "text": text, "parse_mode": "HTML"},
                    timeout=self.timeout_sec,
                )
                response.raise_for_status()
                logger.log_notification("success", text, attempt=attempt)
                return True
            except requests.RequestException as e:
                last_error = str(e)
                permanent = _is_permanent(e)
                final = permanent or attempt == attempts
                logger.log_notification("failed" if final else "retrying", text,
                                        attempt=attempt, error=last_error)
                if final:
                    break
                if self.backoff_sec:
                    time.sleep(self.backoff_sec * attempt)

        self._dead_letter(text, last_error)
        return False

    def _dead_letter(self, text: str, error: str) -> None:
        try:
            dao.append_log("notify_failed", f"{error} | {text[:200]}")
        except TransientStoreError as e:
            logger.error(f"Could not dead-letter notification: {e}")

    def set_webhook(self, url: str) -> dict:
        """Point the bot's webhook at url (synchronous, used by the setup endpoint)."""
        response = self.session.post(
            self._url("setWebhook"),
            json={"url": url},
            timeout=self.timeout_sec,
        )
        return response.json()

    def flush(self, timeout: float = None) -> None:
        """Wait for queued messages to finish delivering."""
        with self._futures_lock:
            pending = [f for f in self._futures if not f.done()]
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self.session.close()


def build_notifier():
    """Build the configured notifier."""
    if config.notifications_enabled():
        return TelegramNotifier(config.TELEGRAM_BOT_TOKEN, config.TELEGRAM_ADMIN_CHAT)
    return LogOnlyNotifier()
