"""
Idle-stall detector: notify the operator when nobody has clicked for a while.
"""

from . import config, dao
from .errors import TransientStoreError
from .state import StateRepository
from ..util.logging import logger


def stall_message(count: int, target: int, window_sec: int) -> str:
    hours = window_sec / 3600
    window = f"{hours:g} hours" if hours != 1 else "1 hour"
    return (
        "😴 <b>Tide stalling</b>\n\n"
        f"No offerings in {window}.\n"
        f"Count: <b>{count}/{target}</b>\n\n"
        "Post on X or use /decree to stir activity."
    )


class IdleStallDetector:
    """Observe-only check run by the heartbeat; never mutates state."""

    def __init__(self, state: StateRepository, notifier, window_sec: int = None):
        self.state = state
        self.notifier = notifier
        self.window_sec = config.STALL_WINDOW_SEC if window_sec is None else window_sec

    def check(self, now: float = None) -> bool:
        """Run one check. Returns True if a stall notification was sent.

        Store failures are logged and swallowed; the next scheduled run retries.
        """
        try:
            if self.state.get_bool("launched"):
                return False

            recent = dao.count_clicks_since(self.window_sec, now=now)
            if recent != 0:
                return False

            count = self.state.get_int("count")
            target = self.state.get_target()
        except TransientStoreError as e:
            logger.log_operation("stall_check", "failed", {"error": str(e)[:100]})
            return False

        logger.log_operation("stall_check", "stalled", {"count": count, "target": target})
        self.notifier.send(stall_message(count, target, self.window_sec))
        return True
