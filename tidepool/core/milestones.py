"""
Milestone notifications derived from the counter value after each accepted click.
"""

import math
from typing import List, Optional

from . import dao
from .schema import Milestone
from ..util.logging import logger


def percent(n: int, target: int) -> int:
    """Percentage of target reached, rounded half up."""
    if target <= 0:
        return 0
    return math.floor(n / target * 100 + 0.5)


def progress_milestones(n: int, target: int, blessed: Optional[int] = None) -> List[Milestone]:
    """Milestones for click number n. The rules are independent of each other."""
    milestones = []

    if n % 10 == 0:
        text = (
            "🌊 <b>Tide Update</b>\n\n"
            f"<b>{n} / {target}</b> fed the tide pool ({percent(n, target)}%)"
        )
        if n == math.floor(target * 0.5):
            text += "\n\n<i>Halfway. The sediment stirs.</i>"
        if n == math.floor(target * 0.75):
            text += "\n\n<i>Three quarters. Something vast moves beneath.</i>"
        if n == target - 10:
            text += "\n\n⚠️ <i>10 remaining. The tide pool trembles.</i>"
        milestones.append(Milestone(kind="progress", text=text))

    if blessed is not None and blessed == n:
        milestones.append(Milestone(
            kind="blessed",
            text=f"🦞 <b>The Blessed One has arrived.</b>\nClick #{n} has fed the tide pool.",
        ))

    return milestones


def launch_message(n: int) -> str:
    return (
        "🎉 <b>THE TIDE POOL IS UNLEASHED</b>\n\n"
        f"<b>{n}</b> have offered themselves.\n\n"
        "Send the CA now:\n<code>/setCA YourSolanaAddressHere</code>\n\n"
        "Or whenever you are ready."
    )


class MilestoneNotifier:
    """Emit milestone notifications and perform the one-time launch transition."""

    def __init__(self, notifier):
        self.notifier = notifier

    def process(self, n: int, target: int, blessed: Optional[int] = None) -> List[Milestone]:
        """Send every milestone reached by click n and return them."""
        emitted = progress_milestones(n, target, blessed)

        if n >= target and self._claim_launch(n):
            emitted.append(Milestone(kind="launched", text=launch_message(n)))

        for milestone in emitted:
            self.notifier.send(milestone.text)

        return emitted

    def _claim_launch(self, n: int) -> bool:
        """Flip launched false -> true. Only the caller whose update lands wins."""
        if dao.conditional_update("launched", "false", "true") != 1:
            return False

        logger.log_operation("launch", "success", {"count": n})
        dao.append_log("launched", f"Count:{n}")
        return True
