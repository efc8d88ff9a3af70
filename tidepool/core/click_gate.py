"""
Click gate: anti-spam and lockdown checks in front of the atomic counter increment.
"""

from typing import Optional

from . import config, dao
from .errors import AlreadyClickedError, LockedError, TransientStoreError
from .milestones import MilestoneNotifier
from .rate_limit import ClickAttemptLimiter
from .schema import ClickResult
from .state import StateRepository
from ..util.logging import logger


class ClickGate:
    """Accept at most one click per identity per window and count it.

    The persisted "already clicked" lookup and the later insert are not
    serialized against each other; two simultaneous requests from one
    identity can both pass. The counter increment, the click record and the
    audit entry commit together or not at all.
    """

    def __init__(self, state: StateRepository, milestones: MilestoneNotifier,
                 limiter: Optional[ClickAttemptLimiter] = None, window_sec: int = None):
        self.state = state
        self.milestones = milestones
        self.limiter = limiter
        self.window_sec = config.CLICK_WINDOW_SEC if window_sec is None else window_sec

    def click(self, identity: str) -> ClickResult:
        """Process a click from identity.

        Raises:
            AlreadyClickedError: identity is over its attempt limit or already clicked in the window
            LockedError: the site is in lockdown
            TransientStoreError: the store failed
        """
        if self.limiter is not None and not self.limiter.hit(identity):
            logger.log_click(identity, "rejected", reason="attempt_limit")
            raise AlreadyClickedError(identity)

        try:
            n = self._count(identity)
        except TransientStoreError:
            # Nothing was counted, so the attempt does not use up the limit
            if self.limiter is not None:
                self.limiter.release(identity)
            logger.log_click(identity, "failed", reason="store_error")
            raise

        target = self.state.get_target()
        self.milestones.process(n, target, self.state.get_blessed())

        return ClickResult(count=n, target=target, launched=n >= target)

    def _count(self, identity: str) -> int:
        if dao.has_click_record(identity, self.window_sec):
            logger.log_click(identity, "rejected", reason="already_clicked")
            raise AlreadyClickedError(identity)

        if self.state.get_bool("locked"):
            logger.log_click(identity, "rejected", reason="locked")
            raise LockedError(self.state.get("lock_msg") or "")

        n = dao.record_click(identity)
        logger.log_click(identity, "success", count=n)
        return n
