"""
Carries out the side effects returned by a lifecycle transition.

Effects run in the order they were produced, after the alert write has
committed. Each one is attempted up to ``max_attempts`` times; a failure
is logged and dropped and never reaches the caller.
"""

import logging
from typing import Iterable, Optional

from fastapi.concurrency import run_in_threadpool

from app.core.realtime import PresenceRouter
from app.core.settings import settings
from app.models.notification import Notification
from app.repositories.base import NotificationRepository
from app.services.side_effects import (
    EVENT_NEW_NOTIFICATION,
    EventEffect,
    NotificationEffect,
    SideEffect,
)

logger = logging.getLogger(__name__)


class SideEffectOutbox:

    def __init__(
        self,
        notifications: NotificationRepository,
        router: PresenceRouter,
        max_attempts: Optional[int] = None,
    ):
        self.notifications = notifications
        self.router = router
        self.max_attempts = max(1, max_attempts or settings.OUTBOX_MAX_ATTEMPTS)

    async def dispatch(self, effects: Iterable[SideEffect]) -> int:
        """Run every effect; returns how many succeeded."""
        delivered = 0
        for effect in effects:
            if isinstance(effect, EventEffect):
                ok = await self._attempt(
                    effect, self.router.deliver, effect.event, effect.payload, user_id=effect.user_id
                )
            elif isinstance(effect, NotificationEffect):
                ok = await self._notify(effect)
            else:
                logger.error(f"Unknown side effect dropped: {effect!r}")
                ok = False
            if ok:
                delivered += 1
        return delivered

    async def _notify(self, effect: NotificationEffect) -> bool:
        record = await self._attempt(effect, self._persist, effect)
        if not record:
            return False
        if not effect.push:
            return True
        # Persisted record is the recovery path if the push is lost
        return await self._attempt(
            effect, self.router.deliver,
            EVENT_NEW_NOTIFICATION, record.model_dump(mode="json"), user_id=effect.user_id,
        )

    async def _persist(self, effect: NotificationEffect) -> Notification:
        return await run_in_threadpool(
            self.notifications.create,
            user_id=effect.user_id,
            alert_id=effect.alert_id,
            type=effect.type,
            title=effect.title,
            message=effect.message,
        )

    async def _attempt(self, effect: SideEffect, func, *args, **kwargs):
        """Await ``func`` up to max_attempts times. Returns its result (or True), None on failure."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await func(*args, **kwargs)
                return True if result is None else result
            except Exception as e:
                if attempt < self.max_attempts:
                    logger.warning(f"Side effect {_describe(effect)} failed (attempt {attempt}): {e}")
                else:
                    logger.error(
                        f"Dropping side effect {_describe(effect)} after {attempt} attempts: {e}",
                        exc_info=True,
                    )
        return None


def _describe(effect: SideEffect) -> str:
    if isinstance(effect, EventEffect):
        return f"event {effect.event} -> {effect.user_id or 'all'}"
    return f"notification {effect.type} -> {effect.user_id}"
