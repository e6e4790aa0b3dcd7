"""
Side effects produced by alert transitions.

A transition never talks to sockets or writes notifications itself: it
returns an ordered list of effects, and the outbox (app.services.outbox)
carries them out after the alert write has committed. Losing an effect
never rolls back the alert.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


# Outbound channel events
EVENT_NEW_ALERT_BROADCAST = "new-alert"
EVENT_NEW_ALERT = "newAlert"
EVENT_ALERT_UPDATED = "alertUpdated"
EVENT_ALERT_RESPONDED = "alertResponded"
EVENT_ALERT_RESOLVED = "alertResolved"
EVENT_NEW_NOTIFICATION = "newNotification"


@dataclass(frozen=True)
class EventEffect:
    """Push ``event`` to one user's room, or to everyone when ``user_id`` is None."""
    event: str
    payload: Any
    user_id: Optional[str] = None

    @property
    def is_broadcast(self) -> bool:
        return self.user_id is None


@dataclass(frozen=True)
class NotificationEffect:
    """
    Persist a notification for ``user_id``. When ``push`` is set the stored
    record is also sent to the user's room as ``newNotification``.
    """
    user_id: str
    alert_id: str
    type: str
    title: str
    message: str
    push: bool = True


SideEffect = Union[EventEffect, NotificationEffect]


@dataclass
class TransitionResult:
    """Outcome of a lifecycle transition."""
    alert: Dict[str, Any]
    effects: List[SideEffect] = field(default_factory=list)
    notified_responders: int = 0
