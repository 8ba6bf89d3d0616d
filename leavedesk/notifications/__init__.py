"""Notifications module — outbound leave events, delivered after commit."""

from leavedesk.notifications.dispatcher import (
    LoggingDispatcher,
    NotificationDispatcher,
    get_dispatcher,
    set_dispatcher,
    wait_for_deliveries,
)
from leavedesk.notifications.events import LeaveEvent, enqueue_event, pending_events

__all__ = [
    "LeaveEvent",
    "LoggingDispatcher",
    "NotificationDispatcher",
    "enqueue_event",
    "get_dispatcher",
    "pending_events",
    "set_dispatcher",
    "wait_for_deliveries",
]
