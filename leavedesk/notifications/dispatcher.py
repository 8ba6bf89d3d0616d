"""Fire-and-forget delivery of committed leave events.

Delivery runs in background tasks on the running event loop. A failing
dispatcher is logged and never affects the transaction that produced the
event, which has already committed by the time delivery starts.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from leavedesk.notifications.events import LeaveEvent

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Base dispatcher. Subclasses push events to email, chat, webhooks."""

    async def deliver(self, event: LeaveEvent) -> None:
        raise NotImplementedError


class LoggingDispatcher(NotificationDispatcher):
    """Default dispatcher: writes each event to the log."""

    async def deliver(self, event: LeaveEvent) -> None:
        logger.info(
            "Leave event %s: request=%s employee=%s %s..%s (%s days)",
            event.type.value,
            event.request_id,
            event.employee_id,
            event.start_date,
            event.end_date,
            event.work_days,
        )


_dispatcher: NotificationDispatcher = LoggingDispatcher()
_deliveries: set[asyncio.Task] = set()


def set_dispatcher(dispatcher: Optional[NotificationDispatcher]) -> None:
    """Install *dispatcher*; ``None`` restores the logging dispatcher."""
    global _dispatcher
    _dispatcher = dispatcher or LoggingDispatcher()


def get_dispatcher() -> NotificationDispatcher:
    return _dispatcher


async def _deliver(dispatcher: NotificationDispatcher, event: LeaveEvent) -> None:
    try:
        await dispatcher.deliver(event)
    except Exception:
        logger.exception(
            "Delivery of %s for leave request %s failed",
            event.type.value, event.request_id,
        )


def schedule_delivery(event: LeaveEvent) -> Optional[asyncio.Task]:
    """Start delivering *event* in the background and return the task."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.warning(
            "No running event loop; dropping %s for leave request %s",
            event.type.value, event.request_id,
        )
        return None

    task = loop.create_task(_deliver(_dispatcher, event))
    _deliveries.add(task)
    task.add_done_callback(_deliveries.discard)
    return task


async def wait_for_deliveries() -> None:
    """Wait until every scheduled delivery has finished."""
    while _deliveries:
        await asyncio.gather(*list(_deliveries))
