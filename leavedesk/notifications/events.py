"""Leave events and the per-session outbox.

Transitions call :func:`enqueue_event` inside the request's unit of work.
Queued events are handed to the dispatcher only after that session commits
and are discarded if it rolls back.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, Field
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from leavedesk.common.constants import LeaveEventType
from leavedesk.notifications.dispatcher import schedule_delivery

logger = logging.getLogger(__name__)

OUTBOX_KEY = "leavedesk.outbox"


class LeaveEvent(BaseModel):
    """Payload handed to the notification dispatcher."""

    type: LeaveEventType
    request_id: uuid.UUID
    organization_id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: str
    start_date: date
    end_date: date
    work_days: Decimal
    actor_id: uuid.UUID
    comment: Optional[str] = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def enqueue_event(session: Union[AsyncSession, Session], leave_event: LeaveEvent) -> None:
    session.info.setdefault(OUTBOX_KEY, []).append(leave_event)


def pending_events(session: Union[AsyncSession, Session]) -> list[LeaveEvent]:
    """Events queued on *session* and not yet committed."""
    return list(session.info.get(OUTBOX_KEY, ()))


@event.listens_for(Session, "after_commit")
def _dispatch_outbox(session: Session) -> None:
    for leave_event in session.info.pop(OUTBOX_KEY, []):
        schedule_delivery(leave_event)


@event.listens_for(Session, "after_rollback")
def _discard_outbox(session: Session) -> None:
    discarded = session.info.pop(OUTBOX_KEY, [])
    if discarded:
        logger.info("Discarded %d leave event(s) after rollback", len(discarded))
