"""WhatsApp 24-hour customer service window.

A business may send free-form messages only within 24 hours of the customer's
last inbound message; outside it, only approved templates go through. Nothing
here is persisted: the window is recomputed from the conversation's
`last_incoming_timestamp` on every read.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

WINDOW = timedelta(hours=24)


class SessionWindow(BaseModel):
    expired: bool
    hours_left: int
    minutes_left: int
    percent_elapsed: float
    expires_at: Optional[datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def remaining(last_incoming: Optional[datetime], now: Optional[datetime] = None) -> SessionWindow:
    """Time left in the window opened by `last_incoming`.

    A conversation that never received an inbound message has no window.
    """
    if last_incoming is None:
        return SessionWindow(expired=True, hours_left=0, minutes_left=0, percent_elapsed=100.0)

    now = _aware(now or datetime.now(timezone.utc))
    last_incoming = _aware(last_incoming)
    expires_at = last_incoming + WINDOW
    elapsed = now - last_incoming

    if elapsed > WINDOW:
        return SessionWindow(
            expired=True,
            hours_left=0,
            minutes_left=0,
            percent_elapsed=100.0,
            expires_at=expires_at,
        )

    left_minutes = int(max(expires_at - now, timedelta(0)).total_seconds() // 60)
    percent = elapsed / WINDOW * 100
    return SessionWindow(
        expired=False,
        hours_left=left_minutes // 60,
        minutes_left=left_minutes % 60,
        percent_elapsed=min(100.0, max(0.0, percent)),
        expires_at=expires_at,
    )


def is_open(last_incoming: Optional[datetime], now: Optional[datetime] = None) -> bool:
    return not remaining(last_incoming, now).expired
