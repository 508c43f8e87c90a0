"""Per-agent follow-up reminders attached to conversations.

Dismissed reminders are kept for history but drop out of the agent's list.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from google.cloud import firestore
from google.cloud.firestore_v1 import Client as FirestoreClient

from config import ReminderRecord
from schemas import ReminderOut

logger = logging.getLogger("wacrm.reminders")

COLLECTION = "reminders"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def serialize_reminder(doc_snapshot) -> ReminderOut:
    data = doc_snapshot.to_dict() or {}
    return ReminderOut(
        id=doc_snapshot.id,
        conversation_id=data.get("conversation_id") or "",
        user_id=data.get("user_id") or "",
        remind_at=data.get("remind_at"),
        note=data.get("note") or None,
        is_dismissed=bool(data.get("is_dismissed")),
        created_at=data.get("created_at"),
    )


class ReminderStore:
    def __init__(self, db: FirestoreClient) -> None:
        self.db = db

    @property
    def collection(self):
        return self.db.collection(COLLECTION)

    def get(self, reminder_id: str) -> Optional[ReminderOut]:
        doc = self.collection.document(reminder_id).get()
        if not doc.exists:
            return None
        return serialize_reminder(doc)

    def list_pending(
        self,
        user_id: str,
        conversation_id: Optional[str] = None,
        due_before: Optional[datetime] = None,
    ) -> List[ReminderOut]:
        """Undismissed reminders for one agent, soonest first."""
        query = self.collection.where("user_id", "==", user_id).where("is_dismissed", "==", False)
        if conversation_id:
            query = query.where("conversation_id", "==", conversation_id)
        if due_before:
            query = query.where("remind_at", "<=", _as_utc(due_before))
        query = query.order_by("remind_at", direction=firestore.Query.ASCENDING)
        return [serialize_reminder(doc) for doc in query.stream()]

    def create(
        self, conversation_id: str, user_id: str, remind_at: datetime, note: Optional[str] = None
    ) -> ReminderOut:
        now = datetime.now(timezone.utc)
        record = ReminderRecord(
            conversation_id=conversation_id,
            user_id=user_id,
            remind_at=_as_utc(remind_at),
            note=(note or "").strip() or None,
            created_at=now,
            updated_at=now,
        )
        doc_ref = self.collection.document()
        doc_ref.set(record.model_dump(mode="python"))
        logger.info(
            "Reminder %s set on conversation %s for %s", doc_ref.id, conversation_id, record.remind_at.isoformat()
        )
        return serialize_reminder(doc_ref.get())

    def update(
        self,
        reminder_id: str,
        *,
        remind_at: Optional[datetime] = None,
        note: Optional[str] = None,
        is_dismissed: Optional[bool] = None,
    ) -> Optional[ReminderOut]:
        doc_ref = self.collection.document(reminder_id)
        if not doc_ref.get().exists:
            return None

        updates: Dict[str, Any] = {"updated_at": datetime.now(timezone.utc)}
        if remind_at is not None:
            updates["remind_at"] = _as_utc(remind_at)
        if note is not None:
            updates["note"] = note.strip() or None
        if is_dismissed is not None:
            updates["is_dismissed"] = is_dismissed
        doc_ref.update(updates)
        return serialize_reminder(doc_ref.get())

    def delete(self, reminder_id: str) -> bool:
        doc_ref = self.collection.document(reminder_id)
        if not doc_ref.get().exists:
            return False
        doc_ref.delete()
        logger.info("Deleted reminder %s", reminder_id)
        return True
