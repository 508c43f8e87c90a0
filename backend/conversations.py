"""Conversation documents and their rolling session state.

A conversation binds one contact to one business number. Inbound traffic
reopens it, advances `last_incoming_timestamp` and bumps `unread_count`;
outbound traffic only moves the preview and clears the unread badge.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from google.cloud import firestore
from google.cloud.firestore_v1 import Client as FirestoreClient

from config import ConversationRecord, ConversationStatus
from schemas import ConversationOut
from session_window import remaining

logger = logging.getLogger("wacrm.conversations")

COLLECTION = "conversations"
DEFAULT_NUMBER = "default"
MEDIA_PREVIEW = "[media]"


def serialize_conversation(doc_snapshot, now: Optional[datetime] = None) -> ConversationOut:
    data = doc_snapshot.to_dict() or {}
    last_incoming = data.get("last_incoming_timestamp")
    return ConversationOut(
        id=doc_snapshot.id,
        contact_id=data.get("contact_id") or "",
        integrated_number=data.get("integrated_number") or DEFAULT_NUMBER,
        status=data.get("status") or ConversationStatus.OPEN.value,
        last_message=data.get("last_message"),
        last_message_time=data.get("last_message_time"),
        last_incoming_timestamp=last_incoming,
        unread_count=int(data.get("unread_count") or 0),
        assigned_to=data.get("assigned_to"),
        assigned_at=data.get("assigned_at"),
        session=remaining(last_incoming, now),
    )


class ConversationStore:
    def __init__(self, db: FirestoreClient) -> None:
        self.db = db

    @property
    def collection(self):
        return self.db.collection(COLLECTION)

    def document(self, conversation_id: str):
        return self.collection.document(conversation_id)

    def _find(self, contact_id: str, business_number: str):
        query = (
            self.collection.where("contact_id", "==", contact_id)
            .where("integrated_number", "==", business_number)
            .limit(1)
            .stream()
        )
        for doc in query:
            return doc
        return None

    def get(self, conversation_id: str) -> Optional[ConversationOut]:
        doc = self.document(conversation_id).get()
        if not doc.exists:
            return None
        return serialize_conversation(doc)

    def upsert_inbound(
        self,
        contact_id: str,
        business_number: Optional[str],
        preview: Optional[str],
    ) -> ConversationOut:
        """Record inbound activity on the (contact, number) conversation."""
        number = business_number or DEFAULT_NUMBER
        now = datetime.now(timezone.utc)
        last_message = preview or MEDIA_PREVIEW

        existing = self._find(contact_id, number)
        if existing is None:
            record = ConversationRecord(
                contact_id=contact_id,
                integrated_number=number,
                status=ConversationStatus.OPEN,
                last_message=last_message,
                last_message_time=now,
                last_incoming_timestamp=now,
                unread_count=1,
                created_at=now,
            )
            doc_ref = self.collection.document()
            doc_ref.set(record.model_dump(mode="python"))
            logger.info("Created conversation %s for contact %s on %s", doc_ref.id, contact_id, number)
            return serialize_conversation(doc_ref.get())

        existing.reference.update(
            {
                "status": ConversationStatus.OPEN.value,
                "last_message": last_message,
                "last_message_time": now,
                "last_incoming_timestamp": now,
                "unread_count": firestore.Increment(1),
            }
        )
        return serialize_conversation(existing.reference.get())

    def open_for_agent(
        self, contact_id: str, business_number: Optional[str]
    ) -> Tuple[ConversationOut, bool]:
        """Find-or-create without touching the session window."""
        number = business_number or DEFAULT_NUMBER
        existing = self._find(contact_id, number)
        if existing is not None:
            return serialize_conversation(existing), False

        now = datetime.now(timezone.utc)
        record = ConversationRecord(
            contact_id=contact_id,
            integrated_number=number,
            last_message="",
            last_message_time=now,
            created_at=now,
        )
        doc_ref = self.collection.document()
        doc_ref.set(record.model_dump(mode="python"))
        logger.info("Agent opened conversation %s for contact %s on %s", doc_ref.id, contact_id, number)
        return serialize_conversation(doc_ref.get()), True

    def list(self, status: Optional[str] = None) -> List[ConversationOut]:
        query = self.collection
        if status and status != "all":
            query = query.where("status", "==", status)
        query = query.order_by("last_message_time", direction=firestore.Query.DESCENDING)
        return [serialize_conversation(doc) for doc in query.stream()]

    def update(
        self,
        conversation_id: str,
        *,
        status: Optional[ConversationStatus] = None,
        assigned_to: Optional[str] = None,
    ) -> Optional[ConversationOut]:
        doc_ref = self.document(conversation_id)
        if not doc_ref.get().exists:
            return None

        updates: Dict[str, Any] = {}
        if status is not None:
            updates["status"] = ConversationStatus(status).value
        if assigned_to is not None:
            updates["assigned_to"] = assigned_to or None
            updates["assigned_at"] = datetime.now(timezone.utc) if assigned_to else None
        if updates:
            doc_ref.update(updates)
        return serialize_conversation(doc_ref.get())

    def mark_read(self, conversation_id: str) -> bool:
        doc_ref = self.document(conversation_id)
        if not doc_ref.get().exists:
            return False
        doc_ref.update({"unread_count": 0})
        return True

    def record_outbound(self, conversation_id: str, preview: str) -> None:
        self.document(conversation_id).update(
            {
                "last_message": preview[:200],
                "last_message_time": datetime.now(timezone.utc),
                "unread_count": 0,
            }
        )
