"""Canned replies shared by every agent on the dashboard."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from google.cloud import firestore
from google.cloud.firestore_v1 import Client as FirestoreClient

from config import QuickReplyRecord
from schemas import QuickReplyOut

logger = logging.getLogger("wacrm.quick_replies")

COLLECTION = "quick_replies"


def _shortcut(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip().lstrip("/")
    return value.lower() or None


def serialize_quick_reply(doc_snapshot) -> QuickReplyOut:
    data = doc_snapshot.to_dict() or {}
    return QuickReplyOut(
        id=doc_snapshot.id,
        title=data.get("title") or "",
        body=data.get("body") or "",
        shortcut=data.get("shortcut") or None,
        created_by=data.get("created_by") or None,
        created_at=data.get("created_at"),
    )


class QuickReplyStore:
    def __init__(self, db: FirestoreClient) -> None:
        self.db = db

    @property
    def collection(self):
        return self.db.collection(COLLECTION)

    def list(self) -> List[QuickReplyOut]:
        query = self.collection.order_by("created_at", direction=firestore.Query.DESCENDING)
        return [serialize_quick_reply(doc) for doc in query.stream()]

    def create(
        self, title: str, body: str, shortcut: Optional[str] = None, created_by: Optional[str] = None
    ) -> QuickReplyOut:
        now = datetime.now(timezone.utc)
        record = QuickReplyRecord(
            title=title.strip(),
            body=body,
            shortcut=_shortcut(shortcut),
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        doc_ref = self.collection.document()
        doc_ref.set(record.model_dump(mode="python"))
        logger.info("Created quick reply %s (%s)", doc_ref.id, record.shortcut or record.title)
        return serialize_quick_reply(doc_ref.get())

    def update(
        self,
        reply_id: str,
        *,
        title: Optional[str] = None,
        body: Optional[str] = None,
        shortcut: Optional[str] = None,
    ) -> Optional[QuickReplyOut]:
        doc_ref = self.collection.document(reply_id)
        if not doc_ref.get().exists:
            return None

        updates: Dict[str, Any] = {"updated_at": datetime.now(timezone.utc)}
        if title is not None:
            updates["title"] = title.strip()
        if body is not None:
            updates["body"] = body
        if shortcut is not None:
            # An empty string clears the shortcut.
            updates["shortcut"] = _shortcut(shortcut)
        doc_ref.update(updates)
        return serialize_quick_reply(doc_ref.get())

    def delete(self, reply_id: str) -> bool:
        doc_ref = self.collection.document(reply_id)
        if not doc_ref.get().exists:
            return False
        doc_ref.delete()
        logger.info("Deleted quick reply %s", reply_id)
        return True
