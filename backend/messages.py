"""Append-only message log stored under each conversation."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from google.cloud import firestore
from google.cloud.firestore_v1 import Client as FirestoreClient

from config import ContentType, MessageDirection, MessageRecord, MessageStatus
from conversations import COLLECTION as CONVERSATIONS
from schemas import MessageOut

logger = logging.getLogger("wacrm.messages")

SUBCOLLECTION = "messages"

# Provider media kinds we have no dedicated rendering for.
_CONTENT_TYPE_FALLBACKS = {
    "contacts": ContentType.CONTACT,
    "sticker": ContentType.IMAGE,
    "video": ContentType.DOCUMENT,
    "audio": ContentType.DOCUMENT,
    "voice": ContentType.DOCUMENT,
    "file": ContentType.DOCUMENT,
}


def coerce_content_type(value: Optional[str]) -> ContentType:
    value = (value or "").strip().lower()
    try:
        return ContentType(value)
    except ValueError:
        return _CONTENT_TYPE_FALLBACKS.get(value, ContentType.TEXT)


def encode_body(
    content_type: ContentType,
    text: str,
    location: Optional[Dict[str, Any]] = None,
    contacts: Optional[List[Dict[str, Any]]] = None,
) -> str:
    """Embed structured location/contact payloads next to the display text."""
    if content_type == ContentType.LOCATION and location is not None:
        return json.dumps({"text": text, "location": location}, ensure_ascii=False)
    if content_type == ContentType.CONTACT and contacts is not None:
        return json.dumps({"text": text, "contacts": contacts}, ensure_ascii=False)
    return text


def decode_body(
    content_type: str, body: Optional[str]
) -> Tuple[str, Optional[Dict[str, Any]], Optional[List[Dict[str, Any]]]]:
    """Inverse of `encode_body`; plain bodies pass through untouched."""
    body = body or ""
    if content_type not in (ContentType.LOCATION.value, ContentType.CONTACT.value):
        return body, None, None
    try:
        envelope = json.loads(body)
    except ValueError:
        return body, None, None
    if not isinstance(envelope, dict):
        return body, None, None
    return str(envelope.get("text") or ""), envelope.get("location"), envelope.get("contacts")


def serialize_message(doc_snapshot, conversation_id: str) -> MessageOut:
    data = doc_snapshot.to_dict() or {}
    content_type = data.get("content_type") or ContentType.TEXT.value
    text, location, contacts = decode_body(content_type, data.get("body"))
    return MessageOut(
        id=doc_snapshot.id,
        conversation_id=conversation_id,
        direction=data.get("direction", MessageDirection.OUTBOUND.value),
        content_type=content_type,
        body=text,
        media_url=data.get("media_url"),
        file_name=data.get("file_name"),
        location=location,
        contacts=contacts,
        status=data.get("status") or MessageStatus.SENT.value,
        is_internal_note=bool(data.get("is_internal_note")),
        external_id=data.get("external_id"),
        timestamp=data.get("timestamp") or datetime.now(timezone.utc),
    )


class MessageStore:
    def __init__(self, db: FirestoreClient) -> None:
        self.db = db

    def _collection(self, conversation_id: str):
        return self.db.collection(CONVERSATIONS).document(conversation_id).collection(SUBCOLLECTION)

    def insert(
        self,
        conversation_id: str,
        direction: MessageDirection,
        content_type: ContentType,
        body: str,
        *,
        media_url: Optional[str] = None,
        file_name: Optional[str] = None,
        location: Optional[Dict[str, Any]] = None,
        contacts: Optional[List[Dict[str, Any]]] = None,
        status: Optional[MessageStatus] = None,
        is_internal_note: bool = False,
        external_id: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> MessageOut:
        direction = MessageDirection(direction)
        content_type = ContentType(content_type)
        if is_internal_note and direction != MessageDirection.OUTBOUND:
            raise ValueError("Internal notes are always outbound.")
        if status is None:
            status = MessageStatus.DELIVERED if direction == MessageDirection.INBOUND else MessageStatus.SENDING

        record = MessageRecord(
            direction=direction,
            content_type=content_type,
            body=encode_body(content_type, body or "", location, contacts),
            media_url=media_url,
            file_name=file_name,
            status=status,
            is_internal_note=is_internal_note,
            external_id=external_id,
            timestamp=timestamp or datetime.now(timezone.utc),
        )
        doc_ref = self._collection(conversation_id).document()
        doc_ref.set(record.model_dump(mode="python"))
        logger.debug("Stored %s message %s in %s", direction.value, doc_ref.id, conversation_id)
        return serialize_message(doc_ref.get(), conversation_id)

    def list(self, conversation_id: str) -> List[MessageOut]:
        message_docs = (
            self._collection(conversation_id)
            .order_by("timestamp", direction=firestore.Query.ASCENDING)
            .stream()
        )
        return [serialize_message(doc, conversation_id) for doc in message_docs]
