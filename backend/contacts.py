"""Contact documents: lookup by canonical phone, agent edits, ingestion upsert."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from google.cloud import firestore
from google.cloud.firestore_v1 import Client as FirestoreClient

from config import ContactRecord
from phones import normalize_phone
from schemas import ContactOut

logger = logging.getLogger("wacrm.contacts")

COLLECTION = "contacts"


def serialize_contact(doc_snapshot) -> ContactOut:
    data = doc_snapshot.to_dict() or {}
    return ContactOut(
        id=doc_snapshot.id,
        name=data.get("name") or data.get("phone") or "Unknown",
        phone=data.get("phone") or "",
        email=data.get("email"),
        tags=list(data.get("tags") or []),
        custom_fields=dict(data.get("custom_fields") or {}),
        created_at=data.get("created_at"),
    )


def _unique(tags: List[str]) -> List[str]:
    seen: List[str] = []
    for tag in tags:
        tag = (tag or "").strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class ContactStore:
    def __init__(self, db: FirestoreClient) -> None:
        self.db = db

    @property
    def collection(self):
        return self.db.collection(COLLECTION)

    def _find_by_phone(self, phone: str):
        query = self.collection.where("phone", "==", phone).limit(1).stream()
        for doc in query:
            return doc
        return None

    def get(self, contact_id: str) -> Optional[ContactOut]:
        doc = self.collection.document(contact_id).get()
        if not doc.exists:
            return None
        return serialize_contact(doc)

    def find_by_phone(self, phone: Optional[str]) -> Optional[ContactOut]:
        normalized = normalize_phone(phone)
        if not normalized:
            return None
        doc = self._find_by_phone(normalized)
        return serialize_contact(doc) if doc else None

    def create(
        self,
        phone: str,
        name: Optional[str] = None,
        *,
        email: Optional[str] = None,
        tags: Optional[List[str]] = None,
        custom_fields: Optional[Dict[str, Any]] = None,
    ) -> ContactOut:
        normalized = normalize_phone(phone)
        now = datetime.now(timezone.utc)
        record = ContactRecord(
            name=(name or "").strip() or normalized,
            phone=normalized,
            email=email or None,
            tags=_unique(tags or []),
            custom_fields=custom_fields or {},
            created_at=now,
            updated_at=now,
        )
        doc_ref = self.collection.document()
        doc_ref.set(record.model_dump(mode="python"))
        logger.info("Created contact %s for %s", doc_ref.id, normalized)
        return serialize_contact(doc_ref.get())

    def upsert(self, phone: str, name_hint: Optional[str] = None) -> ContactOut:
        """Find-or-create keyed by normalised phone.

        An existing contact keeps its name, unless that name is still the
        phone placeholder and the provider now supplies a profile name.
        """
        normalized = normalize_phone(phone)
        name_hint = (name_hint or "").strip()

        existing = self._find_by_phone(normalized)
        if existing is None:
            return self.create(normalized, name_hint)

        data = existing.to_dict() or {}
        if name_hint and data.get("name") in (None, "", normalized):
            existing.reference.update(
                {"name": name_hint, "updated_at": datetime.now(timezone.utc)}
            )
            logger.info("Filled placeholder name for contact %s", existing.id)
            return serialize_contact(existing.reference.get())
        return serialize_contact(existing)

    def list(self, search: Optional[str] = None) -> List[ContactOut]:
        query = self.collection.order_by("created_at", direction=firestore.Query.DESCENDING)
        contacts = [serialize_contact(doc) for doc in query.stream()]
        if not search:
            return contacts

        needle = search.strip().lower()
        return [
            c
            for c in contacts
            if needle in c.name.lower()
            or needle in c.phone
            or (c.email and needle in c.email.lower())
        ]

    def update(
        self,
        contact_id: str,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        tags: Optional[List[str]] = None,
        custom_fields: Optional[Dict[str, Any]] = None,
    ) -> Optional[ContactOut]:
        doc_ref = self.collection.document(contact_id)
        if not doc_ref.get().exists:
            return None

        updates: Dict[str, Any] = {"updated_at": datetime.now(timezone.utc)}
        if name is not None:
            updates["name"] = name.strip()
        if email is not None:
            updates["email"] = email or None
        if tags is not None:
            updates["tags"] = _unique(tags)
        if custom_fields is not None:
            updates["custom_fields"] = custom_fields
        doc_ref.update(updates)
        return serialize_contact(doc_ref.get())
