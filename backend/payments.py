"""Payment link records and Razorpay webhook reconciliation.

Payment documents move from `created` to exactly one terminal status as the
gateway reports it. Reconciliation is idempotent: replaying an event re-applies
the status it already set, and a terminal status is never replaced by a
different one.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from google.cloud import firestore
from google.cloud.firestore_v1 import Client as FirestoreClient

from config import TERMINAL_PAYMENT_STATUSES, PaymentRecord, PaymentStatus
from schemas import PaymentOut, PaymentSummary, SummaryBucket

logger = logging.getLogger("wacrm.payments")

COLLECTION = "payments"

EVENT_TRANSITIONS: Dict[str, PaymentStatus] = {
    "payment_link.paid": PaymentStatus.PAID,
    "payment_link.cancelled": PaymentStatus.CANCELLED,
    "payment_link.expired": PaymentStatus.EXPIRED,
}


class InvalidSignature(Exception):
    """Webhook body does not match the signature header."""


class InvalidPayload(Exception):
    """Webhook body is not a JSON object."""


@dataclass(frozen=True)
class Applied:
    event: str
    link_id: str
    status: PaymentStatus
    payment_ids: Tuple[str, ...]


@dataclass(frozen=True)
class Ignored:
    reason: str
    event: Optional[str] = None
    link_id: Optional[str] = None
    payment_ids: Tuple[str, ...] = field(default=())


ReconcileResult = Union[Applied, Ignored]


def serialize_payment(doc_snapshot) -> PaymentOut:
    data = doc_snapshot.to_dict() or {}
    return PaymentOut(
        id=doc_snapshot.id,
        contact_id=data.get("contact_id"),
        conversation_id=data.get("conversation_id"),
        contact_name=data.get("contact_name") or "",
        phone=data.get("phone") or "",
        amount=float(data.get("amount") or 0),
        currency=data.get("currency") or "INR",
        description=data.get("description"),
        razorpay_link_id=data.get("razorpay_link_id"),
        razorpay_payment_id=data.get("razorpay_payment_id"),
        short_url=data.get("short_url"),
        message_status=data.get("message_status") or "pending",
        payment_status=data.get("payment_status") or PaymentStatus.CREATED.value,
        created_by=data.get("created_by") or "Sales",
        integrated_number=data.get("integrated_number"),
        created_at=data.get("created_at"),
        updated_at=data.get("updated_at"),
    )


def summarize(payments: Iterable[PaymentOut]) -> PaymentSummary:
    """Dashboard buckets: `created` counts every link, the rest by outcome."""
    summary = PaymentSummary()
    buckets = {
        PaymentStatus.PAID.value: summary.paid,
        PaymentStatus.UNPAID.value: summary.unpaid,
        PaymentStatus.CREATED.value: summary.unpaid,
        PaymentStatus.CANCELLED.value: summary.cancelled,
        PaymentStatus.EXPIRED.value: summary.cancelled,
    }
    for payment in payments:
        summary.created.count += 1
        summary.created.total += payment.amount
        bucket: Optional[SummaryBucket] = buckets.get(payment.payment_status)
        if bucket is not None:
            bucket.count += 1
            bucket.total += payment.amount
    return summary


class PaymentStore:
    def __init__(self, db: FirestoreClient) -> None:
        self.db = db

    @property
    def collection(self):
        return self.db.collection(COLLECTION)

    def create(self, record: PaymentRecord) -> PaymentOut:
        doc_ref = self.collection.document()
        doc_ref.set(record.model_dump(mode="python"))
        logger.info(
            "Stored payment %s for %s (link=%s)", doc_ref.id, record.phone, record.razorpay_link_id
        )
        return serialize_payment(doc_ref.get())

    def get(self, payment_id: str) -> Optional[PaymentOut]:
        doc = self.collection.document(payment_id).get()
        if not doc.exists:
            return None
        return serialize_payment(doc)

    def list(
        self,
        status: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> List[PaymentOut]:
        query = self.collection
        if status and status != "all":
            query = query.where("payment_status", "==", status)
        if created_from:
            query = query.where("created_at", ">=", created_from)
        if created_to:
            query = query.where("created_at", "<=", created_to)
        query = query.order_by("created_at", direction=firestore.Query.DESCENDING)
        return [serialize_payment(doc) for doc in query.stream()]

    def update(self, payment_id: str, updates: Dict[str, Any]) -> None:
        updates = {**updates, "updated_at": datetime.now(timezone.utc)}
        self.collection.document(payment_id).update(updates)

    def find_by_link_id(self, link_id: str) -> List[Any]:
        return list(self.collection.where("razorpay_link_id", "==", link_id).stream())


def sign(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: str, secret: str) -> bool:
    return hmac.compare_digest(sign(raw_body, secret), signature.strip())


def _child(node: Any, key: str) -> Dict[str, Any]:
    value = node.get(key) if isinstance(node, dict) else None
    return value if isinstance(value, dict) else {}


def _entity_id(payload: Dict[str, Any], name: str) -> Optional[str]:
    value = _child(_child(payload, name), "entity").get("id")
    if isinstance(value, (str, int)) and not isinstance(value, bool) and value != "":
        return str(value)
    return None


class PaymentReconciler:
    def __init__(self, store: PaymentStore, secret: Optional[str]) -> None:
        self.store = store
        self.secret = secret

    def reconcile(self, raw_body: bytes, signature: Optional[str]) -> ReconcileResult:
        if self.secret and signature:
            if not verify_signature(raw_body, signature, self.secret):
                raise InvalidSignature("Invalid signature")
        else:
            logger.warning(
                "Processing Razorpay webhook without signature verification (secret=%s, header=%s).",
                bool(self.secret),
                bool(signature),
            )

        try:
            payload = json.loads(raw_body)
        except ValueError as exc:
            raise InvalidPayload("Webhook body is not valid JSON.") from exc
        if not isinstance(payload, dict):
            raise InvalidPayload("Webhook body is not a JSON object.")

        event = payload.get("event")
        if not isinstance(event, str):
            logger.warning("Razorpay webhook carried a non-string event: %r", event)
            return Ignored(reason="malformed payload")
        target = EVENT_TRANSITIONS.get(event)
        if target is None:
            logger.info("Ignoring Razorpay event %s", event)
            return Ignored(reason="unhandled event", event=event)

        entities = payload.get("payload")
        if entities is not None and not isinstance(entities, dict):
            logger.warning("Razorpay event %s carried a malformed payload", event)
            return Ignored(reason="malformed payload", event=event)
        entities = entities or {}
        link_node = entities.get("payment_link")
        link_entity = link_node.get("entity") if isinstance(link_node, dict) else None
        if (link_node is not None and not isinstance(link_node, dict)) or (
            link_entity is not None and not isinstance(link_entity, dict)
        ):
            logger.warning("Razorpay event %s carried a malformed payment link", event)
            return Ignored(reason="malformed payload", event=event)
        link_id = _entity_id(entities, "payment_link")
        if not link_id:
            logger.warning("Razorpay event %s carried no payment link id", event)
            return Ignored(reason="missing payment link id", event=event)

        matches = self.store.find_by_link_id(link_id)
        if not matches:
            logger.info("No payment found for Razorpay link %s (%s)", link_id, event)
            return Ignored(reason="no matching payment", event=event, link_id=link_id)

        updates: Dict[str, Any] = {
            "payment_status": target.value,
            "updated_at": datetime.now(timezone.utc),
        }
        if target == PaymentStatus.PAID:
            payment_id = _entity_id(entities, "payment")
            if payment_id:
                updates["razorpay_payment_id"] = payment_id

        applied: List[str] = []
        skipped: List[str] = []
        for doc in matches:
            current = (doc.to_dict() or {}).get("payment_status")
            if current in {s.value for s in TERMINAL_PAYMENT_STATUSES} and current != target.value:
                logger.warning(
                    "Payment %s already %s; ignoring %s", doc.id, current, event
                )
                skipped.append(doc.id)
                continue
            doc.reference.update(updates)
            applied.append(doc.id)

        if not applied:
            return Ignored(
                reason="terminal status", event=event, link_id=link_id, payment_ids=tuple(skipped)
            )

        logger.info("Payment link %s marked %s (%s)", link_id, target.value, ", ".join(applied))
        return Applied(event=event, link_id=link_id, status=target, payment_ids=tuple(applied))
