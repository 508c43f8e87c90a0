"""Unauthenticated provider callbacks: MSG91 inbound messages and Razorpay events."""
from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from google.api_core import exceptions as gcloud_exceptions

from config import MessageDirection, MessageStatus
from contacts import ContactStore
from conversations import ConversationStore
from deps import get_contacts, get_conversations, get_messages, get_reconciler
from messages import MessageStore, coerce_content_type
from payloads import MissingSenderPhone, extract_inbound
from payments import Applied, InvalidPayload, InvalidSignature, PaymentReconciler

logger = logging.getLogger("wacrm.webhooks")

SIGNATURE_HEADER = "x-razorpay-signature"

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/msg91")
async def msg91_inbound(
    request: Request,
    contacts: ContactStore = Depends(get_contacts),
    conversations: ConversationStore = Depends(get_conversations),
    messages: MessageStore = Depends(get_messages),
):
    try:
        payload: Dict[str, Any] = await request.json()
    except ValueError:
        logger.warning("MSG91 webhook body was not valid JSON.")
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid payload")
    if not isinstance(payload, dict):
        logger.warning("MSG91 webhook body was not a JSON object.")
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid payload")

    logger.info("Received MSG91 webhook payload: %s", payload)

    inbound = extract_inbound(payload)
    if isinstance(inbound, MissingSenderPhone):
        logger.warning("MSG91 webhook rejected: %s", inbound.detail)
        return _error(status.HTTP_400_BAD_REQUEST, inbound.detail)

    try:
        contact = contacts.upsert(inbound.sender_phone, inbound.sender_name)
    except gcloud_exceptions.GoogleAPICallError:
        logger.exception("Failed to upsert contact for %s", inbound.sender_phone)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to upsert contact")

    try:
        conversation = conversations.upsert_inbound(
            contact.id, inbound.receiver_number, inbound.body_text
        )
    except gcloud_exceptions.GoogleAPICallError:
        logger.exception("Failed to upsert conversation for contact %s", contact.id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to upsert conversation")

    try:
        messages.insert(
            conversation.id,
            MessageDirection.INBOUND,
            coerce_content_type(inbound.content_type),
            inbound.body_text,
            media_url=inbound.media_url,
            file_name=inbound.file_name,
            location=inbound.location,
            contacts=inbound.contacts,
            status=MessageStatus.DELIVERED,
            external_id=inbound.external_id,
        )
    except gcloud_exceptions.GoogleAPICallError:
        logger.exception("Failed to store inbound message in %s", conversation.id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to store message")

    return {"success": True, "conversationId": conversation.id}


@router.post("/razorpay")
async def razorpay_event(
    request: Request,
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    try:
        outcome = reconciler.reconcile(raw_body, signature)
    except InvalidSignature:
        logger.warning("Razorpay webhook signature mismatch.")
        return _error(status.HTTP_401_UNAUTHORIZED, "Invalid signature")
    except InvalidPayload as exc:
        logger.warning("Razorpay webhook rejected: %s", exc)
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid payload")
    except gcloud_exceptions.GoogleAPICallError:
        logger.exception("Failed to reconcile Razorpay webhook")
        return {"status": "ok"}

    if isinstance(outcome, Applied):
        logger.info("Razorpay %s applied to %s", outcome.event, list(outcome.payment_ids))
    else:
        logger.info("Razorpay webhook ignored: %s", outcome.reason)
    return {"status": "ok"}
