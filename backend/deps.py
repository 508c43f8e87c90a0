"""Request-scoped accessors for state attached to the app at startup."""
from __future__ import annotations

from typing import List, Optional

from fastapi import Depends, HTTPException, Request, status
from google.cloud.firestore_v1 import Client as FirestoreClient

from config import Settings
from contacts import ContactStore
from conversations import ConversationStore
from messages import MessageStore
from msg91_client import Msg91Client
from payment_links import RazorpayClient
from payments import PaymentReconciler, PaymentStore
from quick_replies import QuickReplyStore
from reminders import ReminderStore
from schemas import WhatsAppNumber


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> FirestoreClient:
    return request.app.state.db


def get_contacts(db: FirestoreClient = Depends(get_db)) -> ContactStore:
    return ContactStore(db)


def get_conversations(db: FirestoreClient = Depends(get_db)) -> ConversationStore:
    return ConversationStore(db)


def get_messages(db: FirestoreClient = Depends(get_db)) -> MessageStore:
    return MessageStore(db)


def get_payments(db: FirestoreClient = Depends(get_db)) -> PaymentStore:
    return PaymentStore(db)


def get_quick_replies(db: FirestoreClient = Depends(get_db)) -> QuickReplyStore:
    return QuickReplyStore(db)


def get_reminders(db: FirestoreClient = Depends(get_db)) -> ReminderStore:
    return ReminderStore(db)


def get_reconciler(
    store: PaymentStore = Depends(get_payments),
    settings: Settings = Depends(get_app_settings),
) -> PaymentReconciler:
    return PaymentReconciler(store, settings.webhook_secret())


def get_msg91(request: Request) -> Msg91Client:
    client: Optional[Msg91Client] = request.app.state.msg91
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="MSG91 is not configured. Missing: MSG91_AUTH_KEY",
        )
    return client


def get_razorpay(request: Request) -> RazorpayClient:
    client: Optional[RazorpayClient] = request.app.state.razorpay
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Razorpay is not configured. Missing: RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET",
        )
    return client


def parse_numbers(raw: str) -> List[WhatsAppNumber]:
    """Parse 'number:label,number:label'; the first entry is the default."""
    numbers: List[WhatsAppNumber] = []
    for entry in (raw or "").split(","):
        entry = entry.strip()
        if not entry:
            continue
        number, _, label = entry.partition(":")
        number = number.strip()
        if not number:
            continue
        numbers.append(
            WhatsAppNumber(
                id=number,
                number=number,
                label=label.strip() or number,
                is_default=not numbers,
            )
        )
    return numbers


def default_number(settings: Settings) -> Optional[str]:
    numbers = parse_numbers(settings.msg91_integrated_numbers)
    return numbers[0].number if numbers else None
