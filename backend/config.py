"""Centralized configuration and shared record models for the WhatsApp CRM backend.

This module exposes:
    - `Settings`: environment configuration via pydantic-settings
    - `get_settings`: cached accessor used at process start
    - `init_firestore`: builds the Firestore client with the Firebase Admin SDK
    - Status enums and record models for consistent Firestore documents
"""
from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore_v1 import Client as FirestoreClient
from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    msg91_auth_key: Optional[SecretStr] = Field(default=None)
    msg91_integrated_numbers: str = Field(
        default="",
        description="Business numbers as 'number:label,number:label'; the first is the default.",
    )

    razorpay_key_id: Optional[str] = Field(default=None)
    razorpay_key_secret: Optional[SecretStr] = Field(default=None)
    razorpay_webhook_secret: Optional[SecretStr] = Field(
        default=None,
        description="Webhook signing secret; falls back to RAZORPAY_KEY_SECRET when unset.",
    )

    default_country_dial_code: str = Field(
        default="91",
        description="Default country dial code (without +) prepended to bare 10-digit numbers.",
    )
    enforce_session_window: bool = Field(
        default=False,
        description="Reject free-form sends server-side once the 24h window has closed.",
    )

    firebase_service_account_json: Optional[str] = Field(default=None, description="Path to SA JSON")

    dashboard_password: Optional[SecretStr] = Field(default=None)
    cookie_secret_key: Optional[SecretStr] = Field(default=None)
    cors_allowed_origins: str = Field(default="http://localhost:3000,http://127.0.0.1:3000")

    log_level: str = Field(default="INFO")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def webhook_secret(self) -> Optional[str]:
        secret = self.razorpay_webhook_secret or self.razorpay_key_secret
        return secret.get_secret_value() if secret else None


class ConversationStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class MessageDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class MessageStatus(str, Enum):
    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class ContentType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    DOCUMENT = "document"
    TEMPLATE = "template"
    LOCATION = "location"
    CONTACT = "contact"


class PaymentStatus(str, Enum):
    """Gateway-driven lifecycle: CREATED moves to one of the terminal states."""

    CREATED = "created"
    PAID = "paid"
    UNPAID = "unpaid"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TERMINAL_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.PAID, PaymentStatus.CANCELLED, PaymentStatus.EXPIRED}
)


class DeliveryStatus(str, Enum):
    """Whether a payment link was pushed to the customer on WhatsApp."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class ContactRecord(BaseModel):
    """Canonical schema for contacts stored in Firestore."""

    name: str
    phone: str
    email: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(extra="forbid")


class ConversationRecord(BaseModel):
    """Canonical schema for conversations stored in Firestore."""

    contact_id: str
    integrated_number: str
    status: ConversationStatus = ConversationStatus.OPEN
    last_message: str = ""
    last_message_time: datetime
    last_incoming_timestamp: Optional[datetime] = None
    unread_count: int = 0
    assigned_to: Optional[str] = None
    assigned_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(extra="forbid", use_enum_values=True)


class MessageRecord(BaseModel):
    """Canonical schema for messages stored under a conversation."""

    direction: MessageDirection
    content_type: ContentType = ContentType.TEXT
    body: str = ""
    media_url: Optional[str] = None
    file_name: Optional[str] = None
    status: MessageStatus
    is_internal_note: bool = False
    external_id: Optional[str] = None
    timestamp: datetime

    model_config = ConfigDict(extra="forbid", use_enum_values=True)


class PaymentRecord(BaseModel):
    """Canonical schema for payment links stored in Firestore."""

    contact_id: Optional[str] = None
    conversation_id: Optional[str] = None
    contact_name: str
    phone: str
    amount: float
    currency: str = "INR"
    description: Optional[str] = None
    razorpay_link_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    short_url: Optional[str] = None
    message_status: DeliveryStatus = DeliveryStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.CREATED
    created_by: str = "Sales"
    integrated_number: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(extra="forbid", use_enum_values=True)


class QuickReplyRecord(BaseModel):
    """Canned reply text agents insert into the composer."""

    title: str
    body: str
    shortcut: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(extra="forbid")


class ReminderRecord(BaseModel):
    """Follow-up reminder an agent sets on a conversation."""

    conversation_id: str
    user_id: str
    remind_at: datetime
    note: Optional[str] = None
    is_dismissed: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(extra="forbid")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached accessor for application settings."""

    settings = Settings()  # type: ignore[call-arg]
    logger.debug("Settings loaded successfully")
    return settings


def init_firestore(settings: Settings) -> FirestoreClient:
    if not firebase_admin._apps:
        if settings.firebase_service_account_json and Path(settings.firebase_service_account_json).exists():
            # Local development: Use the file
            cred = credentials.Certificate(settings.firebase_service_account_json)
            firebase_admin.initialize_app(cred)
            logger.info("Firebase initialized with JSON file.")
        else:
            # Production (Cloud Run): Use automatic Google Login
            firebase_admin.initialize_app()
            logger.info("Firebase initialized with Default Credentials.")

    return firestore.client()


__all__ = [
    "ContactRecord",
    "ContentType",
    "ConversationRecord",
    "ConversationStatus",
    "DeliveryStatus",
    "MessageDirection",
    "MessageRecord",
    "MessageStatus",
    "PaymentRecord",
    "PaymentStatus",
    "QuickReplyRecord",
    "ReminderRecord",
    "Settings",
    "TERMINAL_PAYMENT_STATUSES",
    "get_settings",
    "init_firestore",
]
