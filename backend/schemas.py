"""Request and response bodies exchanged with the dashboard.

The front-end speaks camelCase; fields are snake_case here and aliased on the
wire. Requests accept either spelling.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from config import ConversationStatus
from session_window import SessionWindow


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(ApiModel):
    password: str = Field(min_length=1)


class LoginResponse(ApiModel):
    success: bool


class ActionResponse(ApiModel):
    success: bool
    message: Optional[str] = None


class WhatsAppNumber(ApiModel):
    id: str
    number: str
    label: str
    is_default: bool


class ContactOut(ApiModel):
    id: str
    name: str
    phone: str
    email: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class ContactCreate(ApiModel):
    name: Optional[str] = None
    phone: str = Field(min_length=1)
    email: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    custom_fields: Dict[str, Any] = Field(default_factory=dict)


class ContactUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    tags: Optional[List[str]] = None
    custom_fields: Optional[Dict[str, Any]] = None


class MessageOut(ApiModel):
    id: str
    conversation_id: str
    direction: str
    content_type: str
    body: str
    media_url: Optional[str] = None
    file_name: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    contacts: Optional[List[Dict[str, Any]]] = None
    status: str
    is_internal_note: bool = False
    external_id: Optional[str] = None
    timestamp: datetime


class ConversationOut(ApiModel):
    id: str
    contact_id: str
    contact: Optional[ContactOut] = None
    integrated_number: str
    status: str
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None
    last_incoming_timestamp: Optional[datetime] = None
    unread_count: int = 0
    assigned_to: Optional[str] = None
    assigned_at: Optional[datetime] = None
    session: Optional[SessionWindow] = None


class ConversationDetail(ConversationOut):
    messages: List[MessageOut] = Field(default_factory=list)


class ConversationCreate(ApiModel):
    contact_id: str = Field(min_length=1)
    integrated_number: Optional[str] = None


class ConversationUpdate(ApiModel):
    status: Optional[ConversationStatus] = None
    assigned_to: Optional[str] = None


class SendMessageRequest(ApiModel):
    content_type: Literal["text", "template"] = "text"
    text: Optional[str] = Field(default=None, max_length=4096)
    template_name: Optional[str] = None
    template_language: str = "en"
    components: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    is_internal_note: bool = False


class SendMessageResponse(ApiModel):
    message: MessageOut
    provider_response: Optional[Any] = None


class PaymentOut(ApiModel):
    id: str
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
    message_status: str = "pending"
    payment_status: str = "created"
    created_by: str = "Sales"
    integrated_number: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaymentCreate(ApiModel):
    contact_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    amount: float = Field(gt=0)
    description: Optional[str] = None
    contact_id: Optional[str] = None
    conversation_id: Optional[str] = None
    integrated_number: Optional[str] = None
    send_via_whatsapp: bool = Field(default=False, alias="sendViaWhatsApp")


class SummaryBucket(ApiModel):
    count: int = 0
    total: float = 0


class PaymentSummary(ApiModel):
    created: SummaryBucket = Field(default_factory=SummaryBucket)
    paid: SummaryBucket = Field(default_factory=SummaryBucket)
    unpaid: SummaryBucket = Field(default_factory=SummaryBucket)
    cancelled: SummaryBucket = Field(default_factory=SummaryBucket)


class PaymentsResponse(ApiModel):
    payments: List[PaymentOut]
    summary: PaymentSummary


class QuickReplyOut(ApiModel):
    id: str
    title: str
    body: str
    shortcut: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class QuickReplyCreate(ApiModel):
    title: str = Field(min_length=1, max_length=120)
    body: str = Field(min_length=1, max_length=4096)
    shortcut: Optional[str] = Field(default=None, max_length=40)


class QuickReplyUpdate(ApiModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=120)
    body: Optional[str] = Field(default=None, min_length=1, max_length=4096)
    shortcut: Optional[str] = Field(default=None, max_length=40)


class ReminderOut(ApiModel):
    id: str
    conversation_id: str
    user_id: str
    remind_at: datetime
    note: Optional[str] = None
    is_dismissed: bool = False
    created_at: Optional[datetime] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None


class ReminderCreate(ApiModel):
    conversation_id: str = Field(min_length=1)
    remind_at: datetime
    note: Optional[str] = Field(default=None, max_length=1000)


class ReminderUpdate(ApiModel):
    remind_at: Optional[datetime] = None
    note: Optional[str] = Field(default=None, max_length=1000)
    is_dismissed: Optional[bool] = None


class BroadcastRequest(ApiModel):
    """Bulk template send; every recipient gets the same body variables."""

    template_id: str = Field(min_length=1)
    recipients: List[str] = Field(min_length=1, max_length=1000)
    variables: Dict[str, str] = Field(default_factory=dict)
    language: str = "en"
    integrated_number: Optional[str] = None


class BroadcastResponse(ApiModel):
    success: bool
    recipients: int
    skipped: List[str] = Field(default_factory=list)
    provider_response: Optional[Any] = None
