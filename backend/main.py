"""FastAPI application: dashboard API for the WhatsApp inbox plus provider webhooks."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from google.api_core import exceptions as gcloud_exceptions
from google.cloud.firestore_v1 import Client as FirestoreClient

from auth import (
    TOKEN_COOKIE_NAME,
    TOKEN_EXPIRE_MINUTES,
    DASHBOARD_SUBJECT,
    cookie_secret,
    create_access_token,
    dashboard_password,
    get_current_user,
)
from config import (
    ContentType,
    DeliveryStatus,
    MessageDirection,
    MessageStatus,
    PaymentRecord,
    Settings,
    get_settings,
    init_firestore,
)
from contacts import ContactStore
from conversations import DEFAULT_NUMBER, ConversationStore
from deps import (
    default_number,
    get_app_settings,
    get_contacts,
    get_conversations,
    get_messages,
    get_msg91,
    get_payments,
    get_quick_replies,
    get_razorpay,
    get_reminders,
    parse_numbers,
)
from messages import MessageStore
from msg91_client import Msg91Client, SendResult
from payment_links import RazorpayClient
from payments import PaymentStore, summarize
from phones import format_recipient, normalize_phone
from quick_replies import QuickReplyStore
from reminders import ReminderStore
from schemas import (
    ActionResponse,
    BroadcastRequest,
    BroadcastResponse,
    ContactCreate,
    ContactOut,
    ContactUpdate,
    ConversationCreate,
    ConversationDetail,
    ConversationOut,
    ConversationUpdate,
    LoginRequest,
    LoginResponse,
    PaymentCreate,
    PaymentOut,
    PaymentsResponse,
    QuickReplyCreate,
    QuickReplyOut,
    QuickReplyUpdate,
    ReminderCreate,
    ReminderOut,
    ReminderUpdate,
    SendMessageRequest,
    SendMessageResponse,
    WhatsAppNumber,
)
from webhooks import router as webhooks_router

logger = logging.getLogger("wacrm.api")


def configure_logging(level: str) -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    else:
        root.setLevel(level.upper())


def _provider_clients(settings: Settings) -> Dict[str, Any]:
    msg91 = (
        Msg91Client(settings.msg91_auth_key.get_secret_value())
        if settings.msg91_auth_key
        else None
    )
    razorpay = (
        RazorpayClient(settings.razorpay_key_id, settings.razorpay_key_secret.get_secret_value())
        if settings.razorpay_key_id and settings.razorpay_key_secret
        else None
    )
    if msg91 is None:
        logger.warning("MSG91_AUTH_KEY not set; outbound WhatsApp sends are disabled.")
    if razorpay is None:
        logger.warning("Razorpay keys not set; payment link creation is disabled.")
    return {"msg91": msg91, "razorpay": razorpay}


def create_app(settings: Optional[Settings] = None, db: Optional[FirestoreClient] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.db is None:
            app.state.db = init_firestore(settings)
        yield

    app = FastAPI(title="WhatsApp CRM Backend", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    for name, client in _provider_clients(settings).items():
        setattr(app.state, name, client)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_allowed_origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(gcloud_exceptions.FailedPrecondition)
    async def missing_index(request: Request, exc: gcloud_exceptions.FailedPrecondition):
        logger.error("Firestore index missing: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "detail": "Firestore index missing for this query. Create the composite index named in the server log and retry."
            },
        )

    app.include_router(webhooks_router)
    register_routes(app)
    return app


def _attach_contacts(
    conversations: List[ConversationOut], contacts: ContactStore
) -> List[ConversationOut]:
    cache: Dict[str, Optional[ContactOut]] = {}
    for conversation in conversations:
        if conversation.contact_id not in cache:
            cache[conversation.contact_id] = contacts.get(conversation.contact_id)
        conversation.contact = cache[conversation.contact_id]
    return conversations


def _attach_reminder_contacts(
    reminders: List[ReminderOut], conversations: ConversationStore, contacts: ContactStore
) -> List[ReminderOut]:
    cache: Dict[str, Optional[ContactOut]] = {}
    for reminder in reminders:
        if reminder.conversation_id not in cache:
            conversation = conversations.get(reminder.conversation_id)
            cache[reminder.conversation_id] = (
                contacts.get(conversation.contact_id) if conversation else None
            )
        contact = cache[reminder.conversation_id]
        reminder.contact_name = contact.name if contact else "Unknown"
        reminder.contact_phone = contact.phone if contact else ""
    return reminders


def _user_id(user: Dict[str, Any]) -> str:
    return str(user.get("sub") or DASHBOARD_SUBJECT)


def _matches(conversation: ConversationOut, needle: str) -> bool:
    contact = conversation.contact
    if contact is None:
        return False
    return needle in contact.name.lower() or needle in contact.phone


def _sending_number(conversation: ConversationOut, settings: Settings) -> str:
    if conversation.integrated_number and conversation.integrated_number != DEFAULT_NUMBER:
        return conversation.integrated_number
    number = default_number(settings)
    if not number:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="No business number configured. Missing: MSG91_INTEGRATED_NUMBERS",
        )
    return number


def _payment_message(amount: float, description: Optional[str], short_url: str) -> str:
    lines = ["Payment Link", "", f"Amount: ₹{amount:,.2f}"]
    if description:
        lines.append(f"For: {description}")
    lines.extend(["", f"Pay here: {short_url}"])
    return "\n".join(lines)


def register_routes(app: FastAPI) -> None:
    @app.post("/api/login", response_model=LoginResponse)
    async def login(
        payload: LoginRequest,
        response: Response,
        settings: Settings = Depends(get_app_settings),
    ) -> LoginResponse:
        if payload.password != dashboard_password(settings):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password."
            )

        token = create_access_token(DASHBOARD_SUBJECT, cookie_secret(settings))
        response.set_cookie(
            key=TOKEN_COOKIE_NAME,
            value=token,
            httponly=True,
            secure=True,
            samesite="none",
            max_age=TOKEN_EXPIRE_MINUTES * 60,
        )
        return LoginResponse(success=True)

    @app.post("/api/logout", response_model=LoginResponse)
    async def logout(response: Response) -> LoginResponse:
        response.delete_cookie(TOKEN_COOKIE_NAME, httponly=True, secure=True, samesite="none")
        return LoginResponse(success=True)

    @app.get("/api/numbers", response_model=List[WhatsAppNumber])
    async def list_numbers(
        user: Dict[str, Any] = Depends(get_current_user),
        settings: Settings = Depends(get_app_settings),
    ) -> List[WhatsAppNumber]:
        return parse_numbers(settings.msg91_integrated_numbers)

    @app.get("/api/templates")
    async def list_templates(
        user: Dict[str, Any] = Depends(get_current_user),
        msg91: Msg91Client = Depends(get_msg91),
    ) -> Dict[str, Any]:
        try:
            templates = msg91.fetch_templates()
        except requests.RequestException as exc:
            logger.exception("Failed to fetch MSG91 templates")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Failed to fetch templates from MSG91.",
            ) from exc
        return {"templates": templates}

    # Conversations

    @app.get("/api/conversations", response_model=List[ConversationOut])
    async def list_conversations(
        status_filter: Optional[str] = Query(None, alias="status"),
        search: Optional[str] = None,
        user: Dict[str, Any] = Depends(get_current_user),
        conversations: ConversationStore = Depends(get_conversations),
        contacts: ContactStore = Depends(get_contacts),
    ) -> List[ConversationOut]:
        results = _attach_contacts(conversations.list(status_filter), contacts)
        if search and search.strip():
            needle = search.strip().lower()
            results = [c for c in results if _matches(c, needle)]
        return results

    @app.post("/api/conversations", response_model=ConversationOut)
    async def open_conversation(
        payload: ConversationCreate,
        response: Response,
        user: Dict[str, Any] = Depends(get_current_user),
        settings: Settings = Depends(get_app_settings),
        conversations: ConversationStore = Depends(get_conversations),
        contacts: ContactStore = Depends(get_contacts),
    ) -> ConversationOut:
        contact = contacts.get(payload.contact_id)
        if contact is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found.")

        number = payload.integrated_number or default_number(settings)
        conversation, created = conversations.open_for_agent(contact.id, number)
        if created:
            response.status_code = status.HTTP_201_CREATED
        conversation.contact = contact
        return conversation

    @app.get("/api/conversations/{conversation_id}", response_model=ConversationDetail)
    async def get_conversation(
        conversation_id: str,
        user: Dict[str, Any] = Depends(get_current_user),
        conversations: ConversationStore = Depends(get_conversations),
        contacts: ContactStore = Depends(get_contacts),
        messages: MessageStore = Depends(get_messages),
    ) -> ConversationDetail:
        conversation = conversations.get(conversation_id)
        if conversation is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found.")

        return ConversationDetail(
            **conversation.model_dump(exclude={"contact"}),
            contact=contacts.get(conversation.contact_id),
            messages=messages.list(conversation_id),
        )

    @app.patch("/api/conversations/{conversation_id}", response_model=ConversationOut)
    async def update_conversation(
        conversation_id: str,
        payload: ConversationUpdate,
        user: Dict[str, Any] = Depends(get_current_user),
        conversations: ConversationStore = Depends(get_conversations),
    ) -> ConversationOut:
        conversation = conversations.update(
            conversation_id, status=payload.status, assigned_to=payload.assigned_to
        )
        if conversation is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found.")
        return conversation

    @app.post("/api/conversations/{conversation_id}/read", response_model=ActionResponse)
    async def mark_conversation_read(
        conversation_id: str,
        user: Dict[str, Any] = Depends(get_current_user),
        conversations: ConversationStore = Depends(get_conversations),
    ) -> ActionResponse:
        if not conversations.mark_read(conversation_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found.")
        return ActionResponse(success=True, message="Conversation marked as read.")

    @app.post(
        "/api/conversations/{conversation_id}/messages",
        response_model=SendMessageResponse,
        status_code=status.HTTP_201_CREATED,
    )
    async def send_message(
        conversation_id: str,
        payload: SendMessageRequest,
        request: Request,
        user: Dict[str, Any] = Depends(get_current_user),
        settings: Settings = Depends(get_app_settings),
        conversations: ConversationStore = Depends(get_conversations),
        contacts: ContactStore = Depends(get_contacts),
        messages: MessageStore = Depends(get_messages),
    ) -> SendMessageResponse:
        conversation = conversations.get(conversation_id)
        if conversation is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found.")

        text = (payload.text or "").strip()
        if payload.is_internal_note:
            if not text:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Note text is required.")
            note = messages.insert(
                conversation_id,
                MessageDirection.OUTBOUND,
                ContentType.TEXT,
                text,
                status=MessageStatus.SENT,
                is_internal_note=True,
            )
            return SendMessageResponse(message=note)

        if payload.content_type == "text":
            if not text:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message text is required.")
            if settings.enforce_session_window and conversation.session and conversation.session.expired:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="The 24-hour session window has expired. Send an approved template instead.",
                )
        elif not payload.template_name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="templateName is required.")

        contact = contacts.get(conversation.contact_id)
        if contact is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found.")
        recipient = format_recipient(contact.phone, settings.default_country_dial_code)
        if not recipient:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Contact phone number is invalid.")

        msg91 = get_msg91(request)
        sender = _sending_number(conversation, settings)

        result: SendResult
        if payload.content_type == "text":
            result = msg91.send_text(sender, recipient, text)
            content_type, preview = ContentType.TEXT, text
        else:
            result = msg91.send_template(
                sender,
                recipient,
                payload.template_name,
                payload.template_language,
                payload.components,
            )
            content_type, preview = ContentType.TEMPLATE, f"Template: {payload.template_name}"

        message = messages.insert(
            conversation_id,
            MessageDirection.OUTBOUND,
            content_type,
            preview,
            status=MessageStatus.SENT if result.ok else MessageStatus.FAILED,
        )
        if not result.ok:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail={"error": "MSG91 API returned an error.", "messageId": message.id, "details": result.body or result.error},
            )

        conversations.record_outbound(conversation_id, preview)
        return SendMessageResponse(message=message, provider_response=result.body)

    # Contacts

    @app.get("/api/contacts", response_model=List[ContactOut])
    async def list_contacts(
        search: Optional[str] = None,
        user: Dict[str, Any] = Depends(get_current_user),
        contacts: ContactStore = Depends(get_contacts),
    ) -> List[ContactOut]:
        return contacts.list(search)

    @app.post("/api/contacts", response_model=ContactOut, status_code=status.HTTP_201_CREATED)
    async def create_contact(
        payload: ContactCreate,
        user: Dict[str, Any] = Depends(get_current_user),
        contacts: ContactStore = Depends(get_contacts),
    ) -> ContactOut:
        if not normalize_phone(payload.phone):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Phone number is required.")
        if contacts.find_by_phone(payload.phone) is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A contact with this phone number already exists.",
            )
        return contacts.create(
            payload.phone,
            payload.name,
            email=payload.email,
            tags=payload.tags,
            custom_fields=payload.custom_fields,
        )

    @app.get("/api/contacts/{contact_id}", response_model=ContactOut)
    async def get_contact(
        contact_id: str,
        user: Dict[str, Any] = Depends(get_current_user),
        contacts: ContactStore = Depends(get_contacts),
    ) -> ContactOut:
        contact = contacts.get(contact_id)
        if contact is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found.")
        return contact

    @app.patch("/api/contacts/{contact_id}", response_model=ContactOut)
    async def update_contact(
        contact_id: str,
        payload: ContactUpdate,
        user: Dict[str, Any] = Depends(get_current_user),
        contacts: ContactStore = Depends(get_contacts),
    ) -> ContactOut:
        contact = contacts.update(
            contact_id,
            name=payload.name,
            email=payload.email,
            tags=payload.tags,
            custom_fields=payload.custom_fields,
        )
        if contact is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found.")
        return contact

    # Payments

    @app.get("/api/payments", response_model=PaymentsResponse)
    async def list_payments(
        status_filter: Optional[str] = Query(None, alias="status"),
        created_from: Optional[datetime] = Query(None, alias="from"),
        created_to: Optional[datetime] = Query(None, alias="to"),
        user: Dict[str, Any] = Depends(get_current_user),
        payments: PaymentStore = Depends(get_payments),
    ) -> PaymentsResponse:
        results = payments.list(status_filter, created_from, created_to)
        return PaymentsResponse(payments=results, summary=summarize(results))

    @app.post("/api/payments", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
    async def create_payment(
        payload: PaymentCreate,
        request: Request,
        user: Dict[str, Any] = Depends(get_current_user),
        settings: Settings = Depends(get_app_settings),
        razorpay: RazorpayClient = Depends(get_razorpay),
        payments: PaymentStore = Depends(get_payments),
        conversations: ConversationStore = Depends(get_conversations),
        messages: MessageStore = Depends(get_messages),
    ) -> PaymentOut:
        conversation: Optional[ConversationOut] = None
        msg91: Optional[Msg91Client] = None
        sender: Optional[str] = None
        if payload.send_via_whatsapp and payload.conversation_id:
            conversation = conversations.get(payload.conversation_id)
            if conversation is None:
                logger.warning(
                    "WhatsApp delivery requested for unknown conversation %s",
                    payload.conversation_id,
                )
            else:
                # Must fail before a link or payment exists.
                msg91 = get_msg91(request)
                sender = payload.integrated_number or _sending_number(conversation, settings)

        link = razorpay.create_payment_link(
            amount=payload.amount,
            contact_name=payload.contact_name,
            phone=payload.phone,
            description=payload.description,
        )
        if link is None:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Failed to create Razorpay payment link.",
            )

        now = datetime.now(timezone.utc)
        payment = payments.create(
            PaymentRecord(
                contact_id=payload.contact_id,
                conversation_id=payload.conversation_id,
                contact_name=payload.contact_name,
                phone=normalize_phone(payload.phone),
                amount=payload.amount,
                description=payload.description,
                razorpay_link_id=link.id,
                short_url=link.short_url,
                integrated_number=payload.integrated_number,
                created_at=now,
                updated_at=now,
            )
        )

        if conversation is None or msg91 is None or not link.short_url:
            return payment

        recipient = format_recipient(payment.phone, settings.default_country_dial_code)
        text = _payment_message(payload.amount, payload.description, link.short_url)
        result = msg91.send_text(sender, recipient, text)

        messages.insert(
            conversation.id,
            MessageDirection.OUTBOUND,
            ContentType.TEXT,
            text,
            status=MessageStatus.SENT if result.ok else MessageStatus.FAILED,
        )
        delivery = DeliveryStatus.SENT if result.ok else DeliveryStatus.FAILED
        if result.ok:
            conversations.record_outbound(conversation.id, f"Payment: ₹{payload.amount:,.2f}")
        else:
            logger.error("Failed to send payment link %s on WhatsApp", payment.id)
        payments.update(payment.id, {"message_status": delivery.value})
        return payments.get(payment.id) or payment

    @app.get("/api/payments/{payment_id}", response_model=PaymentOut)
    async def get_payment(
        payment_id: str,
        user: Dict[str, Any] = Depends(get_current_user),
        payments: PaymentStore = Depends(get_payments),
    ) -> PaymentOut:
        payment = payments.get(payment_id)
        if payment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found.")
        return payment

    # Broadcast

    @app.post("/api/broadcast", response_model=BroadcastResponse)
    async def broadcast(
        payload: BroadcastRequest,
        request: Request,
        user: Dict[str, Any] = Depends(get_current_user),
        settings: Settings = Depends(get_app_settings),
    ) -> BroadcastResponse:
        recipients: List[str] = []
        skipped: List[str] = []
        for phone in payload.recipients:
            recipient = format_recipient(phone, settings.default_country_dial_code)
            if not recipient.isdigit():
                skipped.append(phone)
            elif recipient not in recipients:
                recipients.append(recipient)
        if not recipients:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid recipients.")

        msg91 = get_msg91(request)
        sender = payload.integrated_number or default_number(settings)
        if not sender:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="No business number configured. Missing: MSG91_INTEGRATED_NUMBERS",
            )

        result = msg91.send_bulk_template(
            sender, recipients, payload.template_id, payload.language, payload.variables
        )
        if not result.ok:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail={
                    "error": result.error or "Failed to send bulk broadcast via MSG91.",
                    "details": result.body,
                },
            )
        if skipped:
            logger.warning("Broadcast %s skipped %d invalid numbers", payload.template_id, len(skipped))
        return BroadcastResponse(
            success=True, recipients=len(recipients), skipped=skipped, provider_response=result.body
        )

    # Quick replies

    @app.get("/api/quick-replies", response_model=List[QuickReplyOut])
    async def list_quick_replies(
        user: Dict[str, Any] = Depends(get_current_user),
        quick_replies: QuickReplyStore = Depends(get_quick_replies),
    ) -> List[QuickReplyOut]:
        return quick_replies.list()

    @app.post("/api/quick-replies", response_model=QuickReplyOut, status_code=status.HTTP_201_CREATED)
    async def create_quick_reply(
        payload: QuickReplyCreate,
        user: Dict[str, Any] = Depends(get_current_user),
        quick_replies: QuickReplyStore = Depends(get_quick_replies),
    ) -> QuickReplyOut:
        return quick_replies.create(
            payload.title, payload.body, payload.shortcut, created_by=_user_id(user)
        )

    @app.patch("/api/quick-replies/{reply_id}", response_model=QuickReplyOut)
    async def update_quick_reply(
        reply_id: str,
        payload: QuickReplyUpdate,
        user: Dict[str, Any] = Depends(get_current_user),
        quick_replies: QuickReplyStore = Depends(get_quick_replies),
    ) -> QuickReplyOut:
        reply = quick_replies.update(
            reply_id, title=payload.title, body=payload.body, shortcut=payload.shortcut
        )
        if reply is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quick reply not found.")
        return reply

    @app.delete("/api/quick-replies/{reply_id}", response_model=ActionResponse)
    async def delete_quick_reply(
        reply_id: str,
        user: Dict[str, Any] = Depends(get_current_user),
        quick_replies: QuickReplyStore = Depends(get_quick_replies),
    ) -> ActionResponse:
        if not quick_replies.delete(reply_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quick reply not found.")
        return ActionResponse(success=True)

    # Reminders

    @app.get("/api/reminders", response_model=List[ReminderOut])
    async def list_reminders(
        conversation_id: Optional[str] = Query(None, alias="conversationId"),
        due: bool = Query(False),
        user: Dict[str, Any] = Depends(get_current_user),
        reminders: ReminderStore = Depends(get_reminders),
        conversations: ConversationStore = Depends(get_conversations),
        contacts: ContactStore = Depends(get_contacts),
    ) -> List[ReminderOut]:
        due_before = datetime.now(timezone.utc) if due else None
        results = reminders.list_pending(_user_id(user), conversation_id, due_before)
        return _attach_reminder_contacts(results, conversations, contacts)

    @app.post("/api/reminders", response_model=ReminderOut, status_code=status.HTTP_201_CREATED)
    async def create_reminder(
        payload: ReminderCreate,
        user: Dict[str, Any] = Depends(get_current_user),
        reminders: ReminderStore = Depends(get_reminders),
        conversations: ConversationStore = Depends(get_conversations),
    ) -> ReminderOut:
        if conversations.get(payload.conversation_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found.")
        return reminders.create(
            payload.conversation_id, _user_id(user), payload.remind_at, payload.note
        )

    @app.patch("/api/reminders/{reminder_id}", response_model=ReminderOut)
    async def update_reminder(
        reminder_id: str,
        payload: ReminderUpdate,
        user: Dict[str, Any] = Depends(get_current_user),
        reminders: ReminderStore = Depends(get_reminders),
    ) -> ReminderOut:
        reminder = reminders.update(
            reminder_id,
            remind_at=payload.remind_at,
            note=payload.note,
            is_dismissed=payload.is_dismissed,
        )
        if reminder is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reminder not found.")
        return reminder

    @app.delete("/api/reminders/{reminder_id}", response_model=ActionResponse)
    async def delete_reminder(
        reminder_id: str,
        user: Dict[str, Any] = Depends(get_current_user),
        reminders: ReminderStore = Depends(get_reminders),
    ) -> ActionResponse:
        if not reminders.delete(reminder_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reminder not found.")
        return ActionResponse(success=True)


app = create_app()


def main(settings: Optional[Settings] = None) -> None:
    import uvicorn

    settings = settings or get_settings()
    uvicorn.run("main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
