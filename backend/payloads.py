"""Normalisation of inbound MSG91 webhook bodies.

MSG91 (and the relays sitting in front of it) deliver inbound WhatsApp
messages with field names that drift between API versions. Each logical field
is resolved by trying an ordered list of accessors; the first one yielding a
present, non-empty value wins.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

Accessor = Callable[[Dict[str, Any]], Any]

MISSING_SENDER_DETAIL = "No sender phone found in payload"


def _key(name: str) -> Accessor:
    return lambda body: body.get(name)


def _keys(*names: str) -> List[Accessor]:
    return [_key(name) for name in names]


SENDER_PHONE: List[Accessor] = _keys("customerNumber", "from", "sender", "mobile", "phone")
RECEIVER_NUMBER: List[Accessor] = _keys("integratedNumber", "integrated_number", "to", "receiver")
BODY_TEXT: List[Accessor] = _keys("text", "message", "body", "content")
CONTENT_TYPE: List[Accessor] = _keys("contentType", "content_type", "type")
MEDIA_URL: List[Accessor] = _keys("url", "mediaUrl", "media_url")
FILE_NAME: List[Accessor] = _keys("fileName", "file_name", "filename")
EXTERNAL_ID: List[Accessor] = _keys("uuid", "messageId", "message_id", "id")
SENDER_NAME: List[Accessor] = _keys("customerName", "profileName", "profile_name", "senderName", "name")
LOCATION: List[Accessor] = _keys("location")
CONTACTS: List[Accessor] = _keys("contacts", "contact")


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (dict, list)):
        return not value
    return False


def first_present(body: Dict[str, Any], accessors: Sequence[Accessor]) -> Any:
    for accessor in accessors:
        value = accessor(body)
        if not _is_empty(value):
            return value
    return None


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip() or None


@dataclass(frozen=True)
class MissingSenderPhone:
    """Extraction outcome for a payload with no usable sender number."""

    detail: str = MISSING_SENDER_DETAIL


@dataclass
class InboundMessage:
    sender_phone: str
    receiver_number: Optional[str]
    content_type: str
    body_text: str
    media_url: Optional[str] = None
    file_name: Optional[str] = None
    external_id: Optional[str] = None
    sender_name: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    contacts: Optional[List[Dict[str, Any]]] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


def _resolve_body(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        nested = value.get("text")
        if isinstance(nested, dict):
            nested = nested.get("body")
        if not _is_empty(nested):
            return str(nested)
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, list):
        return json.dumps(value, ensure_ascii=False)

    text = str(value)
    stripped = text.strip()
    if stripped.startswith("{"):
        try:
            decoded = json.loads(stripped)
        except ValueError:
            return text
        if isinstance(decoded, dict) and not _is_empty(decoded.get("text")):
            return str(decoded["text"])
    return text


def _location_block(value: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(value, dict):
        return None
    return {
        "latitude": value.get("latitude", value.get("lat")),
        "longitude": value.get("longitude", value.get("lng", value.get("long"))),
        "name": value.get("name"),
        "address": value.get("address"),
    }


def _contacts_block(value: Any) -> Optional[List[Dict[str, Any]]]:
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, list):
        return None
    cards = [card for card in value if isinstance(card, dict)]
    return cards or None


def _formatted_name(card: Dict[str, Any]) -> Optional[str]:
    name = card.get("name")
    if isinstance(name, dict):
        return _as_text(
            name.get("formatted_name")
            or " ".join(part for part in (name.get("first_name"), name.get("last_name")) if part)
        )
    return _as_text(name)


def extract_inbound(body: Dict[str, Any]) -> Union[InboundMessage, MissingSenderPhone]:
    """Turn a provider-shaped webhook body into an `InboundMessage`.

    Returns `MissingSenderPhone` instead of raising when no sender alias
    yields a value; callers reject the request before touching storage.
    """
    sender_phone = _as_text(first_present(body, SENDER_PHONE))
    if not sender_phone:
        return MissingSenderPhone()

    content_type = (_as_text(first_present(body, CONTENT_TYPE)) or "text").lower()
    body_text = _resolve_body(first_present(body, BODY_TEXT))

    location: Optional[Dict[str, Any]] = None
    contacts: Optional[List[Dict[str, Any]]] = None

    if content_type == "location":
        location = _location_block(first_present(body, LOCATION))
        if location is not None and not body_text.strip():
            label = _as_text(location.get("name")) or _as_text(location.get("address")) or "Shared Location"
            body_text = f"[Location: {label}]"
    elif content_type in ("contacts", "contact"):
        content_type = "contact"
        contacts = _contacts_block(first_present(body, CONTACTS))
        if contacts is not None and not body_text.strip():
            label = _formatted_name(contacts[0]) or "Shared Contact"
            body_text = f"[Contact: {label}]"

    return InboundMessage(
        sender_phone=sender_phone,
        receiver_number=_as_text(first_present(body, RECEIVER_NUMBER)),
        content_type=content_type,
        body_text=body_text,
        media_url=_as_text(first_present(body, MEDIA_URL)),
        file_name=_as_text(first_present(body, FILE_NAME)),
        external_id=_as_text(first_present(body, EXTERNAL_ID)),
        sender_name=_as_text(first_present(body, SENDER_NAME)),
        location=location,
        contacts=contacts,
        raw=body,
    )
