"""Phone number helpers shared by ingestion and the outbound send paths."""
from __future__ import annotations

import re
from typing import Optional


def normalize_phone(phone: Optional[str]) -> str:
    """Canonical contact key: the provider's digit string without a leading '+'.

    Whitespace is dropped; no other reformatting happens, so whatever the
    provider sends minus the plus sign is what identifies a contact.
    """
    if not phone:
        return ""
    cleaned = re.sub(r"\s+", "", str(phone))
    return cleaned.lstrip("+")


def format_recipient(phone: Optional[str], default_code: str = "") -> str:
    """Prepare a number for MSG91: strip '+', '-', spaces, parentheses.

    Bare 10-digit numbers get the default country code prepended.
    """
    if not phone:
        return ""
    cleaned = re.sub(r"[\s+\-()]", "", str(phone))
    if default_code and len(cleaned) == 10:
        return f"{default_code}{cleaned}"
    return cleaned
