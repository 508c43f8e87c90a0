"""Razorpay payment link creation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from phones import normalize_phone

logger = logging.getLogger("wacrm.razorpay")

PAYMENT_LINKS_URL = "https://api.razorpay.com/v1/payment_links"
DEFAULT_TIMEOUT = 15  # seconds


@dataclass
class PaymentLink:
    id: str
    short_url: Optional[str]


class RazorpayClient:
    def __init__(self, key_id: str, key_secret: str, session: Optional[requests.Session] = None) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.session = session or requests.Session()

    def create_payment_link(
        self,
        *,
        amount: float,
        contact_name: str,
        phone: str,
        description: Optional[str] = None,
        currency: str = "INR",
    ) -> Optional[PaymentLink]:
        """Create a hosted checkout link; None when the gateway refuses.

        Amounts are sent in the smallest currency unit. Razorpay's own SMS and
        email notifications are disabled since the link goes out on WhatsApp.
        """
        payload = {
            "amount": int(round(amount * 100)),
            "currency": currency,
            "description": description or f"Payment from {contact_name}",
            "customer": {
                "name": contact_name,
                "contact": f"+{normalize_phone(phone)}",
            },
            "notify": {"sms": False, "email": False},
            "reminder_enable": True,
            "callback_url": "",
            "callback_method": "get",
        }

        try:
            response = self.session.post(
                PAYMENT_LINKS_URL,
                auth=(self.key_id, self.key_secret),
                json=payload,
                timeout=DEFAULT_TIMEOUT,
            )
        except requests.RequestException:
            logger.exception("Razorpay payment link request failed for %s", contact_name)
            return None

        if not response.ok:
            logger.error("Razorpay responded with %s: %s", response.status_code, response.text)
            return None

        try:
            data = response.json()
        except ValueError:
            logger.error("Razorpay payment link response was not valid JSON.")
            return None

        link_id = data.get("id")
        if not link_id:
            logger.error("Razorpay payment link response carried no id: %s", data)
            return None
        return PaymentLink(id=link_id, short_url=data.get("short_url"))
