"""MSG91 WhatsApp Business API client."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger("wacrm.msg91")

OUTBOUND_URL = "https://control.msg91.com/api/v5/whatsapp/whatsapp-outbound-message/"
BULK_URL = OUTBOUND_URL + "bulk/"
TEMPLATES_URL = "https://control.msg91.com/api/v5/whatsapp/whatsapp-get-template"
DEFAULT_TIMEOUT = 15  # seconds


@dataclass
class SendResult:
    """Submission acknowledgement only; delivery is not confirmed here."""

    ok: bool
    status_code: Optional[int]
    body: Any = None
    error: Optional[str] = None


def build_text_payload(integrated_number: str, to: str, text: str) -> Dict[str, Any]:
    return {
        "integrated_number": integrated_number,
        "content_type": "text",
        "payload": {
            "to": to,
            "type": "text",
            "text": {"body": text},
        },
    }


def build_template_payload(
    integrated_number: str,
    to: str,
    template_name: str,
    language: str,
    components: Dict[str, Dict[str, str]],
) -> Dict[str, Any]:
    return {
        "integrated_number": integrated_number,
        "content_type": "template",
        "template": {
            "name": template_name,
            "language": {"code": language or "en", "policy": "deterministic"},
            "to_and_components": [{"to": [to], "components": components}],
        },
    }


def build_bulk_template_payload(
    integrated_number: str,
    recipients: List[str],
    template_name: str,
    language: str,
    variables: Dict[str, str],
) -> Dict[str, Any]:
    """One message per recipient, all sharing the same body parameters."""
    components: List[Dict[str, Any]] = []
    if variables:
        components.append(
            {
                "type": "body",
                "parameters": [{"type": "text", "value": value} for value in variables.values()],
            }
        )
    messages = []
    for to in recipients:
        message: Dict[str, Any] = {"to": [to]}
        if components:
            message["components"] = components
        messages.append(message)
    return {
        "integrated_number": integrated_number,
        "template": {
            "name": template_name,
            "language": {"code": language or "en", "policy": "deterministic"},
        },
        "messages": messages,
    }


class Msg91Client:
    def __init__(self, auth_key: str, session: Optional[requests.Session] = None) -> None:
        self.auth_key = auth_key
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {"authkey": self.auth_key, "Content-Type": "application/json"}

    def _post(self, payload: Dict[str, Any], url: str = OUTBOUND_URL) -> SendResult:
        try:
            response = self.session.post(
                url,
                headers=self._headers(),
                json=payload,
                timeout=DEFAULT_TIMEOUT,
            )
        except requests.RequestException as exc:
            logger.exception("MSG91 request failed for %s", payload.get("integrated_number"))
            return SendResult(ok=False, status_code=None, error=str(exc))

        try:
            body = response.json()
        except ValueError:
            body = {"_raw": response.text}

        # MSG91 can answer 200 with hasError set.
        ok = response.ok and not (isinstance(body, dict) and body.get("hasError"))
        if not ok:
            logger.error("MSG91 responded with %s: %s", response.status_code, response.text)
        error = body.get("message") if not ok and isinstance(body, dict) else None
        return SendResult(ok=ok, status_code=response.status_code, body=body, error=error)

    def send_text(self, integrated_number: str, to: str, text: str) -> SendResult:
        return self._post(build_text_payload(integrated_number, to, text))

    def send_template(
        self,
        integrated_number: str,
        to: str,
        template_name: str,
        language: str = "en",
        components: Optional[Dict[str, Dict[str, str]]] = None,
    ) -> SendResult:
        return self._post(
            build_template_payload(integrated_number, to, template_name, language, components or {})
        )

    def send_bulk_template(
        self,
        integrated_number: str,
        recipients: List[str],
        template_name: str,
        language: str = "en",
        variables: Optional[Dict[str, str]] = None,
    ) -> SendResult:
        payload = build_bulk_template_payload(
            integrated_number, recipients, template_name, language, variables or {}
        )
        logger.info(
            "Broadcasting template %s from %s to %d recipients",
            template_name,
            integrated_number,
            len(recipients),
        )
        return self._post(payload, url=BULK_URL)

    def fetch_templates(self) -> List[Dict[str, Any]]:
        response = self.session.get(
            TEMPLATES_URL,
            headers={"authkey": self.auth_key},
            timeout=DEFAULT_TIMEOUT,
        )
        response.raise_for_status()
        data = response.json()
        if isinstance(data, list):
            return data
        return data.get("data") or data.get("templates") or []
