"""
Test configuration and fixtures.

Provides:
- Settings built in code, never read from backend/.env
- An in-memory Firestore double shared by the app and the test
- A TestClient with and without a dashboard session
"""
from datetime import timedelta
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from auth import create_access_token
from config import Settings
from main import create_app
from msg91_client import SendResult
from payment_links import PaymentLink

from tests.fakes import FakeFirestore

COOKIE_SECRET = "test-cookie-secret"
WEBHOOK_SECRET = "whsec_test"


class StubMsg91:
    """Records outbound calls instead of hitting MSG91."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.ok = True
        self.templates: List[Dict[str, Any]] = [{"name": "order_update", "language": "en"}]

    def _result(self) -> SendResult:
        if self.ok:
            return SendResult(ok=True, status_code=200, body={"status": "success"})
        return SendResult(ok=False, status_code=400, body={"status": "fail"})

    def send_text(self, integrated_number: str, to: str, text: str) -> SendResult:
        self.sent.append({"type": "text", "from": integrated_number, "to": to, "text": text})
        return self._result()

    def send_template(self, integrated_number, to, template_name, language="en", components=None):
        self.sent.append(
            {
                "type": "template",
                "from": integrated_number,
                "to": to,
                "template": template_name,
                "language": language,
                "components": components or {},
            }
        )
        return self._result()

    def send_bulk_template(self, integrated_number, recipients, template_name, language="en", variables=None):
        self.sent.append(
            {
                "type": "bulk",
                "from": integrated_number,
                "to": list(recipients),
                "template": template_name,
                "language": language,
                "variables": variables or {},
            }
        )
        return self._result()

    def fetch_templates(self) -> List[Dict[str, Any]]:
        return self.templates


class StubRazorpay:
    def __init__(self) -> None:
        self.created: List[Dict[str, Any]] = []
        self.link: Optional[PaymentLink] = PaymentLink(id="plink_test123", short_url="https://rzp.io/i/test123")

    def create_payment_link(self, **kwargs) -> Optional[PaymentLink]:
        self.created.append(kwargs)
        return self.link


def make_settings(**overrides) -> Settings:
    values = {
        "msg91_integrated_numbers": "919800000001:Sales,919800000002:Support",
        "razorpay_webhook_secret": WEBHOOK_SECRET,
        "dashboard_password": "letmein",
        "cookie_secret_key": COOKIE_SECRET,
        "default_country_dial_code": "91",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def fake_db() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def msg91() -> StubMsg91:
    return StubMsg91()


@pytest.fixture
def razorpay() -> StubRazorpay:
    return StubRazorpay()


@pytest.fixture
def app(settings, fake_db, msg91, razorpay):
    application = create_app(settings=settings, db=fake_db)
    application.state.msg91 = msg91
    application.state.razorpay = razorpay
    return application


@pytest.fixture
def client(app) -> TestClient:
    """Unauthenticated client, as a provider webhook would call."""
    return TestClient(app)


@pytest.fixture
def auth_client(app) -> TestClient:
    token = create_access_token("dashboard_agent", COOKIE_SECRET, timedelta(minutes=5))
    return TestClient(app, headers={"Authorization": f"Bearer {token}"})
