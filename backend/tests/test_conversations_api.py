from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from auth import TOKEN_COOKIE_NAME, create_access_token
from main import create_app
from tests.conftest import COOKIE_SECRET, make_settings

INBOUND = "/api/webhooks/msg91"


def _inbound(client, phone="919876543210", number="919800000001", text="hi", **extra):
    body = {"customerNumber": phone, "integratedNumber": number, "text": text, **extra}
    return client.post(INBOUND, json=body).json()["conversationId"]


def _age_session(fake_db, conversation_id, hours):
    fake_db.collection("conversations").document(conversation_id).update(
        {"last_incoming_timestamp": datetime.now(timezone.utc) - timedelta(hours=hours)}
    )


def test_dashboard_requires_authentication(client):
    assert client.get("/api/conversations").status_code == 401


def test_login_sets_cookie_and_grants_access(client):
    rejected = client.post("/api/login", json={"password": "wrong"})
    assert rejected.status_code == 401

    response = client.post("/api/login", json={"password": "letmein"})
    assert response.status_code == 200
    assert "httponly" in response.headers["set-cookie"].lower()

    token = response.cookies[TOKEN_COOKIE_NAME]
    listing = client.get("/api/conversations", headers={"Cookie": f"{TOKEN_COOKIE_NAME}={token}"})
    assert listing.status_code == 200


def test_expired_token_is_rejected(client):
    token = create_access_token("dashboard_agent", COOKIE_SECRET, timedelta(seconds=-1))

    response = client.get("/api/conversations", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_numbers_lists_configured_business_numbers(auth_client):
    numbers = auth_client.get("/api/numbers").json()

    assert [n["number"] for n in numbers] == ["919800000001", "919800000002"]
    assert numbers[0]["isDefault"] is True
    assert numbers[1]["label"] == "Support"


def test_templates_are_proxied(auth_client, msg91):
    response = auth_client.get("/api/templates")

    assert response.status_code == 200
    assert response.json()["templates"] == msg91.templates


def test_list_embeds_contact_and_session(client, auth_client):
    _inbound(client, customerName="Asha")

    conversations = auth_client.get("/api/conversations").json()

    assert len(conversations) == 1
    conversation = conversations[0]
    assert conversation["contact"]["name"] == "Asha"
    assert conversation["unreadCount"] == 1
    assert conversation["session"]["expired"] is False
    assert conversation["session"]["hoursLeft"] in (23, 24)


def test_list_filters_by_status_and_search(client, auth_client):
    first = _inbound(client, phone="919876543210", customerName="Asha")
    _inbound(client, phone="919811111111", customerName="Ravi")
    auth_client.patch(f"/api/conversations/{first}", json={"status": "resolved"})

    open_ids = [c["id"] for c in auth_client.get("/api/conversations", params={"status": "open"}).json()]
    assert first not in open_ids
    assert len(open_ids) == 1

    found = auth_client.get("/api/conversations", params={"search": "asha"}).json()
    assert [c["id"] for c in found] == [first]

    by_phone = auth_client.get("/api/conversations", params={"search": "98111"}).json()
    assert by_phone[0]["contact"]["name"] == "Ravi"


def test_detail_includes_messages_and_window(client, auth_client):
    conversation_id = _inbound(client, text="hello")

    detail = auth_client.get(f"/api/conversations/{conversation_id}").json()

    assert detail["id"] == conversation_id
    assert detail["lastIncomingTimestamp"] is not None
    assert detail["session"]["expired"] is False
    assert [m["body"] for m in detail["messages"]] == ["hello"]


def test_unknown_conversation_is_404(auth_client):
    assert auth_client.get("/api/conversations/missing").status_code == 404
    assert auth_client.patch("/api/conversations/missing", json={"status": "open"}).status_code == 404
    assert auth_client.post("/api/conversations/missing/read").status_code == 404


def test_assignment_and_read(client, auth_client, fake_db):
    conversation_id = _inbound(client)

    updated = auth_client.patch(
        f"/api/conversations/{conversation_id}", json={"assignedTo": "agent-7"}
    ).json()
    assert updated["assignedTo"] == "agent-7"
    assert updated["assignedAt"] is not None

    response = auth_client.post(f"/api/conversations/{conversation_id}/read")
    assert response.status_code == 200
    assert fake_db.collection("conversations").document(conversation_id).get().to_dict()["unread_count"] == 0


def test_agent_opened_conversation_has_no_window(auth_client, fake_db):
    contact = auth_client.post("/api/contacts", json={"name": "Asha", "phone": "+919876543210"}).json()

    response = auth_client.post("/api/conversations", json={"contactId": contact["id"]})
    assert response.status_code == 201
    conversation = response.json()
    assert conversation["integratedNumber"] == "919800000001"
    assert conversation["lastIncomingTimestamp"] is None
    assert conversation["session"]["expired"] is True

    again = auth_client.post("/api/conversations", json={"contactId": contact["id"]})
    assert again.status_code == 200
    assert again.json()["id"] == conversation["id"]


def test_send_text_message(client, auth_client, msg91, fake_db):
    conversation_id = _inbound(client, phone="+919876543210")

    response = auth_client.post(
        f"/api/conversations/{conversation_id}/messages", json={"contentType": "text", "text": "Hello from us"}
    )

    assert response.status_code == 201
    message = response.json()["message"]
    assert message["direction"] == "outbound"
    assert message["status"] == "sent"
    assert msg91.sent == [{"type": "text", "from": "919800000001", "to": "919876543210", "text": "Hello from us"}]

    conversation = fake_db.collection("conversations").document(conversation_id).get().to_dict()
    assert conversation["last_message"] == "Hello from us"
    assert conversation["unread_count"] == 0


def test_outbound_does_not_move_session_window(client, auth_client, fake_db):
    conversation_id = _inbound(client)
    _age_session(fake_db, conversation_id, hours=5)
    before = fake_db.collection("conversations").document(conversation_id).get().to_dict()

    auth_client.post(f"/api/conversations/{conversation_id}/messages", json={"text": "ok"})

    after = fake_db.collection("conversations").document(conversation_id).get().to_dict()
    assert after["last_incoming_timestamp"] == before["last_incoming_timestamp"]


def test_send_template_message(client, auth_client, msg91):
    conversation_id = _inbound(client)

    response = auth_client.post(
        f"/api/conversations/{conversation_id}/messages",
        json={
            "contentType": "template",
            "templateName": "order_update",
            "components": {"body_1": {"type": "text", "value": "Asha"}},
        },
    )

    assert response.status_code == 201
    assert response.json()["message"]["body"] == "Template: order_update"
    assert msg91.sent[0]["template"] == "order_update"
    assert msg91.sent[0]["components"] == {"body_1": {"type": "text", "value": "Asha"}}


def test_provider_failure_persists_failed_message(client, auth_client, msg91, fake_db):
    conversation_id = _inbound(client, text="question")
    msg91.ok = False

    response = auth_client.post(f"/api/conversations/{conversation_id}/messages", json={"text": "answer"})

    assert response.status_code == 502
    messages = fake_db.docs(f"conversations/{conversation_id}/messages")
    assert [m["status"] for m in messages] == ["delivered", "failed"]
    conversation = fake_db.collection("conversations").document(conversation_id).get().to_dict()
    assert conversation["last_message"] == "question"


def test_internal_note_is_never_dispatched(client, auth_client, msg91, fake_db):
    conversation_id = _inbound(client, text="question")

    response = auth_client.post(
        f"/api/conversations/{conversation_id}/messages", json={"text": "VIP customer", "isInternalNote": True}
    )

    assert response.status_code == 201
    assert response.json()["message"]["isInternalNote"] is True
    assert msg91.sent == []
    conversation = fake_db.collection("conversations").document(conversation_id).get().to_dict()
    assert conversation["last_message"] == "question"


def test_empty_text_is_rejected(client, auth_client):
    conversation_id = _inbound(client)

    response = auth_client.post(f"/api/conversations/{conversation_id}/messages", json={"text": "  "})

    assert response.status_code == 400


def test_missing_msg91_key_names_the_variable(client, auth_client, app):
    conversation_id = _inbound(client)
    app.state.msg91 = None

    response = auth_client.post(f"/api/conversations/{conversation_id}/messages", json={"text": "hi"})

    assert response.status_code == 500
    assert "MSG91_AUTH_KEY" in response.json()["detail"]


def test_expired_window_allows_free_text_by_default(client, auth_client, fake_db, msg91):
    conversation_id = _inbound(client)
    _age_session(fake_db, conversation_id, hours=30)

    response = auth_client.post(f"/api/conversations/{conversation_id}/messages", json={"text": "late reply"})

    assert response.status_code == 201
    assert len(msg91.sent) == 1


@pytest.fixture
def enforcing_app(fake_db, msg91, razorpay):
    application = create_app(settings=make_settings(enforce_session_window=True), db=fake_db)
    application.state.msg91 = msg91
    application.state.razorpay = razorpay
    return application


def test_enforced_window_blocks_free_text_but_not_templates(enforcing_app, fake_db, msg91):
    token = create_access_token("dashboard_agent", COOKIE_SECRET, timedelta(minutes=5))
    agent = TestClient(enforcing_app, headers={"Authorization": f"Bearer {token}"})
    conversation_id = _inbound(TestClient(enforcing_app))
    _age_session(fake_db, conversation_id, hours=30)

    blocked = agent.post(f"/api/conversations/{conversation_id}/messages", json={"text": "late reply"})
    assert blocked.status_code == 409
    assert msg91.sent == []

    allowed = agent.post(
        f"/api/conversations/{conversation_id}/messages",
        json={"contentType": "template", "templateName": "follow_up"},
    )
    assert allowed.status_code == 201
