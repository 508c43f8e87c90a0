from datetime import datetime, timedelta, timezone

from tests.fakes import FakeFirestore

URL = "/api/webhooks/msg91"


def _messages(db: FakeFirestore, conversation_id: str):
    return db.docs(f"conversations/{conversation_id}/messages")


def test_first_inbound_message_creates_contact_conversation_and_message(client, fake_db):
    before = datetime.now(timezone.utc)
    response = client.post(
        URL,
        json={"customerNumber": "+919876543210", "integratedNumber": "919800000001", "text": "hi"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True

    contacts = fake_db.docs("contacts")
    assert len(contacts) == 1
    assert contacts[0]["phone"] == "919876543210"
    assert contacts[0]["name"] == "919876543210"

    conversations = fake_db.docs("conversations")
    assert len(conversations) == 1
    conversation = conversations[0]
    assert conversation["id"] == body["conversationId"]
    assert conversation["contact_id"] == contacts[0]["id"]
    assert conversation["integrated_number"] == "919800000001"
    assert conversation["status"] == "open"
    assert conversation["unread_count"] == 1
    assert conversation["last_message"] == "hi"
    assert conversation["last_incoming_timestamp"] >= before
    assert conversation["last_incoming_timestamp"] - before < timedelta(seconds=5)

    messages = _messages(fake_db, conversation["id"])
    assert len(messages) == 1
    assert messages[0]["direction"] == "inbound"
    assert messages[0]["content_type"] == "text"
    assert messages[0]["body"] == "hi"
    assert messages[0]["status"] == "delivered"
    assert messages[0]["is_internal_note"] is False


def test_missing_sender_is_rejected_without_writes(client, fake_db):
    response = client.post(URL, json={"text": "hello", "integratedNumber": "919800000001"})

    assert response.status_code == 400
    assert response.json() == {"error": "No sender phone found in payload"}
    assert fake_db.document_count() == 0


def test_invalid_json_is_rejected(client, fake_db):
    response = client.post(URL, content=b"not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert fake_db.document_count() == 0


def test_non_object_body_is_rejected(client, fake_db):
    response = client.post(URL, json=["customerNumber", "919876543210"])

    assert response.status_code == 400
    assert fake_db.document_count() == 0


def test_repeat_messages_share_one_conversation(client, fake_db):
    ids = set()
    for text in ("one", "two", "three"):
        response = client.post(
            URL,
            json={"customerNumber": "919876543210", "integratedNumber": "919800000001", "text": text},
        )
        ids.add(response.json()["conversationId"])

    assert len(ids) == 1
    assert len(fake_db.docs("contacts")) == 1
    conversation = fake_db.docs("conversations")[0]
    assert conversation["unread_count"] == 3
    assert conversation["last_message"] == "three"
    assert [m["body"] for m in _messages(fake_db, conversation["id"])] == ["one", "two", "three"]


def test_plus_prefix_does_not_split_contacts(client, fake_db):
    client.post(URL, json={"customerNumber": "+919876543210", "integratedNumber": "919800000001", "text": "a"})
    client.post(URL, json={"from": "919876543210", "to": "919800000001", "message": "b"})

    assert len(fake_db.docs("contacts")) == 1
    assert len(fake_db.docs("conversations")) == 1


def test_each_business_number_gets_its_own_conversation(client, fake_db):
    first = client.post(URL, json={"customerNumber": "919876543210", "integratedNumber": "919800000001", "text": "a"})
    second = client.post(URL, json={"customerNumber": "919876543210", "integratedNumber": "919800000002", "text": "b"})

    assert first.json()["conversationId"] != second.json()["conversationId"]
    assert len(fake_db.docs("contacts")) == 1


def test_missing_receiver_uses_default_bucket(client, fake_db):
    client.post(URL, json={"customerNumber": "919876543210", "text": "a"})

    assert fake_db.docs("conversations")[0]["integrated_number"] == "default"


def test_inbound_reopens_resolved_conversation(client, fake_db):
    response = client.post(URL, json={"customerNumber": "919876543210", "integratedNumber": "919800000001", "text": "a"})
    conversation_id = response.json()["conversationId"]
    fake_db.collection("conversations").document(conversation_id).update({"status": "resolved", "unread_count": 0})

    client.post(URL, json={"customerNumber": "919876543210", "integratedNumber": "919800000001", "text": "b"})

    conversation = fake_db.collection("conversations").document(conversation_id).get().to_dict()
    assert conversation["status"] == "open"
    assert conversation["unread_count"] == 1


def test_media_message_preview_placeholder(client, fake_db):
    client.post(
        URL,
        json={
            "customerNumber": "919876543210",
            "integratedNumber": "919800000001",
            "contentType": "image",
            "url": "https://cdn.example.com/a.jpg",
        },
    )

    conversation = fake_db.docs("conversations")[0]
    assert conversation["last_message"] == "[media]"
    message = _messages(fake_db, conversation["id"])[0]
    assert message["content_type"] == "image"
    assert message["media_url"] == "https://cdn.example.com/a.jpg"


def test_unknown_content_type_is_coerced(client, fake_db):
    client.post(
        URL,
        json={"customerNumber": "919876543210", "contentType": "sticker", "url": "https://cdn.example.com/s.webp"},
    )

    conversation = fake_db.docs("conversations")[0]
    assert _messages(fake_db, conversation["id"])[0]["content_type"] == "image"


def test_location_is_stored_as_envelope_and_decoded(client, auth_client, fake_db):
    response = client.post(
        URL,
        json={
            "customerNumber": "919876543210",
            "integratedNumber": "919800000001",
            "contentType": "location",
            "location": {"latitude": 12.97, "longitude": 77.59, "name": "MG Road"},
        },
    )
    conversation_id = response.json()["conversationId"]

    detail = auth_client.get(f"/api/conversations/{conversation_id}").json()
    message = detail["messages"][0]
    assert message["contentType"] == "location"
    assert message["body"] == "[Location: MG Road]"
    assert message["location"]["name"] == "MG Road"


def test_provider_name_fills_placeholder_only(client, fake_db):
    client.post(URL, json={"customerNumber": "919876543210", "text": "a"})
    client.post(URL, json={"customerNumber": "919876543210", "text": "b", "customerName": "Asha"})
    assert fake_db.docs("contacts")[0]["name"] == "Asha"

    client.post(URL, json={"customerNumber": "919876543210", "text": "c", "customerName": "Someone Else"})
    assert fake_db.docs("contacts")[0]["name"] == "Asha"


def test_stage_failure_returns_500(client, fake_db):
    fake_db.fail_writes_to("messages")

    response = client.post(URL, json={"customerNumber": "919876543210", "text": "a"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to store message"}
    # Earlier stages are not rolled back.
    assert len(fake_db.docs("contacts")) == 1
    assert len(fake_db.docs("conversations")) == 1


def test_contact_stage_failure(client, fake_db):
    fake_db.fail_writes_to("contacts")

    response = client.post(URL, json={"customerNumber": "919876543210", "text": "a"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to upsert contact"}
    assert fake_db.docs("conversations") == []


def test_double_encoded_text_body_is_unwrapped(client, fake_db):
    response = client.post(URL, json={"customerNumber": "919876543210", "text": '{"text":"hello"}'})

    assert response.status_code == 200
    messages = _messages(fake_db, response.json()["conversationId"])
    assert messages[0]["body"] == "hello"
    conversation = fake_db.docs("conversations")[0]
    assert conversation["last_message"] == "hello"
