import json

from payloads import (
    MISSING_SENDER_DETAIL,
    SENDER_PHONE,
    InboundMessage,
    MissingSenderPhone,
    extract_inbound,
    first_present,
)


def test_first_present_skips_empty_values():
    body = {"customerNumber": "  ", "from": "", "sender": "919876543210"}

    assert first_present(body, SENDER_PHONE) == "919876543210"


def test_first_present_prefers_earlier_aliases():
    body = {"phone": "111", "customerNumber": "222"}

    assert first_present(body, SENDER_PHONE) == "222"


def test_missing_sender_phone():
    result = extract_inbound({"text": "hello", "integratedNumber": "919800000001"})

    assert isinstance(result, MissingSenderPhone)
    assert result.detail == MISSING_SENDER_DETAIL


def test_extracts_aliased_fields():
    result = extract_inbound(
        {
            "mobile": "+919876543210",
            "receiver": "919800000001",
            "content": "Is this available?",
            "type": "TEXT",
            "messageId": "wamid.123",
            "profileName": "Asha",
        }
    )

    assert isinstance(result, InboundMessage)
    assert result.sender_phone == "+919876543210"
    assert result.receiver_number == "919800000001"
    assert result.body_text == "Is this available?"
    assert result.content_type == "text"
    assert result.external_id == "wamid.123"
    assert result.sender_name == "Asha"


def test_double_encoded_text_is_unwrapped():
    result = extract_inbound({"customerNumber": "919876543210", "text": '{"text":"hello"}'})

    assert result.body_text == "hello"


def test_nested_text_object_is_unwrapped():
    result = extract_inbound({"customerNumber": "919876543210", "text": {"body": "hi there"}})
    assert result.body_text == json.dumps({"body": "hi there"})

    result = extract_inbound({"customerNumber": "919876543210", "message": {"text": {"body": "hi there"}}})
    assert result.body_text == "hi there"


def test_json_looking_text_without_text_field_is_kept():
    raw = '{"foo": 1}'
    result = extract_inbound({"customerNumber": "919876543210", "text": raw})

    assert result.body_text == raw


def test_location_message_gets_label_and_block():
    result = extract_inbound(
        {
            "customerNumber": "919876543210",
            "contentType": "location",
            "location": {"latitude": 12.97, "longitude": 77.59, "name": "MG Road"},
        }
    )

    assert result.content_type == "location"
    assert result.body_text == "[Location: MG Road]"
    assert result.location["latitude"] == 12.97
    assert result.location["longitude"] == 77.59


def test_shared_contact_is_normalised():
    result = extract_inbound(
        {
            "customerNumber": "919876543210",
            "contentType": "contacts",
            "contacts": [{"name": {"formatted_name": "Ravi Kumar"}, "phones": [{"phone": "+919811111111"}]}],
        }
    )

    assert result.content_type == "contact"
    assert result.body_text == "[Contact: Ravi Kumar]"
    assert result.contacts[0]["phones"][0]["phone"] == "+919811111111"


def test_media_message_without_text():
    result = extract_inbound(
        {
            "customerNumber": "919876543210",
            "contentType": "image",
            "url": "https://cdn.example.com/a.jpg",
            "fileName": "a.jpg",
        }
    )

    assert result.body_text == ""
    assert result.media_url == "https://cdn.example.com/a.jpg"
    assert result.file_name == "a.jpg"
