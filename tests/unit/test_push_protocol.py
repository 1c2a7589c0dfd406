from __future__ import annotations

from datetime import timezone

import pytest

from chat_client.application.exceptions import PushDecodeError
from chat_client.domain.events.push import (
    ChannelConnected,
    MessageRead,
    MessageReceived,
    MessagesRead,
    UsersOnline,
    UserTyping,
)
from chat_client.infrastructure.push.protocol import (
    INBOUND_EVENTS,
    decode_push_event,
    encode_message_send,
    encode_typing,
)
from tests.conftest import ALICE, ME, T0, make_message


def _received(**overrides):
    payload = {
        "id": "m1",
        "text": "hello",
        "senderId": ALICE,
        "receiverId": ME,
        "conversationId": "c-a",
        "timestamp": "2024-01-01T12:00:00.000Z",
    }
    payload.update(overrides)
    return payload


def test_message_received_decodes_to_entity():
    event = decode_push_event("message:received", _received())

    assert isinstance(event, MessageReceived)
    assert event.message.id == "m1"
    assert event.message.body == "hello"
    assert event.message.sender_id == ALICE
    assert event.message.created_at == T0
    assert event.message.created_at.tzinfo is not None


def test_naive_timestamp_is_taken_as_utc():
    event = decode_push_event("message:received", _received(timestamp="2024-01-01T12:00:00"))

    assert event.message.created_at.tzinfo == timezone.utc


@pytest.mark.parametrize("field", ["id", "senderId", "conversationId", "timestamp"])
def test_message_received_missing_field_is_rejected(field):
    payload = _received()
    del payload[field]

    with pytest.raises(PushDecodeError):
        decode_push_event("message:received", payload)


def test_non_string_id_is_rejected():
    with pytest.raises(PushDecodeError):
        decode_push_event("message:received", _received(id=42))


def test_messages_read():
    event = decode_push_event(
        "messages:read", {"conversationId": "c-a", "messageIds": ["m1", "m2"], "readBy": ALICE},
    )

    assert event == MessagesRead("c-a", ("m1", "m2"), ALICE)


def test_user_typing_requires_real_boolean():
    event = decode_push_event("user:typing", {"userId": ALICE, "conversationId": "c-a", "isTyping": True})
    assert event == UserTyping(ALICE, "c-a", True)

    with pytest.raises(PushDecodeError):
        decode_push_event("user:typing", {"userId": ALICE, "conversationId": "c-a", "isTyping": "yes"})


def test_bare_id_events():
    assert decode_push_event("message:read", "m1") == MessageRead("m1")
    assert decode_push_event("users:online", [ALICE, ME]) == UsersOnline((ALICE, ME))

    with pytest.raises(PushDecodeError):
        decode_push_event("user:online", {"userId": ALICE})
    with pytest.raises(PushDecodeError):
        decode_push_event("users:online", [ALICE, 7])


def test_connection_events_ignore_payload():
    assert decode_push_event("connect") == ChannelConnected()


def test_unknown_event_is_rejected():
    assert "conversation:created" not in INBOUND_EVENTS
    with pytest.raises(PushDecodeError):
        decode_push_event("conversation:created", {})


def test_encode_typing():
    assert encode_typing("c-a", True) == {"conversationId": "c-a", "isTyping": True}


def test_encode_message_send():
    payload = encode_message_send(make_message(message_id="srv-1", sender_id=ME, body="hi"), ALICE)

    assert payload["id"] == "srv-1"
    assert payload["text"] == "hi"
    assert payload["senderId"] == ME
    assert payload["receiverId"] == ALICE
    assert payload["conversationId"] == "c-a"
    assert payload["timestamp"].startswith("2024-01-01T12:00:00")
