from __future__ import annotations

from chat_client.services.message_store import MessageStore
from tests.conftest import ALICE, BOB, ME, T0, at, make_message


def _ids(store: MessageStore) -> list[str]:
    return [m.id for m in store.messages]


def test_replace_all_sorts_and_drops_duplicate_ids():
    store = MessageStore()
    store.replace_all("c-a", [
        make_message(message_id="m2", created_at=at(2)),
        make_message(message_id="m1", created_at=at(1)),
        make_message(message_id="m2", created_at=at(2)),
    ])

    assert store.conversation_id == "c-a"
    assert _ids(store) == ["m1", "m2"]


def test_append_inserts_by_timestamp():
    store = MessageStore()
    store.replace_all("c-a", [make_message(message_id="m1", created_at=at(1))])
    store.append(make_message(message_id="m3", created_at=at(3)))
    store.append(make_message(message_id="m2", created_at=at(2)))

    assert _ids(store) == ["m1", "m2", "m3"]


def test_equal_timestamps_keep_arrival_order():
    store = MessageStore()
    store.replace_all("c-a", ())
    store.append(make_message(message_id="first", created_at=T0))
    store.append(make_message(message_id="second", created_at=T0))

    assert _ids(store) == ["first", "second"]


def test_append_rejects_existing_id():
    store = MessageStore()
    store.replace_all("c-a", ())

    assert store.append(make_message(message_id="m1")) is True
    assert store.append(make_message(message_id="m1", body="again")) is False
    assert len(store) == 1
    assert store.get("m1").body == "hello"


def test_merge_counts_only_new_entries():
    store = MessageStore()
    store.replace_all("c-a", [make_message(message_id="m3", created_at=at(3))])

    added = store.merge([
        make_message(message_id="m1", created_at=at(1)),
        make_message(message_id="m3", created_at=at(3)),
    ])

    assert added == 1
    assert _ids(store) == ["m1", "m3"]


def test_confirm_swaps_placeholder_for_server_copy():
    store = MessageStore()
    store.replace_all("c-a", ())
    store.append(make_message(message_id="local-1", sender_id=ME, created_at=at(1)))

    store.confirm("local-1", make_message(message_id="srv-1", sender_id=ME, created_at=at(1)))

    assert _ids(store) == ["srv-1"]
    assert store.pending() == []


def test_confirm_after_echo_only_drops_placeholder():
    store = MessageStore()
    store.replace_all("c-a", ())
    store.append(make_message(message_id="local-1", sender_id=ME, created_at=at(1)))
    server_copy = make_message(message_id="srv-1", sender_id=ME, created_at=at(2))
    store.append(server_copy)

    assert store.confirm("local-1", server_copy) is True
    assert _ids(store) == ["srv-1"]


def test_reconcile_echo_replaces_oldest_matching_pending():
    store = MessageStore()
    store.replace_all("c-a", ())
    store.append(make_message(message_id="local-1", sender_id=ME, body="hi", created_at=at(1)))
    store.append(make_message(message_id="local-2", sender_id=ME, body="hi", created_at=at(2)))

    replaced = store.reconcile_echo(
        make_message(message_id="srv-1", sender_id=ME, body="hi", created_at=at(1)),
    )

    assert replaced == "local-1"
    assert _ids(store) == ["srv-1", "local-2"]


def test_reconcile_echo_without_match_changes_nothing():
    store = MessageStore()
    store.replace_all("c-a", ())
    store.append(make_message(message_id="local-1", sender_id=ME, body="hi"))

    assert store.reconcile_echo(make_message(message_id="srv-9", sender_id=ME, body="other")) is None
    assert _ids(store) == ["local-1"]


def test_read_receipts_are_added_once_per_reader():
    store = MessageStore()
    store.replace_all("c-a", [
        make_message(message_id="m1", sender_id=ME, created_at=at(1)),
        make_message(message_id="m2", sender_id=ME, created_at=at(2)),
    ])

    assert store.apply_read_receipts(["m1", "m2", "missing"], ALICE, at(5)) == 2
    assert store.apply_read_receipts(["m1"], ALICE, at(6)) == 0
    assert store.apply_read_receipts(["m1"], BOB, at(6)) == 1

    first = store.get("m1")
    assert first.is_read_by(ALICE) and first.is_read_by(BOB)
    assert _ids(store) == ["m1", "m2"]


def test_delivery_receipts():
    store = MessageStore()
    store.replace_all("c-a", [make_message(message_id="m1", sender_id=ME)])

    assert store.apply_delivery_receipts(["m1"], ALICE, at(1)) == 1
    assert store.get("m1").is_delivered_to(ALICE)
    assert not store.get("m1").is_read_by(ALICE)


def test_update_and_remove():
    store = MessageStore()
    store.replace_all("c-a", [make_message(message_id="m1")])

    assert store.update(make_message(message_id="m1", body="edited")) is True
    assert store.get("m1").body == "edited"
    assert store.update(make_message(message_id="nope")) is False
    assert store.remove("m1") is True
    assert store.remove("m1") is False
    assert len(store) == 0
