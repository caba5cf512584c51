import random
import threading

import pytest

from exceptions import SessionNotFound
from memory.session_store import SessionStore
from models import Message, Role


def test_create_assigns_unique_ids(store):
    ids = {store.create(f"chat {i}").id for i in range(50)}
    assert len(ids) == 50


def test_list_all_counts_live_sessions_after_random_create_delete():
    store = SessionStore(shards=4)
    rng = random.Random(7)
    live = []
    for _ in range(200):
        if live and rng.random() < 0.4:
            victim = live.pop(rng.randrange(len(live)))
            assert store.delete(victim) is True
        else:
            live.append(store.create().id)
    assert len(store.list_all()) == len(live)
    assert {s.id for s in store.list_all()} == set(live)


def test_delete_unknown_returns_false(store):
    assert store.delete("nope") is False


def test_create_with_id_overwrites_existing_record(store):
    first = store.create_with_id("abc", "first")
    store.append_message("abc", Message.user("hi"))
    second = store.create_with_id("abc", "second")
    assert store.get("abc") is second
    assert second is not first
    assert second.messages == []
    assert len(store.list_all()) == 1


def test_rename(store):
    session = store.create()
    assert store.rename(session.id, "Renamed") is True
    assert store.get(session.id).name == "Renamed"
    assert store.rename("missing", "x") is False


def test_clear_messages_twice_is_idempotent(store):
    session = store.create()
    store.append_message(session.id, Message.user("one"))
    store.append_message(session.id, Message.assistant("two"))
    before = store.get(session.id).last_activity

    assert store.clear_messages(session.id) is True
    assert store.get(session.id).messages == []
    assert store.clear_messages(session.id) is True
    assert store.get(session.id).messages == []
    assert store.get(session.id).last_activity >= before


def test_clear_unknown_session(store):
    assert store.clear_messages("missing") is False


def test_append_touches_last_activity_and_keeps_order(store):
    session = store.create()
    created = session.last_activity
    for i in range(5):
        assert store.append_message(session.id, Message.user(str(i)))
    assert [m.content for m in store.history(session.id)] == ["0", "1", "2", "3", "4"]
    assert store.get(session.id).last_activity >= created


def test_history_is_a_snapshot(store):
    session = store.create()
    store.append_message(session.id, Message.user("a"))
    snapshot = store.history(session.id)
    store.append_message(session.id, Message.user("b"))
    assert len(snapshot) == 1
    assert store.history("missing") is None


def test_append_to_unknown_session(store):
    assert store.append_message("missing", Message.user("x")) is False


def test_concurrent_appends_lose_nothing():
    store = SessionStore(shards=2)
    sessions = [store.create().id for _ in range(4)]

    def worker(n):
        for i in range(100):
            store.append_message(sessions[i % len(sessions)], Message.user(f"{n}-{i}"))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sum(len(store.history(sid)) for sid in sessions) == 800


def test_set_feedback(store):
    session = store.create()
    message = Message.assistant("answer")
    store.append_message(session.id, message)

    updated = store.set_feedback(session.id, message.id, True)
    assert updated.liked is True
    assert store.set_feedback(session.id, message.id, None).liked is None
    assert store.set_feedback(session.id, "other", False) is None
    with pytest.raises(SessionNotFound):
        store.set_feedback("missing", message.id, True)


def test_message_content_is_immutable():
    message = Message.user("fixed")
    with pytest.raises(Exception):
        message.content = "changed"
    message.liked = False
    assert message.role == Role.USER
    assert message.liked is False


def test_turn_lock_is_per_session(store):
    a, b = store.create(), store.create()
    assert store.turn_lock(a.id) is store.turn_lock(a.id)
    assert store.turn_lock(a.id) is not store.turn_lock(b.id)


@pytest.mark.asyncio
async def test_delete_keeps_a_held_turn_lock(store):
    store.create_with_id("x")
    lock = store.turn_lock("x")
    async with lock:
        store.delete("x")
        store.create_with_id("x")
        assert store.turn_lock("x") is lock
    store.delete("x")
    assert store.turn_lock("x") is not lock


def test_append_and_history_guarded_by_record(store):
    old = store.create_with_id("x")
    store.delete("x")
    new = store.create_with_id("x")

    assert store.append_message("x", Message.user("late"), expected=old) is False
    assert store.history("x", expected=old) is None
    assert store.history("x", expected=new) == []
    assert store.append_message("x", Message.user("hi"), expected=new) is True
    assert [m.content for m in store.history("x")] == ["hi"]
