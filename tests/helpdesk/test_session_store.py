import pytest
from pydantic import ValidationError

from src.helpdesk.domain.errors import SessionBusyError
from src.helpdesk.domain.models.transcript import Role, TranscriptEntry
from src.helpdesk.services.sessions.store import (
    EphemeralSessionStore,
    InMemorySessionStore,
    build_session_store,
)


def test_get_or_create_twice_creates_one_seeded_session():
    store = InMemorySessionStore("be nice")

    first = store.get_or_create("s1")
    second = store.get_or_create("s1")

    assert first is second
    assert len(store) == 1
    assert first.transcript == [TranscriptEntry(role=Role.SYSTEM, content="be nice")]


def test_append_keeps_order_and_system_seed_first():
    store = InMemorySessionStore("be nice")
    session = store.get_or_create("s1")

    store.append(session, TranscriptEntry(role=Role.USER, content="hello"))
    store.append(session, TranscriptEntry(role=Role.ASSISTANT, content="hi"))

    assert [e.role for e in session.transcript] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]
    assert session.messages()[-1] == {"role": "assistant", "content": "hi"}


def test_transcript_entries_are_immutable():
    entry = TranscriptEntry(role=Role.USER, content="hello")
    with pytest.raises(ValidationError):
        entry.content = "changed"


def test_max_entries_drops_oldest_turns_but_keeps_system_prompt():
    store = InMemorySessionStore("be nice", max_entries=3)
    session = store.get_or_create("s1")

    for text in ("one", "two", "three"):
        store.append(session, TranscriptEntry(role=Role.USER, content=text))

    assert len(session.transcript) == 3
    assert session.transcript[0].role is Role.SYSTEM
    assert [e.content for e in session.transcript[1:]] == ["two", "three"]


def test_max_entries_must_leave_room_for_a_message():
    with pytest.raises(ValueError):
        InMemorySessionStore("be nice", max_entries=1)


def test_delete_forgets_session():
    store = InMemorySessionStore("be nice")
    store.get_or_create("s1")

    assert store.delete("s1") is True
    assert store.get("s1") is None
    assert store.delete("s1") is False


async def test_delete_refuses_while_a_turn_holds_the_lock():
    store = InMemorySessionStore("be nice")
    store.get_or_create("s1")

    async with store.lock_for("s1"):
        with pytest.raises(SessionBusyError):
            store.delete("s1")
        assert store.get("s1") is not None

    assert store.delete("s1") is True


def test_turn_lock_is_shared_per_session():
    store = InMemorySessionStore("be nice")

    assert store.lock_for("a") is store.lock_for("a")
    assert store.lock_for("a") is not store.lock_for("b")


def test_ephemeral_store_never_retains_history():
    store = EphemeralSessionStore("be nice")
    session = store.get_or_create("s1")
    store.append(session, TranscriptEntry(role=Role.USER, content="hello"))

    fresh = store.get_or_create("s1")

    assert fresh is not session
    assert len(fresh.transcript) == 1
    assert store.get("s1") is None


def test_build_session_store_follows_deployment_mode(make_settings):
    assert isinstance(build_session_store(make_settings(deployment_mode="serverless")), EphemeralSessionStore)
    assert isinstance(build_session_store(make_settings(deployment_mode="server")), InMemorySessionStore)
