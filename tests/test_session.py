"""Tests for the Session object and its request context."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from signed_sessions.session import (
    InMemoryStore,
    SessionError,
    SessionHydrationError,
)
from signed_sessions.session.hashing import content_hash

from helpers import RecordingStore, session_cookie


def _fresh(context):
    session = context.generate()
    context.begin(hydrated=False)
    return session


def _hydrate(context, record, session_id="abc"):
    context.cookie_id = context.session_id = session_id
    session = context.store.create_session(context, record)
    context.begin(hydrated=True)
    return session


# ── Mapping behaviour ─────────────────────────────────────────────────────


def test_new_session_is_empty(make_context):
    session = _fresh(make_context())
    assert list(session) == []
    assert len(session) == 0
    assert session.id


def test_session_behaves_like_dict(make_context):
    session = _fresh(make_context())
    session["test2"] = 2
    session["test1"] = 1
    assert sorted(session) == ["test1", "test2"]
    assert session.get("missing") is None
    del session["test2"]
    assert dict(session) == {"test1": 1}


def test_reserved_keys_rejected(make_context):
    session = _fresh(make_context())
    with pytest.raises(KeyError):
        session["cookie"] = "nope"
    with pytest.raises(KeyError):
        session["save"] = "nope"


def test_hydration_skips_reserved_keys(make_context):
    record = {"cookie": {"path": "/"}, "num": 1, "save": "shadowed", "id": "other"}
    session = _hydrate(make_context(), record)
    assert dict(session) == {"num": 1}
    assert session.id == "abc"


def test_hydration_restores_cookie(make_context):
    expires = datetime.now(timezone.utc) + timedelta(hours=1)
    record = {
        "cookie": {"path": "/app", "expires": expires.isoformat(), "original_max_age": 3600},
        "user": "bob",
    }
    session = _hydrate(make_context(), record)
    assert session.cookie.path == "/app"
    assert session.cookie.expires == expires
    assert session.cookie.original_max_age == 3600


@pytest.mark.parametrize(
    "record",
    [
        {"user": "bob"},
        {"cookie": "not-a-dict", "user": "bob"},
        {"cookie": {"expires": "yesterday-ish"}},
        ["not", "a", "mapping"],
    ],
)
def test_hydration_rejects_bad_records(make_context, record):
    context = make_context()
    context.session_id = "abc"
    with pytest.raises(SessionHydrationError):
        context.store.create_session(context, record)


# ── Change detection ──────────────────────────────────────────────────────


def test_content_hash_ignores_key_order():
    assert content_hash({"a": 1, "b": [1, 2]}) == content_hash({"b": [1, 2], "a": 1})
    assert content_hash({"a": 1}) != content_hash({"a": 2})


def test_content_hash_normalizes_mixed_key_types():
    live = {"prefs": {1: "a", "b": 2}}
    stored = {"prefs": {"1": "a", "b": 2}}
    assert content_hash(live) == content_hash(stored)


def test_mixed_key_content_commits_and_stays_saved(make_client, store):
    async def write(request):
        request.state.session["prefs"] = {1: "a", "b": 2}
        return request.state.session.id

    resp = make_client(write, resave=False).get("/")
    assert resp.status_code == 200
    sid = resp.text
    assert asyncio.run(store.get(sid))["prefs"] == {"1": "a", "b": 2}

    # Reloaded content hashes the same, so nothing is rewritten.
    resp = make_client(resave=False).get("/", headers={"cookie": session_cookie(sid)})
    assert resp.status_code == 200
    assert store.calls("set") == 1


def test_cookie_changes_do_not_modify_session(make_context):
    context = make_context()
    session = _fresh(context)
    session.cookie.max_age = 10
    session.cookie.path = "/elsewhere"
    assert not context.is_modified(session)


def test_content_change_modifies_session(make_context):
    context = make_context()
    session = _fresh(context)
    session["user"] = "bob"
    assert context.is_modified(session)


def test_new_identifier_modifies_session(make_context):
    context = make_context()
    _fresh(context)
    replacement = context.generate()
    assert context.is_modified(replacement)


# ── Operations ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_save_writes_record_and_marks_saved(make_context, store):
    context = make_context()
    session = _fresh(context)
    session["user"] = "bob"

    assert await session.save() is session
    assert context.is_saved(session)
    record = await store.get(session.id)
    assert record["user"] == "bob"
    assert record["cookie"]["path"] == "/"


@pytest.mark.asyncio
async def test_touch_resets_expiry_without_store(make_context, store):
    context = make_context(cookie={"max_age": 60})
    session = _fresh(context)
    session.cookie.expires = datetime.now(timezone.utc) + timedelta(seconds=5)

    await session.touch()

    assert session.cookie.max_age > 50
    assert context.touched
    assert not context.touched_store
    assert store.calls("touch") == 0


@pytest.mark.asyncio
async def test_touch_propagates_to_store(make_context, store):
    context = make_context(propagate_touch=True)
    session = _fresh(context)
    await session.touch()
    assert context.touched_store
    assert store.calls("touch") == 1


@pytest.mark.asyncio
async def test_touch_skips_store_for_unsaved_uninitialized(make_context, store):
    context = make_context(propagate_touch=True, save_uninitialized=False)
    session = _fresh(context)
    await session.touch()
    assert not context.touched_store
    assert store.calls("touch") == 0


@pytest.mark.asyncio
async def test_reload_restores_stored_content(make_context, store):
    await store.set("abc", {"cookie": {"path": "/"}, "user": "bob"})
    context = make_context()
    session = _hydrate(context, await store.get("abc"))
    session["user"] = "changed"

    reloaded = await session.reload()

    assert reloaded is not session
    assert reloaded["user"] == "bob"
    assert context.session is reloaded


@pytest.mark.asyncio
async def test_reload_repeatedly(make_context, store):
    await store.set("abc", {"cookie": {"path": "/"}, "count": 0})
    context = make_context()
    session = _hydrate(context, await store.get("abc"))
    for _ in range(5):
        session = await session.reload()
    session["count"] = 1
    await session.save()
    assert (await store.get("abc"))["count"] == 1


@pytest.mark.asyncio
async def test_reload_missing_session_fails(make_context, store):
    await store.set("abc", {"cookie": {"path": "/"}})
    context = make_context()
    session = _hydrate(context, await store.get("abc"))
    await store.destroy("abc")

    with pytest.raises(SessionError, match="failed to load session"):
        await session.reload()


@pytest.mark.asyncio
async def test_destroy_detaches_and_deletes(make_context, store):
    await store.set("abc", {"cookie": {"path": "/"}})
    context = make_context()
    session = _hydrate(context, await store.get("abc"))

    await session.destroy()

    assert context.session is None
    assert await store.get("abc") is None


@pytest.mark.asyncio
async def test_regenerate_replaces_session(make_context, store):
    await store.set("abc", {"cookie": {"path": "/"}, "user": "bob"})
    context = make_context()
    session = _hydrate(context, await store.get("abc"))

    fresh = await session.regenerate()

    assert fresh.id != "abc"
    assert dict(fresh) == {}
    assert context.session is fresh
    assert context.state["session_id"] == fresh.id
    assert await store.get("abc") is None


class FailingDestroyStore(InMemoryStore):
    async def destroy(self, session_id):
        raise RuntimeError("boom!")


@pytest.mark.asyncio
async def test_regenerate_generates_even_if_destroy_fails(make_context):
    context = make_context(store=FailingDestroyStore())
    session = _fresh(context)
    old_id = session.id

    with pytest.raises(RuntimeError):
        await session.regenerate()

    assert context.session_id != old_id
    assert context.session is not session


@pytest.mark.asyncio
async def test_operations_survive_replacement(make_context):
    store = RecordingStore()
    context = make_context(store=store)
    session = _fresh(context)
    fresh = await session.regenerate()
    fresh["user"] = "bob"
    await fresh.save()
    assert store.calls("set") == 1
    assert (await store.get(fresh.id))["user"] == "bob"
