import pytest

from wiki_pages import lib
from wiki_pages.errors import NotFound, StorageError

pytestmark = pytest.mark.anyio


async def append(session_factory, name, content, author="Anonymous"):
    async with session_factory() as db:
        return await lib.append_revision(db, name, author, content)


async def test_append_then_fetch_current(session_factory):
    revision_id = await append(session_factory, "home", "# Welcome", author="alice")

    async with session_factory() as db:
        current = await lib.fetch_current(db, "home")

    assert current.revision_id == revision_id
    assert current.content == "# Welcome"
    assert current.modified_by == "alice"


async def test_append_moves_current_pointer(session_factory):
    first = await append(session_factory, "home", "one")
    second = await append(session_factory, "home", "two")
    assert second > first

    async with session_factory() as db:
        current = await lib.fetch_current(db, "home")
        old = await lib.fetch_revision(db, "home", first)

    assert current.revision_id == second
    assert current.content == "two"
    assert old.content == "one"


async def test_fetch_current_missing(session_factory):
    async with session_factory() as db:
        with pytest.raises(NotFound):
            await lib.fetch_current(db, "nowhere")


async def test_fetch_revision_of_other_document(session_factory):
    await append(session_factory, "first", "mine")
    foreign = await append(session_factory, "second", "not yours")

    async with session_factory() as db:
        with pytest.raises(NotFound):
            await lib.fetch_revision(db, "first", foreign)
        assert (await lib.fetch_revision(db, "second", foreign)).content == "not yours"


async def test_fetch_revision_unknown_id(session_factory):
    await append(session_factory, "home", "text")

    async with session_factory() as db:
        with pytest.raises(NotFound):
            await lib.fetch_revision(db, "home", 999999)


async def test_history_is_newest_first_and_capped(session_factory):
    ids = [await append(session_factory, "busy", f"version {i}") for i in range(55)]
    await append(session_factory, "other", "unrelated")

    async with session_factory() as db:
        records = await lib.fetch_history(db, "busy")

    assert len(records) == lib.HISTORY_LIMIT
    assert [r.revision_id for r in records] == sorted(ids, reverse=True)[: lib.HISTORY_LIMIT]
    assert all(r.created_by == "Anonymous" for r in records)


async def test_history_limit_argument(session_factory):
    for i in range(5):
        await append(session_factory, "home", str(i))

    async with session_factory() as db:
        records = await lib.fetch_history(db, "home", limit=2)

    assert len(records) == 2


async def test_history_missing(session_factory):
    async with session_factory() as db:
        with pytest.raises(NotFound):
            await lib.fetch_history(db, "nowhere")


async def test_failed_append_leaves_nothing_behind(session_factory):
    # NOT NULL violation on the revision insert, after the document upsert
    with pytest.raises(StorageError):
        await append(session_factory, "broken", None)

    async with session_factory() as db:
        assert await lib.list_documents(db) == []
        with pytest.raises(NotFound):
            await lib.fetch_history(db, "broken")


async def test_list_documents(session_factory):
    await append(session_factory, "older", "a")
    rev = await append(session_factory, "newer", "b")

    async with session_factory() as db:
        documents = await lib.list_documents(db)

    assert [d.name for d in documents] == ["newer", "older"]
    assert documents[0].current_revision_id == rev


async def test_repeated_writes_reuse_document_row(session_factory):
    await append(session_factory, "home", "one")
    async with session_factory() as db:
        (before,) = await lib.list_documents(db)

    latest = await append(session_factory, "home", "two")
    async with session_factory() as db:
        (after,) = await lib.list_documents(db)

    assert after.name == "home"
    assert after.current_revision_id == latest
    assert after.last_modified > before.last_modified
