from __future__ import annotations

import asyncio

from loop_ledger.store import InMemoryEntityStore, in_memory_store


def test_list_returns_copies_newest_first():
    store = InMemoryEntityStore(
        [{"id": "a", "date": "2024-03-01"}, {"id": "b", "date": "2024-03-04"}, {"id": "c"}]
    )

    rows = asyncio.run(store.list("local"))
    rows[0]["date"] = "tampered"

    assert [r["id"] for r in rows] == ["b", "a", "c"]
    assert asyncio.run(store.list("local"))[0]["date"] == "2024-03-04"


def test_upsert_preserves_created_at_across_updates():
    store = InMemoryEntityStore()

    async def _run():
        first = await store.upsert("u1", {"id": "x", "amount": 1})
        second = await store.upsert("u1", {"id": "x", "amount": 2})
        return first, second

    first, second = asyncio.run(_run())

    assert second["createdAt"] == first["createdAt"]
    assert second["amount"] == 2
    assert asyncio.run(store.list("other")) == []


def test_delete_missing_id_is_silent():
    store = in_memory_store(loops=[{"id": "a"}])

    asyncio.run(store.loops.delete("local", "zzz"))

    assert len(asyncio.run(store.loops.list("local"))) == 1
    assert asyncio.run(store.settings.get("local")) is None
