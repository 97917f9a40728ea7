from __future__ import annotations

import asyncio

import pytest

from loop_ledger.cache import LedgerCache
from loop_ledger.errors import StoreUnavailableError
from loop_ledger.persistence import sql_ledger_store


def test_entity_round_trip_keeps_raw_shape_and_orders_by_date(sqlite_url):
    store = sql_ledger_store(sqlite_url, create_tables=True)

    async def _run():
        await store.loops.upsert(
            "u1", {"id": "a", "date": "2024-03-01", "tip": 20, "tipType": "Cash"}
        )
        await store.loops.upsert("u1", {"id": "b", "date": "2024-03-05", "bagFee": 100})
        await store.loops.upsert("u2", {"id": "c", "date": "2024-03-07", "bagFee": 1})
        return await store.loops.list("u1")

    rows = asyncio.run(_run())

    assert [r["id"] for r in rows] == ["b", "a"]
    assert rows[1]["tipType"] == "Cash"
    assert rows[1]["userId"] == "u1"
    assert rows[1]["createdAt"]


def test_upsert_replaces_by_id_and_keeps_created_at(sqlite_url):
    store = sql_ledger_store(sqlite_url, create_tables=True)

    async def _run():
        first = await store.expenses.upsert("u1", {"id": "e1", "amount": 5})
        second = await store.expenses.upsert("u1", {"id": "e1", "amount": 7})
        return first, second, await store.expenses.list("u1")

    first, second, rows = asyncio.run(_run())

    assert second["createdAt"] == first["createdAt"]
    assert [r["amount"] for r in rows] == [7]


def test_upsert_without_id_generates_one(sqlite_url):
    store = sql_ledger_store(sqlite_url, create_tables=True)
    stored = asyncio.run(store.loops.upsert("u1", {"date": "2024-03-05"}))
    assert stored["id"]


def test_delete_is_scoped_to_user(sqlite_url):
    store = sql_ledger_store(sqlite_url, create_tables=True)

    async def _run():
        await store.loops.upsert("u1", {"id": "a", "date": "2024-03-01"})
        await store.loops.delete("u2", "a")
        kept = await store.loops.list("u1")
        await store.loops.delete("u1", "a")
        return kept, await store.loops.list("u1")

    kept, after = asyncio.run(_run())

    assert [r["id"] for r in kept] == ["a"]
    assert after == []


def test_settings_get_and_upsert(sqlite_url):
    store = sql_ledger_store(sqlite_url, create_tables=True)

    async def _run():
        missing = await store.settings.get("u1")
        await store.settings.upsert("u1", {"mileageRate": 0.6})
        await store.settings.upsert("u1", {"mileageRate": 0.65, "homeAddress": "1 Main St"})
        return missing, await store.settings.get("u1")

    missing, row = asyncio.run(_run())

    assert missing is None
    assert row["mileageRate"] == 0.65
    assert row["homeAddress"] == "1 Main St"


def test_missing_tables_surface_as_store_unavailable(sqlite_url):
    store = sql_ledger_store(sqlite_url)
    with pytest.raises(StoreUnavailableError):
        asyncio.run(store.loops.list("u1"))


def test_cache_over_sql_store_survives_a_new_process(sqlite_url):
    cache = LedgerCache(sql_ledger_store(sqlite_url, create_tables=True), user_id="u1")

    async def _write():
        await cache.refresh()
        await cache.save_settings({"defaultBagFeeSingle": 95})
        await cache.save_loop({"date": "2024-03-09", "loopType": "Single", "cashTip": 30})
        await cache.save_expense({"date": "2024-03-09", "category": "Food", "amount": 12})

    asyncio.run(_write())

    reopened = LedgerCache(sql_ledger_store(sqlite_url), user_id="u1")
    asyncio.run(reopened.refresh())

    assert [(lp.bag_fee, lp.cash_tip) for lp in reopened.loops] == [(95.0, 30.0)]
    assert reopened.expenses[0].amount == 12.0
    assert reopened.settings.default_bag_fee_single == 95.0
