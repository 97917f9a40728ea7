"""In-memory ledger cache: the single mutation path for loops and expenses.

``LedgerCache`` owns the last-known-normalized record set for one user. Reads
are synchronous snapshots; refreshes and mutations await the data store (and,
for loops, the mileage estimator) and only touch the in-memory state once the
collaborator call has succeeded. Every successful refresh or mutation notifies
the subscriber registry so dependent views can recompute.

Usage
-----
cache = LedgerCache(in_memory_store(), user_id="u1", mileage=estimator)
await cache.refresh()
loop = await cache.save_loop({"date": "2024-03-09", "bagFee": 100, "cashTip": 20})
report = cache.report("7D")
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import replace
from datetime import date, datetime
from typing import Any

from .aggregation import LedgerReport, LoopTypeFilter, build_report
from .date_range import RangeKey
from .errors import MileageUnavailableError, RecordNotFoundError
from .logging_setup import get_logger
from .mileage import Location, MileageEstimator, mileage_for
from .normalizers import normalize_expense, normalize_loop, normalize_settings
from .notify import Subscriber, SubscriberRegistry, Unsubscribe
from .records import Expense, Loop, Settings
from .store import LedgerStore

_logger = get_logger("loop_ledger.cache")


def _with_id[R: (Loop, Expense)](record: R) -> R:
    if record.id:
        return record
    return replace(record, id=str(uuid.uuid4()))


def _upsert_by_id[R: (Loop, Expense)](rows: tuple[R, ...], record: R) -> tuple[R, ...]:
    return (record, *(r for r in rows if r.id != record.id))


class LedgerCache:
    """Owned cache of canonical records for ``user_id``.

    Parameters
    ----------
    store:
        The :class:`~loop_ledger.store.LedgerStore` to read from and write to.
    user_id:
        Owner of every record handled by this cache.
    mileage:
        Optional :class:`~loop_ledger.mileage.MileageEstimator`. Without one,
        saved loops keep whatever mileage they already carried.
    subscribers:
        Optional shared :class:`~loop_ledger.notify.SubscriberRegistry`.
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        user_id: str,
        mileage: MileageEstimator | None = None,
        subscribers: SubscriberRegistry | None = None,
    ) -> None:
        self._store = store
        self._user_id = user_id
        self._mileage = mileage
        self._subscribers = subscribers if subscribers is not None else SubscriberRegistry()
        self._loops: tuple[Loop, ...] = ()
        self._expenses: tuple[Expense, ...] = ()
        self._settings: Settings = normalize_settings(None)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def loops(self) -> tuple[Loop, ...]:
        return self._loops

    @property
    def expenses(self) -> tuple[Expense, ...]:
        return self._expenses

    @property
    def settings(self) -> Settings:
        return self._settings

    def get_loop(self, loop_id: str) -> Loop | None:
        return next((lp for lp in self._loops if lp.id == str(loop_id)), None)

    def subscribe(self, fn: Subscriber) -> Unsubscribe:
        return self._subscribers.subscribe(fn)

    def report(
        self,
        key: RangeKey | str,
        *,
        loop_type: LoopTypeFilter | str = LoopTypeFilter.ALL,
        now: datetime | date | None = None,
    ) -> LedgerReport:
        """Aggregate the cached records for range ``key``."""

        return build_report(self._loops, self._expenses, key, loop_type=loop_type, now=now)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self) -> None:
        """Reload settings, loops and expenses from the store.

        All three reads must succeed before the cache changes; on failure the
        exception propagates and the previous state stays in place.
        """

        settings_raw = await self._store.settings.get(self._user_id)
        loop_rows = await self._store.loops.list(self._user_id)
        expense_rows = await self._store.expenses.list(self._user_id)

        settings = normalize_settings(settings_raw)
        loops = tuple(normalize_loop(r) for r in loop_rows)
        expenses = tuple(normalize_expense(r) for r in expense_rows)

        self._settings, self._loops, self._expenses = settings, loops, expenses
        _logger.info(
            "cache:refreshed user=%s loops=%d expenses=%d",
            self._user_id,
            len(loops),
            len(expenses),
        )
        self._subscribers.notify()

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    async def _estimate_miles(self, loop: Loop) -> float | None:
        if self._mileage is None:
            return None
        origin = Location(self._settings.home_place_id, self._settings.home_address)
        destination = Location(loop.place_id, loop.course)
        if not origin or not destination:
            return None
        return await self._mileage.estimate_round_trip_miles(origin, destination)

    async def _price_mileage(self, loop: Loop) -> Loop:
        try:
            miles = await self._estimate_miles(loop)
        except MileageUnavailableError as exc:
            _logger.warning("cache:mileage_unavailable loop=%s error=%s", loop.id, exc)
            miles = None

        if miles is not None:
            m, cost = mileage_for(miles, self._settings.mileage_rate)
            return replace(loop, mileage_miles=m, mileage_cost=cost)

        if loop.mileage_miles or loop.mileage_cost:
            return loop
        prior = self.get_loop(loop.id) if loop.id else None
        if prior is None:
            return loop
        return replace(loop, mileage_miles=prior.mileage_miles, mileage_cost=prior.mileage_cost)

    async def _persist_loop(self, loop: Loop) -> Loop:
        record = {**loop.to_record(), "userId": self._user_id}
        stored = normalize_loop(await self._store.loops.upsert(self._user_id, record))
        self._loops = _upsert_by_id(self._loops, stored)
        self._subscribers.notify()
        return stored

    async def save_loop(self, draft: Mapping[str, Any] | Loop) -> Loop:
        """Create or update a loop and return the canonical stored version.

        Mileage is re-estimated on every save. When no estimate is available
        the draft's own mileage is kept, or the cached version's when the
        draft carries none.
        """

        loop = _with_id(normalize_loop(draft, settings=self._settings))
        loop = await self._price_mileage(loop)
        stored = await self._persist_loop(loop)
        _logger.info(
            "cache:loop_saved id=%s date=%s total=%.2f", stored.id, stored.date, stored.total
        )
        return stored

    async def recompute_mileage(self, loop_id: str) -> Loop:
        """Re-estimate mileage for a cached loop and persist the result.

        Raises
        ------
        RecordNotFoundError
            ``loop_id`` is not in the cache.
        MileageUnavailableError
            No estimator is configured, the provider failed, or it found no
            route. The stored loop is left untouched.
        """

        loop = self.get_loop(loop_id)
        if loop is None:
            raise RecordNotFoundError(f"loop {loop_id} is not cached")
        if self._mileage is None:
            raise MileageUnavailableError("no mileage estimator configured")
        miles = await self._estimate_miles(loop)
        if miles is None:
            raise MileageUnavailableError(f"no route found for loop {loop_id}")
        m, cost = mileage_for(miles, self._settings.mileage_rate)
        return await self._persist_loop(replace(loop, mileage_miles=m, mileage_cost=cost))

    async def delete_loop(self, loop_id: str) -> None:
        """Delete by id in the store, then drop it from the cache (if cached)."""

        await self._store.loops.delete(self._user_id, str(loop_id))
        self._loops = tuple(lp for lp in self._loops if lp.id != str(loop_id))
        _logger.info("cache:loop_deleted id=%s", loop_id)
        self._subscribers.notify()

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    async def save_expense(self, draft: Mapping[str, Any] | Expense) -> Expense:
        expense = _with_id(normalize_expense(draft))
        record = {**expense.to_record(), "userId": self._user_id}
        stored = normalize_expense(await self._store.expenses.upsert(self._user_id, record))
        self._expenses = _upsert_by_id(self._expenses, stored)
        _logger.info("cache:expense_saved id=%s amount=%.2f", stored.id, stored.amount)
        self._subscribers.notify()
        return stored

    async def delete_expense(self, expense_id: str) -> None:
        await self._store.expenses.delete(self._user_id, str(expense_id))
        self._expenses = tuple(e for e in self._expenses if e.id != str(expense_id))
        _logger.info("cache:expense_deleted id=%s", expense_id)
        self._subscribers.notify()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def save_settings(self, raw: Mapping[str, Any] | Settings) -> Settings:
        settings = normalize_settings(raw)
        record = {**settings.to_record(), "userId": self._user_id}
        stored = normalize_settings(await self._store.settings.upsert(self._user_id, record))
        self._settings = stored
        _logger.info("cache:settings_saved rate=%.2f", stored.mileage_rate)
        self._subscribers.notify()
        return stored


__all__ = ["LedgerCache"]
