"""Data-store collaborator interfaces and the in-memory implementation.

The cache treats everything a store returns as untyped mappings and runs it
through :mod:`loop_ledger.normalizers` before use; stores never have to
enforce the canonical shape. All calls are ``async`` and a store performs no
retries: a failing call raises (ideally
:class:`~loop_ledger.errors.StoreUnavailableError`) and the caller decides
what to tell the user.

Implementations:

- :func:`in_memory_store` (this module): dict-backed, used by tests and
  by the CLI's JSON snapshot mode.
- :func:`loop_ledger.persistence.sql_ledger_store`: SQLAlchemy tables.
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

type RawRecord = dict[str, Any]


class EntityStore(Protocol):
    """Per-entity store (loops, expenses)."""

    async def list(self, user_id: str) -> list[RawRecord]:
        """Return the user's records, newest date first."""
        ...

    async def upsert(self, user_id: str, record: Mapping[str, Any]) -> RawRecord:
        """Insert or replace by ``id`` and return the stored record."""
        ...

    async def delete(self, user_id: str, record_id: str) -> None: ...


class SettingsStore(Protocol):
    async def get(self, user_id: str) -> RawRecord | None: ...

    async def upsert(self, user_id: str, record: Mapping[str, Any]) -> RawRecord: ...


@dataclass(frozen=True, slots=True)
class LedgerStore:
    """The three stores the cache talks to."""

    loops: EntityStore
    expenses: EntityStore
    settings: SettingsStore


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def record_id_of(record: Mapping[str, Any]) -> str:
    """Return the record's id as text, or a fresh uuid4 when it has none."""

    rid = record.get("id")
    s = str(rid).strip() if rid is not None else ""
    return s or str(uuid.uuid4())


class InMemoryEntityStore:
    """Dict-backed :class:`EntityStore`; returns deep copies so callers can't alias."""

    def __init__(
        self, records: Iterable[Mapping[str, Any]] = (), *, user_id: str = "local"
    ) -> None:
        self._rows: dict[str, dict[str, RawRecord]] = {}
        for r in records:
            rid = record_id_of(r)
            self._rows.setdefault(user_id, {})[rid] = {**copy.deepcopy(dict(r)), "id": rid}

    async def list(self, user_id: str) -> list[RawRecord]:
        rows = [copy.deepcopy(r) for r in self._rows.get(user_id, {}).values()]
        rows.sort(key=lambda r: str(r.get("date") or ""), reverse=True)
        return rows

    async def upsert(self, user_id: str, record: Mapping[str, Any]) -> RawRecord:
        rid = record_id_of(record)
        existing = self._rows.setdefault(user_id, {}).get(rid)
        stored = {**copy.deepcopy(dict(record)), "id": rid, "updatedAt": _now_iso()}
        stored["createdAt"] = (
            (existing or {}).get("createdAt") or stored.get("createdAt") or stored["updatedAt"]
        )
        self._rows[user_id][rid] = stored
        return copy.deepcopy(stored)

    async def delete(self, user_id: str, record_id: str) -> None:
        self._rows.get(user_id, {}).pop(str(record_id), None)


class InMemorySettingsStore:
    def __init__(
        self, record: Mapping[str, Any] | None = None, *, user_id: str = "local"
    ) -> None:
        self._rows: dict[str, RawRecord] = {}
        if record is not None:
            self._rows[user_id] = copy.deepcopy(dict(record))

    async def get(self, user_id: str) -> RawRecord | None:
        row = self._rows.get(user_id)
        return copy.deepcopy(row) if row is not None else None

    async def upsert(self, user_id: str, record: Mapping[str, Any]) -> RawRecord:
        stored = {**copy.deepcopy(dict(record)), "userId": user_id, "updatedAt": _now_iso()}
        self._rows[user_id] = stored
        return copy.deepcopy(stored)


def in_memory_store(
    *,
    loops: Iterable[Mapping[str, Any]] = (),
    expenses: Iterable[Mapping[str, Any]] = (),
    settings: Mapping[str, Any] | None = None,
    user_id: str = "local",
) -> LedgerStore:
    """Build a :class:`LedgerStore` of in-memory stores, optionally pre-seeded."""

    return LedgerStore(
        loops=InMemoryEntityStore(loops, user_id=user_id),
        expenses=InMemoryEntityStore(expenses, user_id=user_id),
        settings=InMemorySettingsStore(settings, user_id=user_id),
    )


__all__ = [
    "EntityStore",
    "InMemoryEntityStore",
    "InMemorySettingsStore",
    "LedgerStore",
    "RawRecord",
    "SettingsStore",
    "in_memory_store",
    "record_id_of",
]
