"""SQLAlchemy-backed :class:`~loop_ledger.store.LedgerStore`.

Each entity table keeps the record verbatim in a JSON column; ``id``,
``user_id`` and ``date`` are lifted out only for lookup and ordering. The
session work is synchronous and runs in a worker thread so the async store
interface stays non-blocking for the caller.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db.client import init_db, session_scope
from .db.models import LlExpense, LlLoop, LlUserSettings
from .errors import StoreUnavailableError
from .logging_setup import get_logger
from .store import LedgerStore, RawRecord, record_id_of

_logger = get_logger("loop_ledger.persistence")

type _EntityModel = type[LlLoop] | type[LlExpense]


def _date_key(record: Mapping[str, Any]) -> str | None:
    value = record.get("date")
    if value is None:
        return None
    s = str(value).strip()
    return s or None


class _SqlBase:
    def __init__(self, database_url: str) -> None:
        self._database_url = database_url

    async def _run[T](self, op: str, fn: Callable[[Session], T]) -> T:
        def _work() -> T:
            with session_scope(database_url=self._database_url) as session:
                return fn(session)

        try:
            return await asyncio.to_thread(_work)
        except SQLAlchemyError as exc:
            _logger.warning("store:%s_failed error=%s", op, exc)
            raise StoreUnavailableError(f"{op} failed: {exc}") from exc


class _SqlEntityStore(_SqlBase):
    def __init__(self, database_url: str, model: _EntityModel) -> None:
        super().__init__(database_url)
        self._model = model
        self._name = model.__tablename__

    async def list(self, user_id: str) -> list[RawRecord]:
        model = self._model

        def _list(session: Session) -> list[RawRecord]:
            stmt = (
                select(model)
                .where(model.user_id == user_id)
                .order_by(model.date.desc(), model.created_at.desc())
            )
            return [copy.deepcopy(row.raw_record) for row in session.scalars(stmt)]

        return await self._run(f"{self._name}.list", _list)

    async def upsert(self, user_id: str, record: Mapping[str, Any]) -> RawRecord:
        model = self._model
        rid = record_id_of(record)

        def _upsert(session: Session) -> RawRecord:
            now = datetime.now(UTC)
            row = session.get(model, rid)
            stored: RawRecord = {
                **copy.deepcopy(dict(record)),
                "id": rid,
                "userId": user_id,
                "updatedAt": now.isoformat(),
            }
            if row is None:
                stored["createdAt"] = stored.get("createdAt") or stored["updatedAt"]
                row = model(id=rid, user_id=user_id, created_at=now)
                session.add(row)
            elif row.user_id != user_id:
                raise StoreUnavailableError(f"record {rid} belongs to another user")
            else:
                stored["createdAt"] = row.raw_record.get("createdAt") or row.created_at.isoformat()
            row.date = _date_key(stored)
            row.raw_record = stored
            row.updated_at = now
            return copy.deepcopy(stored)

        return await self._run(f"{self._name}.upsert", _upsert)

    async def delete(self, user_id: str, record_id: str) -> None:
        model = self._model

        def _delete(session: Session) -> None:
            session.execute(
                delete(model).where(model.id == str(record_id), model.user_id == user_id)
            )

        await self._run(f"{self._name}.delete", _delete)


class _SqlSettingsStore(_SqlBase):
    async def get(self, user_id: str) -> RawRecord | None:
        def _get(session: Session) -> RawRecord | None:
            row = session.get(LlUserSettings, user_id)
            return copy.deepcopy(row.raw_record) if row is not None else None

        return await self._run("ll_user_settings.get", _get)

    async def upsert(self, user_id: str, record: Mapping[str, Any]) -> RawRecord:
        def _upsert(session: Session) -> RawRecord:
            now = datetime.now(UTC)
            stored: RawRecord = {
                **copy.deepcopy(dict(record)),
                "userId": user_id,
                "updatedAt": now.isoformat(),
            }
            row = session.get(LlUserSettings, user_id)
            if row is None:
                row = LlUserSettings(user_id=user_id)
                session.add(row)
            row.raw_record = stored
            row.updated_at = now
            return copy.deepcopy(stored)

        return await self._run("ll_user_settings.upsert", _upsert)


def sql_ledger_store(database_url: str, *, create_tables: bool = False) -> LedgerStore:
    """Build a :class:`LedgerStore` over the ``ll_*`` tables at ``database_url``.

    With ``create_tables=True`` the tables are created first (idempotent).
    """

    if create_tables:
        try:
            init_db(database_url=database_url)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"could not initialize database: {exc}") from exc
    return LedgerStore(
        loops=_SqlEntityStore(database_url, LlLoop),
        expenses=_SqlEntityStore(database_url, LlExpense),
        settings=_SqlSettingsStore(database_url),
    )


__all__ = ["sql_ledger_store"]
