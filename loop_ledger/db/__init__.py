"""db: SQLAlchemy tables and session helpers backing ``sql_ledger_store``.

Public exports
--------------
- ``Base`` and ``metadata``
- ORM models ``LlLoop``, ``LlExpense``, ``LlUserSettings``
- Engine/session helpers in ``loop_ledger.db.client``
"""

from __future__ import annotations

from .models import Base, LlExpense, LlLoop, LlUserSettings

metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "LlExpense",
    "LlLoop",
    "LlUserSettings",
]
