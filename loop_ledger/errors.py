"""Exception types raised at the collaborator boundaries.

Malformed record data never raises; it is coerced by the normalizers. The
types below cover the failures a caller has to surface to the user: a data
store or mileage provider that could not complete an operation, or a mutation
that referenced a record the cache does not hold.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for ``loop_ledger`` failures."""


class StoreUnavailableError(LedgerError):
    """The data store could not complete a list/upsert/delete call."""


class MileageUnavailableError(LedgerError):
    """The driving-distance provider could not be reached or answered badly."""


class RecordNotFoundError(LedgerError):
    """A mutation referenced an id that is not present in the cache."""


__all__ = [
    "LedgerError",
    "MileageUnavailableError",
    "RecordNotFoundError",
    "StoreUnavailableError",
]
