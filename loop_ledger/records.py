"""Canonical record models for ``loop_ledger``.

``Loop`` and ``Expense`` are frozen ``dataclass`` records with a fixed,
fully-defaulted field set. They are only ever produced by
:mod:`loop_ledger.normalizers`; nothing else in the package constructs them
from raw store data.

Field conventions:
    - money fields are finite ``float`` values >= 0
    - ``date`` is ``YYYY-MM-DD`` when the source date could be read, otherwise
      the trimmed raw string (possibly empty); such records stay in the cache
      but never fall inside a bounded range
    - clock times are zero-padded ``HH:MM`` strings or ``None``

``Settings`` is a pydantic model: a single record per user, read-only from the
reporting side and used to supply defaults (mileage rate, bag fees).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

DEFAULT_MILEAGE_RATE: float = 0.67

EXPENSE_CATEGORY_OPTIONS: tuple[str, ...] = ("Gear & Supplies", "Food", "Mileage", "Other")
OTHER_CATEGORY = "Other"


@dataclass(frozen=True, slots=True)
class Loop:
    """One canonical work event (a caddying round)."""

    id: str | None = None
    user_id: str | None = None
    date: str = ""
    course: str = ""
    place_id: str = ""
    loop_type: str = ""
    bag_fee: float = 0.0
    cash_tip: float = 0.0
    digital_tip: float = 0.0
    pre_grat: float = 0.0
    mileage_miles: float = 0.0
    mileage_cost: float = 0.0
    report_time: str | None = None
    tee_time: str | None = None
    end_time: str | None = None
    notes: str = ""
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def tips(self) -> float:
        """Cash + digital + pre-gratuity (bag fee excluded)."""
        return self.cash_tip + self.digital_tip + self.pre_grat

    @property
    def total(self) -> float:
        return self.bag_fee + self.cash_tip + self.digital_tip + self.pre_grat

    def to_record(self) -> dict[str, Any]:
        """Return the canonical camelCase mapping sent to the data store."""

        return {
            "id": self.id,
            "userId": self.user_id,
            "date": self.date,
            "course": self.course,
            "placeId": self.place_id,
            "loopType": self.loop_type,
            "bagFee": self.bag_fee,
            "cashTip": self.cash_tip,
            "digitalTip": self.digital_tip,
            "preGrat": self.pre_grat,
            "mileageMiles": self.mileage_miles,
            "mileageCost": self.mileage_cost,
            "reportTime": self.report_time,
            "teeTime": self.tee_time,
            "endTime": self.end_time,
            "notes": self.notes,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True, slots=True)
class Expense:
    """One canonical expense entry.

    Receipt fields are opaque references (a file name and a preview/data
    reference); this package never interprets them.
    """

    id: str | None = None
    user_id: str | None = None
    date: str = ""
    vendor: str | None = None
    description: str | None = None
    category: str | None = None
    amount: float = 0.0
    receipt_name: str | None = None
    receipt_ref: str | None = None
    notes: str = ""
    created_at: str | None = None
    updated_at: str | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "date": self.date,
            "vendor": self.vendor,
            "description": self.description,
            "category": self.category,
            "amount": self.amount,
            "receiptName": self.receipt_name,
            "receiptRef": self.receipt_ref,
            "notes": self.notes,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


class Settings(BaseModel):
    """Per-user settings record.

    Attributes
    ----------
    mileage_rate:
        Dollars per mile used to price round-trip mileage. Missing, zero or
        invalid values fall back to :data:`DEFAULT_MILEAGE_RATE`.
    home_address / home_place_id:
        Origin for mileage lookups; the place id wins when both are set.
    default_bag_fee_single / default_bag_fee_double / default_bag_fee_forecaddie:
        Optional per-loop-type bag fees pre-filled when a new loop leaves the
        bag fee untouched.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    user_id: str | None = None
    mileage_rate: float = DEFAULT_MILEAGE_RATE
    home_address: str = ""
    home_place_id: str = ""
    default_bag_fee_single: float | None = None
    default_bag_fee_double: float | None = None
    default_bag_fee_forecaddie: float | None = None

    @field_validator("mileage_rate")
    @classmethod
    def _rate_positive(cls, v: float) -> float:
        if not math.isfinite(v) or v <= 0:
            return DEFAULT_MILEAGE_RATE
        return v

    def default_bag_fee_for(self, loop_type: str | None) -> float | None:
        t = (loop_type or "").strip().lower()
        if "single" in t:
            return self.default_bag_fee_single
        if "double" in t:
            return self.default_bag_fee_double
        if "fore" in t:
            return self.default_bag_fee_forecaddie
        return None

    def to_record(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "mileageRate": self.mileage_rate,
            "homeAddress": self.home_address,
            "homePlaceId": self.home_place_id,
            "defaultBagFeeSingle": self.default_bag_fee_single,
            "defaultBagFeeDouble": self.default_bag_fee_double,
            "defaultBagFeeForecaddie": self.default_bag_fee_forecaddie,
        }


__all__ = [
    "DEFAULT_MILEAGE_RATE",
    "EXPENSE_CATEGORY_OPTIONS",
    "OTHER_CATEGORY",
    "Expense",
    "Loop",
    "Settings",
]
