"""Raw store record -> canonical record normalizers.

Persisted loops exist in several historical shapes (camelCase app objects,
snake_case database rows, older ``tipCash``/``pregrat`` spellings, and single
``tip`` + ``tipType`` records from before tips were split). Each entity has an
explicit, ordered field-resolution table below: for every canonical field the
accepted source keys are listed highest priority first, and the first key that
is present with a non-``None``, non-blank value wins.

Normalization never raises. Any value that cannot be interpreted degrades to
the field default (``0.0``, ``""`` or ``None``) and unrecognized keys are
dropped. Feeding a canonical record back in returns an equal record.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any

from .date_range import parse_local_date
from .logging_setup import get_logger
from .records import DEFAULT_MILEAGE_RATE, Expense, Loop, Settings

_logger = get_logger("loop_ledger.normalizers")

# ---------------------------------------------------------------------------
# Field-resolution tables
# ---------------------------------------------------------------------------

LOOP_FIELDS: Mapping[str, tuple[str, ...]] = {
    "id": ("id",),
    "user_id": ("userId", "user_id"),
    "date": ("date", "loopDate", "loop_date"),
    "course": ("course", "courseName", "course_name"),
    "place_id": ("placeId", "place_id", "course_place_id", "coursePlaceId"),
    "loop_type": ("loopType", "loop_type"),
    "bag_fee": ("bagFee", "bag_fee", "bagfee", "bag"),
    "cash_tip": ("cashTip", "cash_tip", "tipCash", "tip_cash", "cash"),
    "digital_tip": ("digitalTip", "digital_tip", "tipDigital", "tip_digital", "digital"),
    # ``pregrat`` is a historical misspelling that shipped in stored data.
    "pre_grat": ("preGrat", "pre_grat", "pregrat", "pregrat_amount"),
    "mileage_miles": ("mileageMiles", "mileage_miles"),
    "mileage_cost": ("mileageCost", "mileage_cost"),
    "report_time": ("reportTime", "report_time"),
    "tee_time": ("teeTime", "tee_time"),
    "end_time": ("endTime", "end_time"),
    "notes": ("notes",),
    "created_at": ("createdAt", "created_at"),
    "updated_at": ("updatedAt", "updated_at"),
}

# Pre-split tip records: one amount plus a method discriminator.
LEGACY_TIP_KEYS: tuple[str, ...] = ("tip", "tipAmount", "tip_amount")
LEGACY_TIP_METHOD_KEYS: tuple[str, ...] = ("tipType", "tip_type", "tipMethod", "tip_method")

EXPENSE_FIELDS: Mapping[str, tuple[str, ...]] = {
    "id": ("id",),
    "user_id": ("userId", "user_id"),
    "date": ("date", "expenseDate", "expense_date"),
    "vendor": ("vendor", "merchant"),
    "description": ("description",),
    "category": ("category",),
    "amount": ("amount",),
    "receipt_name": ("receiptName", "receipt_name"),
    "receipt_ref": (
        "receiptRef",
        "receipt_ref",
        "receiptDataUrl",
        "receipt_data_url",
        "receiptUrl",
        "receipt_url",
    ),
    "notes": ("notes",),
    "created_at": ("createdAt", "created_at"),
    "updated_at": ("updatedAt", "updated_at"),
}

SETTINGS_FIELDS: Mapping[str, tuple[str, ...]] = {
    "user_id": ("userId", "user_id"),
    "mileage_rate": ("mileageRate", "mileage_rate"),
    "home_address": ("homeAddress", "home_address"),
    "home_place_id": ("homePlaceId", "home_place_id"),
    "default_bag_fee_single": ("defaultBagFeeSingle", "default_bag_fee_single"),
    "default_bag_fee_double": ("defaultBagFeeDouble", "default_bag_fee_double"),
    "default_bag_fee_forecaddie": ("defaultBagFeeForecaddie", "default_bag_fee_forecaddie"),
}

# ---------------------------------------------------------------------------
# Helpers (field resolution, money/date/time coercion)
# ---------------------------------------------------------------------------

_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2}(?:\.\d+)?)?\s*([AaPp][Mm])?$")


def _is_blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def _resolve(raw: Mapping[str, Any], keys: Iterable[str]) -> Any:
    """Return the first present, non-blank value among ``keys`` (else ``None``)."""

    for key in keys:
        v = raw.get(key)
        if not _is_blank(v):
            return v
    return None


def _to_money(raw: Any) -> float:
    """Coerce a loosely typed amount into a finite, non-negative ``float``.

    Currency symbols, thousands separators and any other characters besides
    digits, ``.`` and ``-`` are stripped first. Negative, non-finite and
    unparsable input becomes exactly ``0.0`` (no absolute value is taken).
    """

    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        try:
            value = float(raw)
        except OverflowError:
            _logger.debug("normalize:money_out_of_range bits=%d", raw.bit_length())
            return 0.0
    else:
        s = _NON_NUMERIC_RE.sub("", str(raw))
        if not s:
            return 0.0
        try:
            value = float(Decimal(s))
        except InvalidOperation:
            _logger.debug("normalize:money_unparsable raw=%r", raw)
            return 0.0
    if not math.isfinite(value) or value < 0:
        _logger.debug("normalize:money_out_of_range raw=%r", raw)
        return 0.0
    return value


def _optional_money(raw: Any) -> float | None:
    return None if _is_blank(raw) else _to_money(raw)


def _norm_str(v: Any) -> str | None:
    if v is None:
        return None
    s = str(v).strip()
    return s if s else None


def _norm_id(v: Any) -> str | None:
    # Older clients used ``Date.now()`` numbers as ids.
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    if isinstance(v, bool):
        return None
    return _norm_str(v)


def _canonical_date(raw: Any) -> str:
    """Return ``YYYY-MM-DD`` when the value reads as a date, else the raw text."""

    if raw is None:
        return ""
    if isinstance(raw, (datetime, date)):
        parsed = parse_local_date(raw)
        return parsed.date().isoformat() if parsed else ""
    s = str(raw).strip()
    parsed = parse_local_date(s)
    return parsed.date().isoformat() if parsed else s


def _canonical_time(raw: Any) -> str | None:
    """Return a zero-padded ``HH:MM`` clock time or ``None``."""

    if raw is None:
        return None
    if isinstance(raw, time):
        return f"{raw.hour:02d}:{raw.minute:02d}"
    m = _TIME_RE.match(str(raw).strip())
    if not m:
        return None
    hours, minutes = int(m.group(1)), int(m.group(2))
    meridiem = (m.group(3) or "").lower()
    if meridiem:
        if not 1 <= hours <= 12:
            return None
        hours = hours % 12 + (12 if meridiem == "pm" else 0)
    if hours > 23 or minutes > 59:
        return None
    return f"{hours:02d}:{minutes:02d}"


def _as_mapping(raw: Any, kind: str) -> Mapping[str, Any]:
    if isinstance(raw, (Loop, Expense)):
        return raw.to_record()
    if isinstance(raw, Settings):
        return raw.to_record()
    if isinstance(raw, Mapping):
        return raw
    _logger.debug("normalize:not_a_mapping kind=%s type=%s", kind, type(raw).__name__)
    return {}


def _split_tips(raw: Mapping[str, Any]) -> tuple[float, float]:
    """Return ``(cash, digital)`` reconciling split and single-tip shapes.

    Explicit split amounts win when either is non-zero. Otherwise a legacy
    single tip is routed by its discriminator: ``cash*`` goes to cash,
    ``digit*`` to digital, and an absent or unknown discriminator also goes to
    digital so historical income is never dropped.
    """

    cash = _to_money(_resolve(raw, LOOP_FIELDS["cash_tip"]))
    digital = _to_money(_resolve(raw, LOOP_FIELDS["digital_tip"]))
    if cash or digital:
        return cash, digital

    legacy = _to_money(_resolve(raw, LEGACY_TIP_KEYS))
    if not legacy:
        return 0.0, 0.0
    method = (_norm_str(_resolve(raw, LEGACY_TIP_METHOD_KEYS)) or "").lower()
    if method.startswith("cash"):
        return legacy, 0.0
    if not method.startswith("digit"):
        _logger.debug("normalize:legacy_tip_unknown_method method=%r -> digital", method)
    return 0.0, legacy


# ---------------------------------------------------------------------------
# Entity normalizers
# ---------------------------------------------------------------------------


def normalize_loop(raw: Mapping[str, Any] | Loop, *, settings: Settings | None = None) -> Loop:
    """Map a raw loop of any historical shape onto the canonical :class:`Loop`.

    When ``settings`` is given and the record carries no bag fee at all, the
    per-loop-type default bag fee from settings is used (the add-loop form
    pre-fills it when the user leaves the field untouched).
    """

    r = _as_mapping(raw, "loop")
    f = LOOP_FIELDS

    loop_type = _norm_str(_resolve(r, f["loop_type"])) or ""
    bag_raw = _resolve(r, f["bag_fee"])
    if bag_raw is None and settings is not None:
        bag_raw = settings.default_bag_fee_for(loop_type)
    cash, digital = _split_tips(r)

    return Loop(
        id=_norm_id(_resolve(r, f["id"])),
        user_id=_norm_id(_resolve(r, f["user_id"])),
        date=_canonical_date(_resolve(r, f["date"])),
        course=_norm_str(_resolve(r, f["course"])) or "",
        place_id=_norm_str(_resolve(r, f["place_id"])) or "",
        loop_type=loop_type,
        bag_fee=_to_money(bag_raw),
        cash_tip=cash,
        digital_tip=digital,
        pre_grat=_to_money(_resolve(r, f["pre_grat"])),
        mileage_miles=_to_money(_resolve(r, f["mileage_miles"])),
        mileage_cost=_to_money(_resolve(r, f["mileage_cost"])),
        report_time=_canonical_time(_resolve(r, f["report_time"])),
        tee_time=_canonical_time(_resolve(r, f["tee_time"])),
        end_time=_canonical_time(_resolve(r, f["end_time"])),
        notes=_norm_str(_resolve(r, f["notes"])) or "",
        created_at=_norm_str(_resolve(r, f["created_at"])),
        updated_at=_norm_str(_resolve(r, f["updated_at"])),
    )


def normalize_expense(raw: Mapping[str, Any] | Expense) -> Expense:
    """Map a raw expense onto the canonical :class:`Expense`.

    Only ``amount`` is coerced numerically; every other field passes through
    as an optional, trimmed string.
    """

    r = _as_mapping(raw, "expense")
    f = EXPENSE_FIELDS
    return Expense(
        id=_norm_id(_resolve(r, f["id"])),
        user_id=_norm_id(_resolve(r, f["user_id"])),
        date=_canonical_date(_resolve(r, f["date"])),
        vendor=_norm_str(_resolve(r, f["vendor"])),
        description=_norm_str(_resolve(r, f["description"])),
        category=_norm_str(_resolve(r, f["category"])),
        amount=_to_money(_resolve(r, f["amount"])),
        receipt_name=_norm_str(_resolve(r, f["receipt_name"])),
        receipt_ref=_norm_str(_resolve(r, f["receipt_ref"])),
        notes=_norm_str(_resolve(r, f["notes"])) or "",
        created_at=_norm_str(_resolve(r, f["created_at"])),
        updated_at=_norm_str(_resolve(r, f["updated_at"])),
    )


def normalize_settings(raw: Mapping[str, Any] | Settings | None) -> Settings:
    """Map a raw settings row onto :class:`Settings` (defaults when ``None``)."""

    r = _as_mapping(raw, "settings") if raw is not None else {}
    f = SETTINGS_FIELDS
    rate = _to_money(_resolve(r, f["mileage_rate"])) or DEFAULT_MILEAGE_RATE
    return Settings(
        user_id=_norm_id(_resolve(r, f["user_id"])),
        mileage_rate=rate,
        home_address=_norm_str(_resolve(r, f["home_address"])) or "",
        home_place_id=_norm_str(_resolve(r, f["home_place_id"])) or "",
        default_bag_fee_single=_optional_money(_resolve(r, f["default_bag_fee_single"])),
        default_bag_fee_double=_optional_money(_resolve(r, f["default_bag_fee_double"])),
        default_bag_fee_forecaddie=_optional_money(_resolve(r, f["default_bag_fee_forecaddie"])),
    )


def normalize_loops(rows: Iterable[Any]) -> list[Loop]:
    return [normalize_loop(r) for r in rows]


def normalize_expenses(rows: Iterable[Any]) -> list[Expense]:
    return [normalize_expense(r) for r in rows]


class RecordNormalizer:
    """Dispatch raw records to the entity normalizer by kind.

    Usage
    -----
    loop = RecordNormalizer.normalize(kind="loop", raw={...})  # -> Loop
    """

    @staticmethod
    def normalize(*, kind: str, raw: Any) -> Loop | Expense | Settings:
        k = kind.strip().lower()
        if k in {"loop", "loops"}:
            return normalize_loop(raw)
        if k in {"expense", "expenses"}:
            return normalize_expense(raw)
        if k == "settings":
            return normalize_settings(raw)
        raise ValueError(f"unknown record kind: {kind!r}")


__all__ = [
    "EXPENSE_FIELDS",
    "LEGACY_TIP_KEYS",
    "LEGACY_TIP_METHOD_KEYS",
    "LOOP_FIELDS",
    "SETTINGS_FIELDS",
    "RecordNormalizer",
    "normalize_expense",
    "normalize_expenses",
    "normalize_loop",
    "normalize_loops",
    "normalize_settings",
]
