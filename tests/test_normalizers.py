from __future__ import annotations

import pytest

from loop_ledger.normalizers import (
    RecordNormalizer,
    normalize_expense,
    normalize_loop,
    normalize_settings,
)
from loop_ledger.records import DEFAULT_MILEAGE_RATE, Expense, Loop, Settings

# Historical shapes seen in stored loop data.
RAW_LOOPS = [
    {
        "id": "a1",
        "date": "2024-03-09",
        "course": "Pine Valley",
        "loopType": "Single",
        "bagFee": 100,
        "cashTip": "20",
        "digitalTip": 15.5,
        "preGrat": "$10.00",
        "teeTime": "9:05 AM",
        "endTime": "1:30 PM",
    },
    {
        "id": 1700000000000.0,
        "loop_date": "03/08/2024",
        "course_name": "Merion",
        "loop_type": "double",
        "bag_fee": "1,200.50",
        "tip_cash": "40",
        "pregrat": "12",
        "report_time": "06:45",
    },
    {"id": "legacy", "date": "2024-03-01", "bag": 80, "tip": 50, "tipType": "Cash"},
    {"id": "weird", "date": "someday", "bagFee": "abc", "cashTip": -5, "teeTime": "25:00"},
    {},
]


# ---- Shape resolution ----------------------------------------------------------


def test_camel_case_loop_maps_every_field():
    loop = normalize_loop(RAW_LOOPS[0])

    assert loop == Loop(
        id="a1",
        date="2024-03-09",
        course="Pine Valley",
        loop_type="Single",
        bag_fee=100.0,
        cash_tip=20.0,
        digital_tip=15.5,
        pre_grat=10.0,
        tee_time="09:05",
        end_time="13:30",
    )


def test_snake_case_and_misspelled_keys_resolve():
    loop = normalize_loop(RAW_LOOPS[1])

    assert loop.id == "1700000000000"
    assert loop.date == "2024-03-08"
    assert loop.course == "Merion"
    assert loop.loop_type == "double"
    assert loop.bag_fee == pytest.approx(1200.50)
    assert loop.cash_tip == 40.0
    assert loop.pre_grat == 12.0
    assert loop.report_time == "06:45"


def test_higher_priority_key_wins_and_blank_values_fall_through():
    loop = normalize_loop({"bagFee": "  ", "bag_fee": 70, "bag": 99})
    assert loop.bag_fee == 70.0


def test_empty_record_degrades_to_defaults():
    assert normalize_loop({}) == Loop()
    assert normalize_loop(None) == Loop()  # type: ignore[arg-type]


def test_malformed_values_never_raise():
    loop = normalize_loop(RAW_LOOPS[3])

    assert loop.date == "someday"
    assert loop.bag_fee == 0.0
    assert loop.cash_tip == 0.0
    assert loop.tee_time is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$1,234.56", 1234.56),
        ("12", 12.0),
        (7, 7.0),
        ("-3", 0.0),
        ("1.2.3", 0.0),
        (float("nan"), 0.0),
        (float("inf"), 0.0),
        (True, 0.0),
        ("", 0.0),
    ],
)
def test_money_coercion(raw, expected):
    assert normalize_loop({"bagFee": raw}).bag_fee == expected


def test_integer_too_large_for_float_becomes_zero():
    loop = normalize_loop({"bagFee": 10**400, "cashTip": 20})
    assert (loop.bag_fee, loop.cash_tip) == (0.0, 20.0)


@pytest.mark.parametrize("raw_date", ["9999-12-31T23:59:59-12:00", "0001-01-01T00:00:00+05:00"])
def test_timestamp_out_of_local_range_keeps_raw_text(raw_date):
    loop = normalize_loop({"date": raw_date, "bagFee": 10})
    assert loop.date == raw_date
    assert normalize_loop(loop) == loop


# ---- Tips ------------------------------------------------------------------------


def test_legacy_cash_tip_routes_to_cash():
    loop = normalize_loop({"tip": 50, "tipType": "Cash"})
    assert (loop.cash_tip, loop.digital_tip) == (50.0, 0.0)


@pytest.mark.parametrize("method", ["unknown", "Digital", "venmo", None])
def test_legacy_non_cash_tip_routes_to_digital(method):
    raw = {"tip": 50}
    if method is not None:
        raw["tipType"] = method
    loop = normalize_loop(raw)
    assert (loop.cash_tip, loop.digital_tip) == (0.0, 50.0)


def test_explicit_split_tips_win_over_legacy_tip():
    loop = normalize_loop({"cashTip": 10, "tip": 50, "tipType": "Cash"})
    assert (loop.cash_tip, loop.digital_tip) == (10.0, 0.0)


def test_total_is_sum_of_four_income_fields():
    for raw in RAW_LOOPS:
        loop = normalize_loop(raw)
        assert loop.total == pytest.approx(
            loop.bag_fee + loop.cash_tip + loop.digital_tip + loop.pre_grat, abs=0.005
        )
        assert loop.tips == pytest.approx(loop.cash_tip + loop.digital_tip + loop.pre_grat)


# ---- Idempotence -------------------------------------------------------------------


@pytest.mark.parametrize("raw", RAW_LOOPS)
def test_loop_normalization_is_idempotent(raw):
    once = normalize_loop(raw)
    assert normalize_loop(once) == once
    assert normalize_loop(once.to_record()) == once


def test_expense_normalization_is_idempotent():
    once = normalize_expense({"merchant": "Pro Shop", "amount": "$45", "date": "3/2/2024"})
    assert normalize_expense(once) == once


# ---- Settings defaults ---------------------------------------------------------------


def test_settings_default_bag_fee_applies_when_bag_fee_absent():
    settings = Settings(default_bag_fee_double=120.0, default_bag_fee_forecaddie=150.0)

    assert normalize_loop({"loopType": "Double"}, settings=settings).bag_fee == 120.0
    assert normalize_loop({"loopType": "Forecaddie"}, settings=settings).bag_fee == 150.0
    assert normalize_loop({"loopType": "Single"}, settings=settings).bag_fee == 0.0


def test_explicit_zero_bag_fee_is_kept_over_settings_default():
    settings = Settings(default_bag_fee_double=120.0)
    loop = normalize_loop({"loopType": "Double", "bagFee": 0}, settings=settings)
    assert loop.bag_fee == 0.0


# ---- Expenses and settings ------------------------------------------------------------


def test_expense_aliases_and_receipt_reference():
    expense = normalize_expense(
        {
            "id": "e1",
            "merchant": "Golf Galaxy",
            "category": "Gear & Supplies",
            "amount": "$89.99",
            "date": "2024-02-28",
            "receiptName": "receipt.jpg",
            "receiptDataUrl": "data:image/jpeg;base64,AAAA",
        }
    )

    assert expense == Expense(
        id="e1",
        date="2024-02-28",
        vendor="Golf Galaxy",
        category="Gear & Supplies",
        amount=89.99,
        receipt_name="receipt.jpg",
        receipt_ref="data:image/jpeg;base64,AAAA",
    )


@pytest.mark.parametrize("rate", [None, 0, "0", "-1", "abc"])
def test_settings_mileage_rate_falls_back_to_default(rate):
    raw = {} if rate is None else {"mileageRate": rate}
    assert normalize_settings(raw).mileage_rate == DEFAULT_MILEAGE_RATE


def test_settings_from_snake_case_row():
    settings = normalize_settings(
        {
            "user_id": "u1",
            "mileage_rate": "0.70",
            "home_address": " 1 Main St ",
            "default_bag_fee_single": "",
        }
    )

    assert settings.user_id == "u1"
    assert settings.mileage_rate == pytest.approx(0.70)
    assert settings.home_address == "1 Main St"
    assert settings.default_bag_fee_single is None


def test_settings_model_rejects_nonpositive_rate():
    assert Settings(mileage_rate=-2).mileage_rate == DEFAULT_MILEAGE_RATE


def test_record_normalizer_dispatches_by_kind():
    assert isinstance(RecordNormalizer.normalize(kind="loop", raw={}), Loop)
    assert isinstance(RecordNormalizer.normalize(kind="Expenses", raw={}), Expense)
    assert isinstance(RecordNormalizer.normalize(kind="settings", raw=None), Settings)
    with pytest.raises(ValueError):
        RecordNormalizer.normalize(kind="round", raw={})
