"""Tests for extraction defaulting rules."""
from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from app.services.receipt_normalizer import (
    Extracted,
    extract_amount,
    extract_date,
    extract_text,
    normalize_receipt,
)


def raw_receipt(**overrides):
    fields = {
        "id": "abc",
        "merchant": "Cafe",
        "receipt_date": "2024-05-06",
        "total": 12.5,
        "category": "Meals & Entertainment",
        "created_at": datetime(2024, 5, 10, 15, 0, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_extracted_or_default():
    assert Extracted("x").or_default("y") == "x"
    assert Extracted.absent().or_default("y") == "y"
    assert not Extracted.absent().present


@pytest.mark.parametrize("value", [None, "", "   ", 42])
def test_extract_text_absent(value):
    assert not extract_text(value).present


def test_extract_text_strips():
    assert extract_text("  Cafe ").value == "Cafe"


@pytest.mark.parametrize(
    "value,expected",
    [
        (12.5, 12.5),
        ("19.99", 19.99),
        (0, 0.0),
    ],
)
def test_extract_amount_present(value, expected):
    assert extract_amount(value).value == expected


@pytest.mark.parametrize("value", [None, "abc", float("nan"), float("inf"), True, []])
def test_extract_amount_absent(value):
    assert not extract_amount(value).present


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-05-06", date(2024, 5, 6)),
        ("2024-05-06T10:00:00", date(2024, 5, 6)),
        ("2024-05-06T23:30:00Z", date(2024, 5, 6)),
        (date(2024, 5, 6), date(2024, 5, 6)),
        (datetime(2024, 5, 6, 8, 0), date(2024, 5, 6)),
    ],
)
def test_extract_date_present(value, expected):
    assert extract_date(value).value == expected


@pytest.mark.parametrize("value", [None, "", "06/05/2024", "May 6th", "2024-13-45"])
def test_extract_date_absent(value):
    assert not extract_date(value).present


def test_normalize_complete_receipt():
    result = normalize_receipt(raw_receipt())

    assert result.merchant == "Cafe"
    assert result.category == "Meals & Entertainment"
    assert result.amount == 12.5
    assert result.effective_date == date(2024, 5, 6)
    assert result.date_from_extraction is True


def test_normalize_empty_extraction():
    result = normalize_receipt(
        raw_receipt(merchant=None, receipt_date="??", total=None, category="  ")
    )

    assert result.merchant == "Unknown"
    assert result.category == "Uncategorized"
    assert result.amount == 0.0
    assert result.effective_date == date(2024, 5, 10)
    assert result.date_from_extraction is False


def test_normalize_without_any_date():
    result = normalize_receipt(raw_receipt(receipt_date=None, created_at=None))

    assert result.effective_date is None
