"""Unit tests for lenient intake value parsers."""

from datetime import date
from decimal import Decimal

from payplan.services.planner.parsing import (
    as_text,
    normalize_date_text,
    parse_amount,
    parse_date,
    parse_quarter,
    parse_tax_year,
)


def test_parse_date_formats():
    assert parse_date("2026-04-15") == date(2026, 4, 15)
    assert parse_date("4/15/2026") == date(2026, 4, 15)
    assert parse_date("04-15-2026") == date(2026, 4, 15)
    assert parse_date("2026-04-15T10:00:00Z") == date(2026, 4, 15)


def test_parse_date_rejects_garbage():
    assert parse_date("") is None
    assert parse_date(None) is None
    assert parse_date("next tuesday") is None
    assert parse_date("2026-02-30") is None


def test_normalize_date_text():
    assert normalize_date_text("6/15/2026") == "2026-06-15"
    assert normalize_date_text("soon") == ""


def test_parse_amount_strips_formatting():
    assert parse_amount("$5,000.00") == Decimal("5000.00")
    assert parse_amount("1200") == Decimal("1200.00")
    assert parse_amount(99.999) == Decimal("100.00")
    assert parse_amount("-12.5") == Decimal("-12.50")


def test_parse_amount_unparsable():
    assert parse_amount("") is None
    assert parse_amount("TBD") is None
    assert parse_amount("1.2.3") is None
    assert parse_amount(None) is None
    assert parse_amount(True) is None


def test_parse_amount_rejects_values_too_large_to_store():
    assert parse_amount("9,999,999,999.99") == Decimal("9999999999.99")
    assert parse_amount("-9999999999.99") == Decimal("-9999999999.99")
    assert parse_amount("12345678901") is None
    assert parse_amount("9999999999.995") is None
    assert parse_amount("1" * 30) is None


def test_parse_quarter():
    assert parse_quarter("Q1") == 1
    assert parse_quarter(" q3 ") == 3
    assert parse_quarter("4") == 4
    assert parse_quarter("Q2 2026") == 2
    assert parse_quarter("5") is None
    assert parse_quarter("") is None


def test_parse_tax_year():
    assert parse_tax_year("2026") == 2026
    assert parse_tax_year("TY 2025") == 2025
    assert parse_tax_year("") is None


def test_parse_tax_year_rejects_out_of_range_years():
    assert parse_tax_year("2026-2027-2028") is None
    assert parse_tax_year("1800") is None
    assert parse_tax_year("2201") is None
    assert parse_tax_year("1900") == 1900
    assert parse_tax_year("2200") == 2200


def test_as_text():
    assert as_text("  hi ") == "hi"
    assert as_text(None) == ""
    assert as_text({"a": 1}) == ""
    assert as_text(12) == "12"
