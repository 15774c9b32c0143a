import pytest

from strompreise.date_codes import DEFAULT_DATE_CODE, chart_title, format_date_title, normalize_date


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2025-10-01", "20251001"),
        ("20251001", "20251001"),
        ("", "20251001"),
        ("abc", "00000000"),
        ("202510", "20251000"),
        ("01.10.2025", "01102025"),
        ("  2025-10-01  ", "20251001"),
        ("2025-10-01-extra9", "20251001"),
    ],
)
def test_normalize_date(raw, expected):
    assert normalize_date(raw) == expected


def test_normalize_date_none_is_default():
    assert normalize_date(None) == DEFAULT_DATE_CODE


def test_normalize_date_keeps_impossible_dates():
    # no calendar validation
    assert normalize_date("2025-13-45") == "20251345"


def test_format_date_title():
    assert format_date_title("20251001") == "01.10.2025"
    assert format_date_title("2025100") == ""


def test_chart_title_falls_back_to_raw_input():
    assert chart_title("2025-10-01", "20251001") == "Diagramm für 01.10.2025"
    assert chart_title("heute", "") == "Diagramm für heute"
