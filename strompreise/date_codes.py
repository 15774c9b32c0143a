from __future__ import annotations

import re
from typing import Optional

DEFAULT_DATE_CODE = "20251001"

_ISO_DATE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_DATE_CODE = re.compile(r"[0-9]{8}")
_NON_DIGIT = re.compile(r"[^0-9]")


def normalize_date(raw: Optional[str]) -> str:
    """
    Turn free-form date input into the 8-digit code the API expects.

    - ``YYYY-MM-DD`` (date picker) -> separators stripped
    - ``YYYYMMDD`` -> unchanged
    - anything else -> digits only, right-padded with ``0`` to 8 characters
    - empty -> ``DEFAULT_DATE_CODE``

    The result is not necessarily a valid calendar date.
    """
    text = str(raw or "").strip()
    if not text:
        return DEFAULT_DATE_CODE
    if _ISO_DATE.fullmatch(text):
        return text.replace("-", "")
    if _DATE_CODE.fullmatch(text):
        return text
    digits = _NON_DIGIT.sub("", text)
    return (digits + "00000000")[:8]


def format_date_title(code: str) -> str:
    """YYYYMMDD -> DD.MM.YYYY; empty string when ``code`` is not 8 digits."""
    if not _DATE_CODE.fullmatch(code or ""):
        return ""
    return f"{code[6:8]}.{code[4:6]}.{code[0:4]}"


def chart_title(raw: Optional[str], code: str) -> str:
    formatted = format_date_title(code)
    return f"Diagramm für {formatted or (str(raw or '').strip() or code)}"
