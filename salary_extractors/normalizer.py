from __future__ import annotations

import re
from datetime import date
from typing import Optional


_FULLWIDTH_DIGITS = str.maketrans(
    {
        "０": "0",
        "１": "1",
        "２": "2",
        "３": "3",
        "４": "4",
        "５": "5",
        "６": "6",
        "７": "7",
        "８": "8",
        "９": "9",
        "．": ".",
        "，": ",",
    }
)

_ERA_OFFSETS = {
    "令和": 2018,
    "平成": 1988,
    "昭和": 1925,
}

_NON_DIGIT_PATTERN = re.compile(r"[^0-9]")
_TIME_PATTERN = re.compile(r"^\s*(\d+)\s*(?::\s*(\d{1,2}))?")
_DAYS_PATTERN = re.compile(r"\d+(?:\.\d+)?")


def normalize_text(text: str) -> str:
    """Convert full-width digits, commas and periods to half-width."""
    if not text:
        return ""
    return text.translate(_FULLWIDTH_DIGITS)


def parse_amount(raw: Optional[str]) -> int:
    """Parse a yen amount such as "1,234,567" or "１，２３４".

    Anything that is not a digit is dropped. A string without digits yields 0.
    """
    if not raw:
        return 0
    digits = _NON_DIGIT_PATTERN.sub("", normalize_text(raw))
    if not digits:
        return 0
    return int(digits, 10)


def parse_time_value(raw: Optional[str]) -> float:
    """Convert "HH:MM" into fractional hours ("14:30" -> 14.5)."""
    if not raw:
        return 0.0
    text = normalize_text(raw).replace("：", ":")
    match = _TIME_PATTERN.match(text)
    if not match:
        return 0.0
    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    return hours + minutes / 60


def parse_days(raw: Optional[str]) -> float:
    if not raw:
        return 0.0
    match = _DAYS_PATTERN.search(normalize_text(raw))
    if not match:
        return 0.0
    return float(match.group(0))


def era_to_western(era: str, era_year: str) -> Optional[int]:
    offset = _ERA_OFFSETS.get(era)
    if offset is None:
        return None
    if era_year == "元":
        return offset + 1
    try:
        return offset + int(era_year)
    except ValueError:
        return None


def normalize_date(year: int, month: int, day: int = 1) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None
