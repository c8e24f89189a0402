"""Lenient value parsing for prices, durations and free text coming from providers."""
from __future__ import annotations

import re
from typing import Any, List, Mapping, Optional

_NUMBER_PATTERN = re.compile(r"\d+(?:\.\d+)?")
_RANGE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(?:-|–|to)\s*(\d+(?:\.\d+)?)")
_URL_PATTERN = re.compile(r"https?://[^\s\"'<>]+")
_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_MINUTES_HINT = re.compile(r"\b(?:min|mins|minute|minutes|m)\b", re.IGNORECASE)
_HOURS_AND_MINUTES = re.compile(
    r"(\d+(?:\.\d+)?)\s*h(?:ours?|rs?)?\s*(?:and\s*)?(\d+)\s*m", re.IGNORECASE
)
_ISO_DURATION = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?$", re.IGNORECASE)


def _mean_of_numbers(text: str) -> Optional[float]:
    cleaned = text.replace(",", "")
    ranged = _RANGE_PATTERN.search(cleaned)
    if ranged:
        return (float(ranged.group(1)) + float(ranged.group(2))) / 2
    match = _NUMBER_PATTERN.search(cleaned)
    if match:
        return float(match.group(0))
    return None


def parse_price(value: Any) -> Optional[float]:
    """Return a non-negative price from the many shapes providers use.

    Accepts numbers, ``"free"``, strings with currency symbols or thousands
    separators, ranges (averaged) and mappings carrying ``amount``/``total``.
    Returns ``None`` when no price can be read.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value >= 0 else None
    if isinstance(value, Mapping):
        for key in ("amount", "total", "price", "fromPrice", "value"):
            if key in value:
                return parse_price(value[key])
        return None
    if isinstance(value, str):
        text = value.strip().lower()
        if not text:
            return None
        if text in {"free", "gratis", "no cost"} or text.startswith("free "):
            return 0.0
        return _mean_of_numbers(text)
    return None


def parse_duration_hours(value: Any) -> Optional[float]:
    """Return a duration in hours.

    Bare numbers are hours. Strings may be ``"2 hours"``, ``"90 minutes"``,
    ``"1.5h"``, ``"2-3 hours"`` or ISO-8601 ``"PT2H30M"``.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    if isinstance(value, Mapping):
        minutes = value.get("minutes") or value.get("fixedDurationInMinutes")
        if minutes is not None:
            return parse_duration_hours(f"{minutes} minutes")
        return None
    text = str(value).strip()
    if not text:
        return None
    iso = _ISO_DURATION.match(text)
    if iso and (iso.group(1) or iso.group(2)):
        return int(iso.group(1) or 0) + int(iso.group(2) or 0) / 60
    compound = _HOURS_AND_MINUTES.search(text)
    if compound:
        return round(float(compound.group(1)) + int(compound.group(2)) / 60, 2)
    amount = _mean_of_numbers(text)
    if amount is None or amount <= 0:
        return None
    if _MINUTES_HINT.search(text) and not re.search(r"\bh(?:ou)?rs?\b|\d\s*h\b", text, re.IGNORECASE):
        return round(amount / 60, 2)
    return amount


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""

    if not text:
        return ""
    return _WHITESPACE.sub(" ", _NON_WORD.sub(" ", text.lower())).strip()


def tokenize(text: Optional[str]) -> List[str]:
    normalized = normalize_text(text).replace("_", " ")
    return [token for token in normalized.split(" ") if token]


def extract_url(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    match = _URL_PATTERN.search(text)
    return match.group(0).rstrip(".,;)") if match else None
