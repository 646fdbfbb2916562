"""Bangladeshi mobile number helpers shared by checkout and the risk endpoints."""
import re

COUNTRY_PREFIX = "880"

_NON_DIGITS = re.compile(r"\D")
_WHITESPACE = re.compile(r"\s")
_BD_MOBILE = re.compile(r"^(\+?88)?01[3-9]\d{8}$")


def normalize(raw: str) -> str:
    """
    Canonical local format: digits only, 880 prefix folded into a single
    leading 0, and a leading 0 added to bare 10-digit numbers.

    Malformed input can come back shorter than 11 digits.
    """
    digits = _NON_DIGITS.sub("", raw or "")
    if digits.startswith(COUNTRY_PREFIX):
        digits = "0" + digits[len(COUNTRY_PREFIX):]
    if len(digits) == 10 and not digits.startswith("0"):
        digits = "0" + digits
    return digits


def is_bangladesh_mobile(phone: str) -> bool:
    return bool(_BD_MOBILE.match(_WHITESPACE.sub("", phone or "")))


def international(normalized: str) -> str:
    """01XXXXXXXXX -> 8801XXXXXXXXX"""
    local = normalized[1:] if normalized.startswith("0") else normalized
    return COUNTRY_PREFIX + local


def variants(raw: str, normalized: str) -> list[str]:
    """Every stored form a number may have been saved under."""
    local = normalized[1:] if normalized.startswith("0") else normalized
    candidates = [raw, normalized, f"+{COUNTRY_PREFIX}{local}", f"{COUNTRY_PREFIX}{local}"]
    seen = []
    for candidate in candidates:
        if candidate and candidate not in seen:
            seen.append(candidate)
    return seen


def match_suffix(normalized: str) -> str:
    # Last 10 digits survive any 0 / 880 / +880 prefix difference
    return normalized[-10:]
