"""
Input normalization helpers shared by request models.

US phone numbers, venue slugs and website URLs arrive from free-form
dashboard inputs and are normalized here.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlparse

URL_NAME_PATTERN = re.compile(r"[a-z0-9-]+")
VENUE_SLUG_PATTERN = re.compile(r"[a-z-]+")


def extract_phone_digits(value: Optional[str]) -> str:
    """Digits of a US phone number with any leading country code 1 removed."""
    digits = re.sub(r"\D", "", value or "")
    if digits.startswith("1"):
        digits = digits[1:]
    return digits


def is_complete_us_phone(value: Optional[str]) -> bool:
    return len(extract_phone_digits(value)) == 10


def normalize_us_phone_digits(value: Optional[str]) -> str:
    """The first ten national digits."""
    return extract_phone_digits(value)[:10]


def format_us_phone(value: Optional[str]) -> str:
    """Format as ``+1 (AAA) PPP-LLLL``; partial numbers are formatted as far as they go."""
    digits = normalize_us_phone_digits(value)
    if not digits:
        return ""
    area, prefix, line = digits[:3], digits[3:6], digits[6:10]
    formatted = f"+1 ({area}"
    if len(digits) >= 3:
        formatted += ")"
    if prefix:
        formatted += f" {prefix}"
    if line:
        formatted += f"-{line}"
    return formatted


def to_venue_slug(value: str) -> str:
    """Lowercase, hyphen-separated slug containing only letters and hyphens."""
    slug = value.lower()
    slug = re.sub(r"[^a-z\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def is_venue_slug_valid(value: str) -> bool:
    return bool(VENUE_SLUG_PATTERN.fullmatch(value))


def is_valid_url(value: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def blank_to_none(value: Optional[str]) -> Optional[str]:
    """Strip a string and turn empty results into None."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def combine_song(artist: str, title: str) -> tuple[str, str]:
    """Return the ``(combined, normalized_combined)`` songbook keys."""
    combined = f"{artist} - {title}"
    return combined, combined.lower()
