"""Contact and address normalisation for client intake.

Usage:
    from woodbank.utils.formatting import normalize_phone, is_valid_phone

    phone = normalize_phone("555.123.4567")   # "(555) 123-4567"
"""
import re

US_STATES = frozenset({
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
    "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
    "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
    "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
    "DC",
})

_PHONE_RE = re.compile(r"^\(\d{3}\) \d{3}-\d{4}$")
_POSTAL_RE = re.compile(r"^\d{5}(?:-\d{4})?$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_phone(value: str) -> str:
    """Format ten digits as ``(###) ###-####``; anything else is only stripped."""
    digits = re.sub(r"\D", "", value or "")[:10]
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return (value or "").strip()


def is_valid_phone(value: str) -> bool:
    return bool(_PHONE_RE.match(value or ""))


def normalize_state(value: str) -> str:
    return (value or "").strip().upper()


def is_valid_state(value: str) -> bool:
    return normalize_state(value) in US_STATES


def normalize_postal(value: str) -> str:
    return (value or "").strip()


def is_valid_postal(value: str) -> bool:
    return bool(_POSTAL_RE.match(value or ""))


def init_cap_city(value: str) -> str:
    return " ".join(part[0].upper() + part[1:].lower() for part in (value or "").split())


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match((value or "").strip()))
