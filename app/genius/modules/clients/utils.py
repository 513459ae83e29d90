"""
G-token helpers.

Tokens are the client's only credential for their journey pages, so lookups
always go through normalize_token() and is_valid_token() first.
"""

from __future__ import annotations

import re
import secrets

from app.genius.constants import TOKEN_DIGITS, TOKEN_PATTERN, TOKEN_PREFIX

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_token(value: str | None) -> str:
    """Uppercase and strip all whitespace: ' g 1001 ' -> 'G1001'."""
    return re.sub(r"\s+", "", value or "").upper()


def is_valid_token(value: str | None) -> bool:
    return bool(TOKEN_PATTERN.match(normalize_token(value)))


def random_token() -> str:
    n = secrets.randbelow(10**TOKEN_DIGITS)
    return f"{TOKEN_PREFIX}{n:0{TOKEN_DIGITS}d}"


def mask_token(value: str | None) -> str:
    """For logs: keep the prefix and last digit only (G***1)."""
    tok = normalize_token(value)
    if len(tok) < 3:
        return "***"
    return f"{tok[0]}***{tok[-1]}"


def normalize_email(value: str | None) -> str:
    return (value or "").strip().lower()


def is_valid_email(value: str | None) -> bool:
    return bool(_EMAIL_RE.match(normalize_email(value)))
