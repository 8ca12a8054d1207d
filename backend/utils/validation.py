"""Request validation helpers."""

from __future__ import annotations

import hmac
import re

from ..errors import ValidationError

# Keep validation lightweight but accept modern long TLDs (up to 63 chars).
EMAIL_RE = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,63}$", re.IGNORECASE)


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: str | None) -> bool:
    return bool(EMAIL_RE.match(normalize_email(email)))


def parse_paging(limit_raw: str | None, offset_raw: str | None, *, default_limit: int, max_limit: int) -> tuple[int, int]:
    """Parse limit/offset query parameters.

    Raises:
        ValidationError: non-integer or out-of-range values
    """
    try:
        limit = int(limit_raw) if limit_raw not in (None, "") else default_limit
        offset = int(offset_raw) if offset_raw not in (None, "") else 0
    except (TypeError, ValueError) as exc:
        raise ValidationError("limit and offset must be integers") from exc
    if limit < 1 or limit > max_limit:
        raise ValidationError(f"limit must be between 1 and {max_limit}")
    if offset < 0:
        raise ValidationError("offset must not be negative")
    return limit, offset


def secret_matches(provided: str, expected: str) -> bool:
    """Constant-time secret comparison. An empty expected secret never matches."""
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def is_utf8_encodable(text: str | None) -> bool:
    """False for strings holding lone surrogates, which JSON allows but UTF-8 does not."""
    try:
        (text or "").encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True
