"""Sender identifier normalization for Bangladesh mobile numbers.

Accepted shapes, after stripping whitespace, parentheses and hyphens:

- local:          ``01XXXXXXXXX``    (11 digits)
- international:  ``+88XXXXXXXXXXX`` (``+`` then 13 digits)
- country code:   ``88XXXXXXXXXXX``  (13 digits)

All of them canonicalize to the 13-digit ``88`` + local form, so
``normalize_sender_id`` is idempotent.
"""

from __future__ import annotations

import re

_STRIP_RE = re.compile(r"[\s\-()]")
_SHAPES = (
    re.compile(r"^01[0-9]{9}$"),
    re.compile(r"^\+88[0-9]{11}$"),
    re.compile(r"^88[0-9]{11}$"),
)
_COUNTRY_CODE = "88"


class InvalidIdentifierError(ValueError):
    """Raised when a raw sender identifier matches none of the accepted shapes."""

    def __init__(self, raw: object) -> None:
        self.raw = raw
        super().__init__(f"Invalid sender identifier: {raw!r}")


def _strip(raw: object) -> str | None:
    if not isinstance(raw, str):
        return None
    cleaned = _STRIP_RE.sub("", raw)
    return cleaned or None


def is_valid_sender_id(raw: object) -> bool:
    """Return True if ``raw`` has one of the accepted number shapes."""
    cleaned = _strip(raw)
    if cleaned is None:
        return False
    return any(shape.match(cleaned) for shape in _SHAPES)


def normalize_sender_id(raw: object) -> str:
    """Canonicalize a raw sender identifier.

    Raises:
        InvalidIdentifierError: For empty, non-string or unrecognized input.
    """
    cleaned = _strip(raw)
    if cleaned is None or not any(shape.match(cleaned) for shape in _SHAPES):
        raise InvalidIdentifierError(raw)
    if cleaned.startswith("+"):
        return cleaned[1:]
    if cleaned.startswith("0"):
        return _COUNTRY_CODE + cleaned
    return cleaned
