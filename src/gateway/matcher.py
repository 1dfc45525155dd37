"""Resolve a free-text reply against the option list a sender was shown."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

from src.models import Option

MIN_SUBSTRING_LENGTH = 3

_ORDINAL_RE = re.compile(r"[0-9]+")


def is_ordinal_reply(text: str) -> bool:
    """True for a reply made only of ASCII digits, such as "2"."""
    return _ORDINAL_RE.fullmatch(text.strip()) is not None


class OptionMatcher:
    """Matches replies by ordinal, exact label, alias, then substring.

    The first rule that hits wins. A miss returns None and the caller is
    expected to re-prompt.
    """

    def __init__(self, aliases: Mapping[str, str] | None = None) -> None:
        self._aliases = {
            alias.strip().lower(): fragment.strip().lower()
            for alias, fragment in (aliases or {}).items()
        }

    def match(self, reply: str, options: Sequence[Option]) -> Option | None:
        cleaned = reply.strip().lower()
        if not cleaned or not options:
            return None

        return (
            self._by_ordinal(cleaned, options)
            or self._by_exact_label(cleaned, options)
            or self._by_alias(cleaned, options)
            or self._by_substring(cleaned, options)
        )

    @staticmethod
    def _by_ordinal(cleaned: str, options: Sequence[Option]) -> Option | None:
        if not is_ordinal_reply(cleaned):
            return None
        position = int(cleaned)
        if 1 <= position <= len(options):
            return options[position - 1]
        return None

    @staticmethod
    def _by_exact_label(cleaned: str, options: Sequence[Option]) -> Option | None:
        for option in options:
            if option.display_label.strip().lower() == cleaned:
                return option
        return None

    def _by_alias(self, cleaned: str, options: Sequence[Option]) -> Option | None:
        fragment = self._aliases.get(cleaned)
        if fragment is None:
            return None
        for option in options:
            if fragment in option.display_label.lower():
                return option
        return None

    @staticmethod
    def _by_substring(cleaned: str, options: Sequence[Option]) -> Option | None:
        for option in options:
            label = option.display_label.strip().lower()
            if len(cleaned) >= MIN_SUBSTRING_LENGTH and cleaned in label:
                return option
            if len(label) >= MIN_SUBSTRING_LENGTH and label in cleaned:
                return option
        return None
