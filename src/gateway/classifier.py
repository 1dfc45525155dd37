"""Command classification for inbound chat text.

Precedence: Cancel > Help > DataRequest > SelectionReply > Unrecognized.
An open session never suppresses an explicit cancel, help or data request.
"""

from __future__ import annotations

from src.config import CommandVocabulary
from src.models import Intent


class CommandClassifier:
    """Classifies inbound text using the configured keyword sets."""

    def __init__(self, vocabulary: CommandVocabulary) -> None:
        # Lowercase for case-insensitive matching
        self._cancel = frozenset(k.strip().lower() for k in vocabulary.cancel_keywords)
        self._help = frozenset(k.strip().lower() for k in vocabulary.help_keywords)
        self._data_exact = frozenset(
            k.strip().lower() for k in vocabulary.data_request_exact
        )
        self._data_phrases = tuple(
            p.strip().lower() for p in vocabulary.data_request_phrases if p.strip()
        )

    def classify(self, text: str, has_open_session: bool) -> Intent:
        cleaned = " ".join(text.lower().split())

        if cleaned in self._cancel:
            return Intent.CANCEL
        if cleaned in self._help:
            return Intent.HELP
        if self.is_data_request(cleaned):
            return Intent.DATA_REQUEST
        if has_open_session and cleaned:
            return Intent.SELECTION_REPLY
        return Intent.UNRECOGNIZED

    def is_data_request(self, cleaned: str) -> bool:
        if cleaned in self._data_exact:
            return True
        return any(phrase in cleaned for phrase in self._data_phrases)
