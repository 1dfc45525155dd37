"""Tests for reply-to-option matching."""

from __future__ import annotations

import pytest

from src.config import CommandVocabulary
from src.gateway.matcher import OptionMatcher, is_ordinal_reply
from tests.conftest import make_option


@pytest.fixture
def options():
    return [make_option("Orders"), make_option("Visits"), make_option("Site Prescriptions")]


@pytest.fixture
def matcher() -> OptionMatcher:
    return OptionMatcher(CommandVocabulary().aliases)


class TestMatchPriority:
    def test_ordinal(self, matcher, options) -> None:
        assert matcher.match("1", options).display_label == "Orders"

    def test_ordinal_with_whitespace(self, matcher, options) -> None:
        assert matcher.match("  3 ", options).display_label == "Site Prescriptions"

    def test_exact_name_case_insensitive(self, matcher, options) -> None:
        assert matcher.match("visits", options).display_label == "Visits"

    def test_substring(self, matcher, options) -> None:
        assert matcher.match("prescriptions", options).display_label == "Site Prescriptions"

    def test_site_selects_site_prescriptions(self, matcher, options) -> None:
        assert matcher.match("site", options).display_label == "Site Prescriptions"

    def test_alias(self, matcher, options) -> None:
        assert matcher.match("order", options).display_label == "Orders"

    def test_no_match(self, matcher, options) -> None:
        assert matcher.match("xyz", options) is None


class TestOrdinalBounds:
    @pytest.mark.parametrize("reply", ["0", "4", "99", "-1"])
    def test_out_of_range_does_not_select(self, matcher, options, reply: str) -> None:
        assert matcher.match(reply, options) is None

    @pytest.mark.parametrize("reply", ["²", "٢", "２"])
    def test_non_ascii_digits_do_not_select(self, matcher, options, reply: str) -> None:
        assert matcher.match(reply, options) is None

    def test_ordinal_beats_label_containing_digit(self, matcher) -> None:
        options = [make_option("Zone 2 Orders"), make_option("Visits")]
        assert matcher.match("2", options).display_label == "Visits"


class TestAliasAndSubstring:
    def test_alias_used_only_when_fragment_present(self) -> None:
        matcher = OptionMatcher({"ord": "orders"})
        options = [make_option("Visits")]
        assert matcher.match("ord", options) is None

    def test_alias_preferred_over_substring(self) -> None:
        matcher = OptionMatcher({"visit": "visits"})
        options = [make_option("Visit Plans Archive"), make_option("Visits")]
        assert matcher.match("visit", options).display_label == "Visits"

    def test_short_reply_not_substring_matched(self) -> None:
        matcher = OptionMatcher()
        assert matcher.match("or", [make_option("Orders")]) is None

    def test_reply_containing_label(self) -> None:
        matcher = OptionMatcher()
        options = [make_option("Orders"), make_option("Visits")]
        assert matcher.match("show me visits please", options).display_label == "Visits"

    def test_short_label_not_matched_inside_reply(self) -> None:
        matcher = OptionMatcher()
        assert matcher.match("ihbx", [make_option("IH")]) is None


class TestEdgeCases:
    def test_empty_reply(self, matcher, options) -> None:
        assert matcher.match("   ", options) is None

    def test_empty_options(self, matcher) -> None:
        assert matcher.match("1", []) is None


@pytest.mark.parametrize("text, expected", [
    ("2", True),
    (" 12 ", True),
    ("²", False),
    ("٢", False),
    ("2a", False),
    ("", False),
])
def test_is_ordinal_reply(text: str, expected: bool) -> None:
    assert is_ordinal_reply(text) is expected
