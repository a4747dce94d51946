"""Tests for the text normalizer."""

import pytest

from autocomplaint.pipeline.errors import InputError
from autocomplaint.pipeline.normalizer import normalize, truncate

SAMPLES = [
    "",
    "   ",
    "Order   Number:\n\n ORD-123456\t Total: $49.99",
    "Wait...   what?? ( ) [ ] {} done -- ok",
    "a b c d e f 1 2 3 $ 4",
    "Hello , world ;; x y z !!",
    "\x00\x01Ctrl\x7fchars\r\nhere",
    "Price : ₹ 1,299 . Delivered on 12 March 2024 ... by Acme Corp",
    "a" + "([{" * 3 + "}])" * 3 + "b",
    "Order " + "(" * 9 + ")" * 9 + " ORD-12345",
    "Zero\u200bwidth\ufeff text\x85here\x9bnow",
]


class TestNormalize:
    def test_collapses_whitespace_and_control_characters(self):
        assert normalize("  Hello\n\n\tworld  ") == "Hello world"
        assert normalize("Ctrl\x00\x1fchars") == "Ctrl chars"

    def test_strips_empty_brackets(self):
        assert normalize("Price ( ) [] { } $5") == "Price $5"

    def test_collapses_repeated_punctuation(self):
        assert normalize("Wait... what??") == "Wait. what?"
        assert normalize("a--b") == "a-b"

    def test_removes_isolated_letters_only(self):
        assert normalize("Order x 5 items") == "Order 5 items"
        assert normalize("Qty 1 2 $ 5") == "Qty 1 2 $ 5"

    def test_attaches_punctuation(self):
        assert normalize("Hello , world") == "Hello, world"

    def test_empty_input(self):
        assert normalize("") == ""
        assert normalize(" \n\t ") == ""

    def test_truncates_on_token_boundary(self):
        assert normalize("alpha beta gamma", max_length=12) == "alpha beta"
        assert normalize("abcdefghij", max_length=4) == "abcd"

    def test_short_text_untouched_by_truncation(self):
        assert normalize("alpha beta", max_length=100) == "alpha beta"

    @pytest.mark.parametrize("sample", SAMPLES)
    def test_idempotent(self, sample):
        once = normalize(sample)
        assert normalize(once) == once

    @pytest.mark.parametrize("sample", SAMPLES)
    def test_idempotent_with_truncation(self, sample):
        once = normalize(sample, max_length=20)
        assert normalize(once, max_length=20) == once

    def test_rejects_non_string(self):
        with pytest.raises(InputError):
            normalize(None)
        with pytest.raises(TypeError):
            normalize(b"bytes")


class TestTruncate:
    def test_exact_length_kept(self):
        assert truncate("abcd efgh", 9) == "abcd efgh"

    def test_cut_at_last_space(self):
        assert truncate("abcd efgh ijkl", 11) == "abcd efgh"


class TestNestedAndInvisible:
    def test_deeply_nested_brackets_fully_removed(self):
        assert normalize("a" + "([{" * 3 + "}])" * 3 + "b") == "ab"
        assert normalize("Order " + "(" * 9 + ")" * 9 + " ORD-12345") == "Order ORD-12345"

    def test_zero_width_characters_removed(self):
        assert normalize("ORD\u200b-123456\ufeff") == "ORD-123456"
        assert normalize("Sold\u200dby Acme") == "Soldby Acme"

    def test_c1_controls_become_spaces(self):
        assert normalize("Total\x9b$49.99\x85paid") == "Total $49.99 paid"

    def test_mid_token_cut_does_not_leave_stray_letter(self):
        once = normalize("ab cd", max_length=1)
        assert once == ""
        assert normalize(once, max_length=1) == once

    def test_mid_token_cut_keeps_longer_prefix(self):
        assert normalize("abcdef ghi", max_length=3) == "abc"
