from __future__ import annotations

import pytest

from core import Card, CardType
from pipeline.quotes import apply_quote_display_formatting, normalize_quote_content, strip_surrounding_quotes


def test_removes_straight_quotes_and_keeps_attribution() -> None:
    result = normalize_quote_content('"Hello world" — Einstein')

    assert result.removed_quotes is True
    assert result.text == "Hello world — Einstein"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("“Stay hungry, stay foolish.”", "Stay hungry, stay foolish."),
        ("«Bonjour»", "Bonjour"),
        ("「こんにちは」", "こんにちは"),
        ("\"'nested'\"", "nested"),
        ('"Be yourself." (Oscar Wilde)', "Be yourself. (Oscar Wilde)"),
        ('  "padded"  ', "padded"),
    ],
)
def test_strips_quote_layers(raw: str, expected: str) -> None:
    assert strip_surrounding_quotes(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        '"unmatched opener',
        'He said "hi" to me',
        '"first" and "second" words',
        "x",
        "",
    ],
)
def test_leaves_text_without_removable_layer_untouched(raw: str) -> None:
    result = normalize_quote_content(raw)

    assert result.removed_quotes is False
    assert result.text == raw


def test_none_content_is_treated_as_empty() -> None:
    result = normalize_quote_content(None)
    assert result.text == ""
    assert result.removed_quotes is False


def test_normalization_is_idempotent() -> None:
    once = normalize_quote_content('“"Deep" thoughts” – Anon').text
    assert normalize_quote_content(once).text == once


def test_display_formatting_only_touches_quotes() -> None:
    quote = Card(id="card_1", type=CardType.QUOTE, content='"Less is more"')
    text = Card(id="card_2", type=CardType.TEXT, content="plain words")

    assert apply_quote_display_formatting(quote).content == "Less is more"
    assert apply_quote_display_formatting(text) is text
