"""
Hint generation.

A hint level is an obfuscation level throughout the package:

  0 – full text shown
  1 – cloze, every second word hidden
  2 – first letters only
  3 – nothing shown

The session composer derives the level from mastery (more mastery, more
hidden) and rendering goes through :func:`generate_hint`, so both sides use
the same scale.
"""

import re
from typing import List

from .validation import require_hint_level

CLOZE_PLACEHOLDER = "___"
HIDDEN_TEXT = "..."

_WHITESPACE_SPLIT = re.compile(r"(\s+)")
_ASCII_LETTER = re.compile(r"[a-zA-Z]")

_DESCRIPTIONS = {
    0: "Full text",
    1: "Cloze (50% hidden)",
    2: "First letters only",
    3: "No hints",
}


def _split_words(text: str) -> List[str]:
    return [token for token in _WHITESPACE_SPLIT.split(text) if token]


def _cloze(text: str) -> str:
    """Hide every second word, keeping the original whitespace.

    Empty fragments from the whitespace split are not words, so leading
    whitespace does not shift the count: ``" a b"`` becomes ``" a ___"``.
    """
    out = []
    word_index = 0
    for token in _split_words(text):
        if token.isspace():
            out.append(token)
            continue
        word_index += 1
        out.append(CLOZE_PLACEHOLDER if word_index % 2 == 0 else token)
    return "".join(out)


def _first_letters(text: str) -> str:
    out = []
    for token in _split_words(text):
        if token.isspace():
            out.append(token)
            continue
        out.append(token[0] + _ASCII_LETTER.sub("_", token[1:]))
    return "".join(out)


def generate_hint(text: str, level: int) -> str:
    require_hint_level(level)
    if level == 0:
        return text
    if level == 1:
        return _cloze(text)
    if level == 2:
        return _first_letters(text)
    return HIDDEN_TEXT


def mastery_to_hint_level(mastery_level: int) -> int:
    if mastery_level >= 5:
        return 3
    if mastery_level >= 3:
        return 2
    if mastery_level >= 1:
        return 1
    return 0


def describe_hint_level(level: int) -> str:
    return _DESCRIPTIONS[require_hint_level(level)]


def render_hint(text: str, hint_level: int) -> str:
    """Text to show a learner for a phrase presented at ``hint_level``."""
    return generate_hint(text, hint_level)
