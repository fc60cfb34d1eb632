"""Split verse text into memorization phrases."""

import re
from typing import List

MIN_PHRASE_WORDS = 3
MAX_PHRASE_WORDS = 12
CHUNK_WORDS = 8

_BREAK = re.compile(r"([,;:—.!?])")


def _words(text: str) -> List[str]:
    return text.split()


def split_into_phrases(verse_text: str) -> List[str]:
    """
    Break a verse at clause punctuation into phrases of roughly 3-12 words.

    Punctuation stays attached to the phrase it ends. Fragments shorter than
    three words are merged forward while the result stays within twelve words;
    runs longer than twelve words are cut into eight-word chunks; a short
    trailing fragment is folded into the previous phrase when it fits.
    """
    phrases: List[str] = []
    current = ""

    for segment in _BREAK.split(verse_text):
        if _BREAK.fullmatch(segment):
            current += segment
            continue

        trimmed = segment.strip()
        if not trimmed:
            continue

        words = _words(trimmed)
        if current:
            current_words = _words(current)
            if len(current_words) + len(words) <= MAX_PHRASE_WORDS and len(current_words) < MIN_PHRASE_WORDS:
                current = current.strip() + " " + trimmed
                continue
            if current.strip():
                phrases.append(current.strip())
            current = trimmed
        else:
            current = trimmed

        phrase_words = _words(current)
        if MIN_PHRASE_WORDS <= len(phrase_words) <= MAX_PHRASE_WORDS:
            continue

        if len(phrase_words) > MAX_PHRASE_WORDS:
            while len(phrase_words) > MAX_PHRASE_WORDS:
                phrases.append(" ".join(phrase_words[:CHUNK_WORDS]))
                phrase_words = phrase_words[CHUNK_WORDS:]
            current = " ".join(phrase_words)

    tail = current.strip()
    if tail:
        tail_words = _words(tail)
        if len(tail_words) < MIN_PHRASE_WORDS and phrases:
            last = phrases.pop()
            if len(_words(last)) + len(tail_words) <= MAX_PHRASE_WORDS:
                phrases.append(last + " " + tail)
            else:
                phrases.append(last)
                phrases.append(tail)
        else:
            phrases.append(tail)

    return [p for p in phrases if p]
