import re
from typing import List

_LEADING_VERSE_NUMBER = re.compile(r"^\d+\s*")
_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[.,;:!?'\"()\[\]{}—–-]")


def normalize(text: str) -> str:
    """Canonicalize text for comparison.

    Lower-cases, straightens curly quotes, drops a leading verse number,
    collapses whitespace and strips punctuation.
    """
    text = text.lower()
    text = text.replace("‘", "'").replace("’", "'")
    text = text.replace("“", '"').replace("”", '"')
    text = _LEADING_VERSE_NUMBER.sub("", text)
    text = _WHITESPACE.sub(" ", text)
    text = _PUNCTUATION.sub("", text)
    return text.strip()


def tokenize(text: str) -> List[str]:
    return [word for word in normalize(text).split() if word]
