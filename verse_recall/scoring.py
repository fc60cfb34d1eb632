from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from .text import tokenize

PASS = 0.92
NEAR_MISS = 0.80

CORRECT = "correct"
CLOSE = "close"
MISSING = "missing"
EXTRA = "extra"

# Minimum token length and positional overlap for a "close" word.
CLOSE_MIN_LENGTH = 3
CLOSE_RATIO = 0.6


@dataclass(frozen=True)
class WordResult:
    word: str
    status: str

    def to_dict(self) -> Dict[str, str]:
        return {"word": self.word, "status": self.status}


@dataclass(frozen=True)
class ScoreResult:
    score: float
    word_results: List[WordResult] = field(default_factory=list)

    @property
    def category(self) -> str:
        return categorize_score(self.score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "wordResults": [w.to_dict() for w in self.word_results],
        }


def edit_distance(a: Sequence[str], b: Sequence[str]) -> int:
    """Levenshtein distance between two token sequences (unit costs)."""
    m, n = len(a), len(b)
    prev = list(range(n + 1))
    for i in range(1, m + 1):
        curr = [i] + [0] * n
        for j in range(1, n + 1):
            if a[i - 1] == b[j - 1]:
                curr[j] = prev[j - 1]
            else:
                curr[j] = 1 + min(prev[j], curr[j - 1], prev[j - 1])
        prev = curr
    return prev[n]


def _is_close(candidate: str, word: str) -> bool:
    if len(candidate) < CLOSE_MIN_LENGTH or len(word) < CLOSE_MIN_LENGTH:
        return False
    a, b = candidate.lower(), word.lower()
    matches = sum(1 for x, y in zip(a, b) if x == y)
    return matches / max(len(a), len(b)) >= CLOSE_RATIO


def calculate_score(input_text: str, expected: str) -> ScoreResult:
    """Score user input against a reference text.

    The numeric score is ``1 - distance / longest`` over normalized tokens.
    The per-word diagnostics are a separate set-based pass: every expected
    word is reported once, in order, as correct/close/missing, followed by
    input words that do not occur in the reference at all (``extra``).
    """
    input_words = tokenize(input_text)
    expected_words = tokenize(expected)

    max_len = max(len(input_words), len(expected_words))
    if max_len == 0:
        return ScoreResult(score=1.0)

    distance = edit_distance(input_words, expected_words)
    score = 1 - distance / max_len

    input_set = set(input_words)
    expected_set = set(expected_words)
    results: List[WordResult] = []

    for word in expected_words:
        if word in input_set:
            results.append(WordResult(word, CORRECT))
        elif any(_is_close(candidate, word) for candidate in input_words):
            results.append(WordResult(word, CLOSE))
        else:
            results.append(WordResult(word, MISSING))

    for word in input_words:
        if word not in expected_set:
            results.append(WordResult(word, EXTRA))

    return ScoreResult(score=score, word_results=results)


def categorize_score(score: float) -> str:
    if score >= PASS:
        return "pass"
    if score >= NEAR_MISS:
        return "near_miss"
    return "fail"


def clamp_score(score: float) -> float:
    """Bound a score to [0, 1] before it is persisted."""
    return max(0.0, min(1.0, score))
