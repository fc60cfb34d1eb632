import datetime
import math
from dataclasses import asdict, dataclass
from numbers import Real
from typing import Any, Dict, Optional

from .errors import ValidationError
from .scoring import NEAR_MISS, PASS
from .validation import require_rating

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
LAPSE_EASE_PENALTY = 0.2
MAX_MASTERY = 5

# Score needed before a "too_easy" rating (or no rating) earns quality 5.
EXCELLENT_SCORE = 0.98


@dataclass(frozen=True)
class ReviewState:
    """SM-2 scheduling state for one (user, phrase) pair."""

    ease_factor: float = DEFAULT_EASE_FACTOR
    interval_days: int = 0
    repetitions: int = 0
    lapses: int = 0

    @classmethod
    def initial(cls) -> "ReviewState":
        return cls()


@dataclass(frozen=True)
class ReviewResult:
    ease_factor: float
    interval_days: int
    repetitions: int
    lapses: int
    due_date: str  # ISO calendar date, YYYY-MM-DD

    @property
    def state(self) -> ReviewState:
        return ReviewState(
            ease_factor=self.ease_factor,
            interval_days=self.interval_days,
            repetitions=self.repetitions,
            lapses=self.lapses,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def utc_today() -> datetime.date:
    return datetime.datetime.now(datetime.UTC).date()


def _require_score(score: Any) -> float:
    if isinstance(score, bool) or not isinstance(score, Real) or math.isnan(score):
        raise ValidationError(f"Score must be a real number, got {score!r}")
    return float(score)


def map_score_to_quality(score: float, self_rating: Optional[str]) -> int:
    """
    Map a similarity score and an optional self rating to an SM-2 quality (2-5).

    Rules are checked top to bottom and the first match wins:
      1. rating ``fail`` or score < NEAR_MISS      → 2
      2. rating ``too_easy`` and score >= 0.98     → 5
      3. rating ``good`` and score >= PASS         → 4
      4. rating ``hard`` or NEAR_MISS <= score < PASS → 3
      5. by score alone: >= 0.98 → 5, >= PASS → 4, else 3

    A ``hard`` rating therefore caps quality at 3 even for a perfect score.
    """
    score = _require_score(score)
    if self_rating is not None:
        require_rating(self_rating)

    if self_rating == "fail" or score < NEAR_MISS:
        return 2
    if self_rating == "too_easy" and score >= EXCELLENT_SCORE:
        return 5
    if self_rating == "good" and score >= PASS:
        return 4
    if self_rating == "hard" or NEAR_MISS <= score < PASS:
        return 3
    if score >= EXCELLENT_SCORE:
        return 5
    if score >= PASS:
        return 4
    return 3


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_next_review(
    state: ReviewState,
    quality: int,
    today: Optional[datetime.date] = None,
) -> ReviewResult:
    """
    SM-2 style scheduling step.

    Lapse (quality < 3): interval resets to 1 day, repetitions to 0, lapses
    grows by one and the ease factor drops by 0.2.

    Success: repetitions grows by one and the interval becomes
      n == 1  → 1 day
      n == 2  → 3 days
      n >= 3  → previous interval × current ease factor (rounded)
    after which the ease factor is adjusted by the usual SM-2 formula.

    The ease factor never drops below 1.3. The due date is ``today`` (UTC by
    default) plus the new interval.
    """
    if isinstance(quality, bool) or not isinstance(quality, int) or not 0 <= quality <= 5:
        raise ValidationError(f"Quality must be an integer between 0 and 5, got {quality!r}")

    ease_factor = state.ease_factor
    interval_days = state.interval_days
    repetitions = state.repetitions
    lapses = state.lapses

    if quality < 3:
        interval_days = 1
        repetitions = 0
        lapses += 1
        ease_factor = max(MIN_EASE_FACTOR, ease_factor - LAPSE_EASE_PENALTY)
    else:
        repetitions += 1
        if repetitions == 1:
            interval_days = 1
        elif repetitions == 2:
            interval_days = 3
        else:
            interval_days = _round_half_up(interval_days * ease_factor)
        ease_factor = max(
            MIN_EASE_FACTOR,
            ease_factor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)),
        )

    due = (today or utc_today()) + datetime.timedelta(days=interval_days)

    return ReviewResult(
        ease_factor=ease_factor,
        interval_days=interval_days,
        repetitions=repetitions,
        lapses=lapses,
        due_date=due.isoformat(),
    )


def update_mastery(mastery_level: int, score: float, self_rating: Optional[str]) -> int:
    """Move the 0-5 mastery ratchet one step up on a pass, one step down otherwise.

    Independent of the SM-2 quality: a ``hard`` rating on a passing score
    still counts as a step up.
    """
    if (
        isinstance(mastery_level, bool)
        or not isinstance(mastery_level, int)
        or not 0 <= mastery_level <= MAX_MASTERY
    ):
        raise ValidationError(
            f"Mastery level must be an integer between 0 and {MAX_MASTERY}, got {mastery_level!r}"
        )
    score = _require_score(score)
    if self_rating is not None:
        require_rating(self_rating)

    if score >= PASS and self_rating != "fail":
        return min(MAX_MASTERY, mastery_level + 1)
    return max(0, mastery_level - 1)
