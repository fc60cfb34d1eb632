"""Input validation policy shared by the store, the API and the CLI.

The ``is_valid_*`` predicates answer yes/no; the ``require_*`` helpers raise
:class:`~verse_recall.errors.ValidationError` so callers never silently clamp
out-of-range values.
"""

from typing import Any, Optional

from .errors import ValidationError

MAX_INPUT_LENGTH = 5000
MAX_NAME_LENGTH = 100
VALID_TRANSLATIONS = ("csb", "esv")
VALID_RATINGS = ("too_easy", "good", "hard", "fail")
VALID_HINT_LEVELS = (0, 1, 2, 3)
MIN_VERSE = 1
MAX_VERSE = 39
MAX_DURATION_MS = 60 * 60 * 1000  # 1 hour


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_valid_verse_range(start: Any, end: Any) -> bool:
    return (
        _is_int(start)
        and _is_int(end)
        and start >= MIN_VERSE
        and end <= MAX_VERSE
        and start <= end
    )


def is_valid_translation(translation: Any) -> bool:
    return isinstance(translation, str) and translation in VALID_TRANSLATIONS


def is_valid_rating(rating: Any) -> bool:
    return isinstance(rating, str) and rating in VALID_RATINGS


def is_valid_hint_level(level: Any) -> bool:
    return _is_int(level) and level in VALID_HINT_LEVELS


def is_valid_input_text(text: Any) -> bool:
    return isinstance(text, str) and 0 < len(text) <= MAX_INPUT_LENGTH


def is_valid_duration(duration: Any) -> bool:
    return _is_int(duration) and 0 <= duration <= MAX_DURATION_MS


def is_valid_phrase_id(phrase_id: Any) -> bool:
    return _is_int(phrase_id) and phrase_id > 0


def sanitize_name(name: Any) -> Optional[str]:
    """Trim a display name and cut it to MAX_NAME_LENGTH; None if blank."""
    if not isinstance(name, str):
        return None
    trimmed = name.strip()
    if not trimmed:
        return None
    return trimmed[:MAX_NAME_LENGTH]


def require_translation(translation: Any) -> str:
    if not is_valid_translation(translation):
        raise ValidationError(
            f"Invalid translation {translation!r}; expected one of {', '.join(VALID_TRANSLATIONS)}"
        )
    return translation


def require_rating(rating: Any) -> str:
    if not is_valid_rating(rating):
        raise ValidationError(
            f"Invalid self rating {rating!r}; expected one of {', '.join(VALID_RATINGS)}"
        )
    return rating


def require_hint_level(level: Any) -> int:
    if not is_valid_hint_level(level):
        raise ValidationError(f"Invalid hint level {level!r}; expected 0-3")
    return level


def require_input_text(text: Any) -> str:
    if not is_valid_input_text(text):
        raise ValidationError(
            f"Input text must be a non-empty string of at most {MAX_INPUT_LENGTH} characters"
        )
    return text


def require_duration(duration: Any) -> int:
    if not is_valid_duration(duration):
        raise ValidationError(
            f"Duration must be an integer number of milliseconds between 0 and {MAX_DURATION_MS}"
        )
    return duration


def require_verse_range(start: Any, end: Any) -> None:
    if not is_valid_verse_range(start, end):
        raise ValidationError(
            f"Invalid verse range {start!r}-{end!r}; expected {MIN_VERSE} <= start <= end <= {MAX_VERSE}"
        )


def require_phrase_id(phrase_id: Any) -> int:
    if not is_valid_phrase_id(phrase_id):
        raise ValidationError(f"Invalid phrase id {phrase_id!r}")
    return phrase_id
