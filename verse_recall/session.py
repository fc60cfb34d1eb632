"""Daily practice session composition: warm-up, due reviews and new phrases."""

import datetime
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import db
from .hints import mastery_to_hint_level, render_hint
from .scheduler import utc_today
from .validation import require_translation

WARMUP_SIZE = 3
NEW_PHRASES_PER_DAY = 5
WARMUP_MIN_MASTERY = 3


@dataclass(frozen=True)
class SessionPhrase:
    id: int
    phrase_text: str
    verse_number: int
    hint_level: int

    @property
    def hint_text(self) -> str:
        return render_hint(self.phrase_text, self.hint_level)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "phraseText": self.phrase_text,
            "verseNumber": self.verse_number,
            "hintLevel": self.hint_level,
            "hintText": self.hint_text,
        }


@dataclass(frozen=True)
class DailySession:
    warmup: List[SessionPhrase] = field(default_factory=list)
    reviews: List[SessionPhrase] = field(default_factory=list)
    new_phrases: List[SessionPhrase] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "warmup": [p.to_dict() for p in self.warmup],
            "reviews": [p.to_dict() for p in self.reviews],
            "newPhrases": [p.to_dict() for p in self.new_phrases],
        }


def _session_phrase(phrase: db.Phrase, verse: db.Verse, mastery_level: int) -> SessionPhrase:
    return SessionPhrase(
        id=phrase.id,
        phrase_text=phrase.phrase_text,
        verse_number=verse.verse_number,
        hint_level=mastery_to_hint_level(mastery_level),
    )


def generate_daily_session(
    user_id: str,
    translation: str = "csb",
    today: Optional[datetime.date] = None,
    rng: Optional[random.Random] = None,
    warmup_size: int = WARMUP_SIZE,
    new_limit: int = NEW_PHRASES_PER_DAY,
) -> DailySession:
    """Build today's queue for a user from their stored review state.

    Read-only. ``rng`` drives the warm-up sample so tests can seed it.
    """
    require_translation(translation)
    today = today or utc_today()
    rng = rng or random.Random()

    session: Session = db.get_session()
    try:
        tracked = (
            session.query(db.Phrase, db.Verse, db.PhraseProgress)
            .join(db.Verse, db.Phrase.verse_id == db.Verse.id)
            .join(db.PhraseProgress, db.PhraseProgress.phrase_id == db.Phrase.id)
            .filter(db.PhraseProgress.user_id == user_id, db.Verse.translation == translation)
            .order_by(db.Verse.verse_number, db.Phrase.order_in_verse)
            .all()
        )

        mastered = [row for row in tracked if row[2].mastery_level >= WARMUP_MIN_MASTERY]
        picked = rng.sample(mastered, min(warmup_size, len(mastered)))
        warmup = [_session_phrase(p, v, pp.mastery_level) for p, v, pp in picked]

        # sorted() is stable, so equal due dates keep (verse, position) order
        due = sorted(
            (row for row in tracked if row[2].due_date is not None and row[2].due_date <= today),
            key=lambda row: row[2].due_date,
        )
        reviews = [_session_phrase(p, v, pp.mastery_level) for p, v, pp in due]

        seen = select(db.PhraseProgress.phrase_id).where(db.PhraseProgress.user_id == user_id)
        fresh = (
            session.query(db.Phrase, db.Verse)
            .join(db.Verse, db.Phrase.verse_id == db.Verse.id)
            .filter(db.Verse.translation == translation, db.Phrase.id.not_in(seen))
            .order_by(db.Verse.verse_number, db.Phrase.order_in_verse)
            .limit(new_limit)
            .all()
        )
        new_phrases = [_session_phrase(p, v, 0) for p, v in fresh]
    finally:
        session.close()

    return DailySession(warmup=warmup, reviews=reviews, new_phrases=new_phrases)
