from __future__ import annotations

import datetime
import logging
import threading
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Date,
    DateTime,
    Float as SAFloat,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    func,
    inspect,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from . import config
from .errors import NotFoundError
from .hints import mastery_to_hint_level
from .phrasing import split_into_phrases
from .scheduler import (
    ReviewState,
    calculate_next_review,
    map_score_to_quality,
    update_mastery,
    utc_today,
)
from .scoring import PASS, calculate_score, clamp_score
from .validation import (
    require_duration,
    require_hint_level,
    require_input_text,
    require_phrase_id,
    require_rating,
    require_translation,
    require_verse_range,
    sanitize_name,
)

logger = logging.getLogger(__name__)

MASTERED_LEVEL = 3
STREAK_LOOKBACK_DAYS = 30


class Base(DeclarativeBase):
    pass


DB_PATH: str = config.DB_PATH
engine = create_engine(f"sqlite:///{DB_PATH}")
# Prevent attribute expiration on commit so returned objects remain accessible
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String)
    translation: Mapped[str] = mapped_column(String, default="csb")
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)


class Verse(Base):
    __tablename__ = "verses"
    __table_args__ = (UniqueConstraint("verse_number", "translation"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    verse_number: Mapped[int] = mapped_column(Integer, nullable=False)
    translation: Mapped[str] = mapped_column(String, nullable=False, default="csb")
    verse_text: Mapped[str] = mapped_column(Text, nullable=False)


class Phrase(Base):
    __tablename__ = "phrases"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    verse_id: Mapped[int] = mapped_column(ForeignKey("verses.id"), nullable=False)
    order_in_verse: Mapped[int] = mapped_column(Integer, nullable=False)
    phrase_text: Mapped[str] = mapped_column(Text, nullable=False)


class PhraseProgress(Base):
    """SM-2 review state plus the mastery ratchet for one (user, phrase)."""
    __tablename__ = "phrase_progress"
    __table_args__ = (UniqueConstraint("user_id", "phrase_id"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    phrase_id: Mapped[int] = mapped_column(ForeignKey("phrases.id"), nullable=False)
    ease_factor: Mapped[float] = mapped_column(SAFloat, default=2.5)
    interval_days: Mapped[int] = mapped_column(Integer, default=0)
    due_date: Mapped[Optional[datetime.date]] = mapped_column(Date)
    repetitions: Mapped[int] = mapped_column(Integer, default=0)
    lapses: Mapped[int] = mapped_column(Integer, default=0)
    mastery_level: Mapped[int] = mapped_column(Integer, default=0)

    def review_state(self) -> ReviewState:
        return ReviewState(
            ease_factor=self.ease_factor,
            interval_days=self.interval_days,
            repetitions=self.repetitions,
            lapses=self.lapses,
        )


class PracticeEvent(Base):
    """Append-only log of scoring attempts."""
    __tablename__ = "practice_events"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    phrase_id: Mapped[Optional[int]] = mapped_column(ForeignKey("phrases.id"))
    event_type: Mapped[str] = mapped_column(String, nullable=False)  # review, verse, chapter
    hint_level: Mapped[int] = mapped_column(Integer, default=0)
    input_text: Mapped[str] = mapped_column(Text, nullable=False)
    score: Mapped[float] = mapped_column(SAFloat, nullable=False)
    self_rating: Mapped[Optional[str]] = mapped_column(String)
    duration_ms: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)


def is_db_initialized() -> bool:
    """Check if the database is already initialized by checking if tables exist."""
    inspector = inspect(engine)
    required_tables = {"users", "verses", "phrases", "phrase_progress", "practice_events"}
    return required_tables.issubset(set(inspector.get_table_names()))


def init_db() -> None:
    """Initialize the database by creating all tables."""
    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    return SessionLocal()


# ── Per-key review serialization ──────────────────────────────────────

REVIEW_LOCK_STRIPES = 64

_review_locks: List[threading.Lock] = [threading.Lock() for _ in range(REVIEW_LOCK_STRIPES)]


def _review_lock(user_id: str, phrase_id: int) -> threading.Lock:
    """Return the lock guarding the progress row of (user_id, phrase_id).

    Keys are striped over a fixed pool of locks; a key always maps to the
    same lock.
    """
    return _review_locks[hash((user_id, phrase_id)) % REVIEW_LOCK_STRIPES]


# ── Users ─────────────────────────────────────────────────────────────

def _user_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "translation": user.translation,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def create_user(name: Optional[str] = None, translation: Optional[str] = None) -> str:
    """Create an anonymous user and return its generated id."""
    translation = require_translation(translation or config.DEFAULT_TRANSLATION)
    user = User(id=str(uuid.uuid4()), name=sanitize_name(name), translation=translation)
    session: Session = get_session()
    try:
        session.add(user)
        session.commit()
    finally:
        session.close()
    logger.info("Created user %s (%s)", user.id, translation)
    return user.id


def get_user(user_id: str) -> Optional[Dict[str, Any]]:
    session: Session = get_session()
    try:
        user = session.get(User, user_id)
        return _user_dict(user) if user else None
    finally:
        session.close()


def update_user_translation(user_id: str, translation: str) -> Dict[str, Any]:
    require_translation(translation)
    session: Session = get_session()
    try:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        user.translation = translation
        session.commit()
        return _user_dict(user)
    finally:
        session.close()


def get_user_translation(user_id: str) -> str:
    user = get_user(user_id)
    return user["translation"] if user and user["translation"] else config.DEFAULT_TRANSLATION


# ── Content ───────────────────────────────────────────────────────────

def add_verse(verse_number: int, verse_text: str, translation: str = "csb") -> bool:
    """Add a verse and its phrases. Returns True if new, False if it already exists."""
    require_translation(translation)
    session: Session = get_session()
    try:
        existing = session.query(Verse).filter_by(verse_number=verse_number, translation=translation).first()
        if existing:
            return False

        verse = Verse(verse_number=verse_number, translation=translation, verse_text=verse_text)
        session.add(verse)
        session.flush()

        phrases = split_into_phrases(verse_text)
        for index, text in enumerate(phrases, start=1):
            session.add(Phrase(verse_id=verse.id, order_in_verse=index, phrase_text=text))
        session.commit()
        logger.debug("[%s] Verse %d: %d phrases", translation.upper(), verse_number, len(phrases))
        return True
    finally:
        session.close()


def import_verses_csv(csv_path: str, translation: str = "csb") -> int:
    """Import verses from a CSV with ``verse_number,text`` columns.
    Skips verses already present. Returns the number of newly imported verses."""
    import csv

    imported = 0
    with open(csv_path, "r", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        for row in reader:
            verse_number = int(row["verse_number"])
            text = (row.get("text") or "").strip()
            if not text:
                continue
            if add_verse(verse_number, text, translation):
                imported += 1

    logger.info("Imported %d %s verses from %s", imported, translation.upper(), csv_path)
    return imported


def get_verses(translation: Optional[str] = None) -> List[Dict[str, Any]]:
    session: Session = get_session()
    try:
        query = session.query(Verse)
        if translation:
            query = query.filter(Verse.translation == translation)
        rows = query.order_by(Verse.verse_number, Verse.translation).all()
        return [
            {"id": v.id, "verse_number": v.verse_number, "translation": v.translation, "verse_text": v.verse_text}
            for v in rows
        ]
    finally:
        session.close()


def _phrase_dict(phrase: Phrase, verse: Verse) -> Dict[str, Any]:
    return {
        "id": phrase.id,
        "phrase_text": phrase.phrase_text,
        "order_in_verse": phrase.order_in_verse,
        "verse_number": verse.verse_number,
        "verse_text": verse.verse_text,
    }


def get_phrases(translation: Optional[str] = None, verse_number: Optional[int] = None) -> List[Dict[str, Any]]:
    """Return phrases in canonical (verse, position) order."""
    session: Session = get_session()
    try:
        query = session.query(Phrase, Verse).join(Verse, Phrase.verse_id == Verse.id)
        if translation:
            query = query.filter(Verse.translation == translation)
        if verse_number is not None:
            query = query.filter(Verse.verse_number == verse_number)
        rows = query.order_by(Verse.verse_number, Phrase.order_in_verse).all()
        return [_phrase_dict(p, v) for p, v in rows]
    finally:
        session.close()


def get_phrases_in_range(verse_start: int, verse_end: int, translation: str) -> List[Dict[str, Any]]:
    session: Session = get_session()
    try:
        rows = (
            session.query(Phrase, Verse)
            .join(Verse, Phrase.verse_id == Verse.id)
            .filter(
                Verse.verse_number >= verse_start,
                Verse.verse_number <= verse_end,
                Verse.translation == translation,
            )
            .order_by(Verse.verse_number, Phrase.order_in_verse)
            .all()
        )
        return [_phrase_dict(p, v) for p, v in rows]
    finally:
        session.close()


def get_review_state(user_id: str, phrase_id: int) -> ReviewState:
    """Current review state, or the initial state if the phrase was never reviewed."""
    session: Session = get_session()
    try:
        progress = session.query(PhraseProgress).filter_by(user_id=user_id, phrase_id=phrase_id).first()
        return progress.review_state() if progress else ReviewState.initial()
    finally:
        session.close()


# ── Review and run workflows ──────────────────────────────────────────

def review_phrase(
    user_id: str,
    phrase_id: int,
    input_text: str,
    self_rating: str,
    duration_ms: int = 0,
    today: Optional[datetime.date] = None,
) -> Dict[str, Any]:
    """Score one phrase attempt, advance its SM-2 state and log the event.

    Updates to the same (user, phrase) are serialized so concurrent reviews
    cannot overwrite each other's interval/ease history.
    """
    require_phrase_id(phrase_id)
    require_input_text(input_text)
    require_rating(self_rating)
    require_duration(duration_ms)
    today = today or utc_today()

    with _review_lock(user_id, phrase_id):
        session: Session = get_session()
        try:
            phrase = session.get(Phrase, phrase_id)
            if phrase is None:
                raise NotFoundError(f"Phrase {phrase_id} not found")

            result = calculate_score(input_text, phrase.phrase_text)
            passed = result.score >= PASS

            progress = session.query(PhraseProgress).filter_by(user_id=user_id, phrase_id=phrase_id).first()
            current = progress.review_state() if progress else ReviewState.initial()
            quality = map_score_to_quality(result.score, self_rating)
            next_review = calculate_next_review(current, quality, today=today)
            mastery = update_mastery(progress.mastery_level if progress else 0, result.score, self_rating)

            if progress is None:
                progress = PhraseProgress(user_id=user_id, phrase_id=phrase_id)
                session.add(progress)
            progress.ease_factor = next_review.ease_factor
            progress.interval_days = next_review.interval_days
            progress.repetitions = next_review.repetitions
            progress.lapses = next_review.lapses
            progress.due_date = datetime.date.fromisoformat(next_review.due_date)
            progress.mastery_level = mastery

            session.add(PracticeEvent(
                user_id=user_id,
                phrase_id=phrase_id,
                event_type="review",
                hint_level=mastery_to_hint_level(mastery),
                input_text=input_text,
                score=clamp_score(result.score),
                self_rating=self_rating,
                duration_ms=duration_ms,
            ))
            session.commit()
        finally:
            session.close()

    logger.debug(
        "Review user=%s phrase=%d score=%.3f quality=%d interval=%d mastery=%d",
        user_id, phrase_id, result.score, quality, next_review.interval_days, mastery,
    )
    return {
        "score": result.score,
        "wordResults": [w.to_dict() for w in result.word_results],
        "passed": passed,
        "quality": quality,
        "masteryLevel": mastery,
        "nextReview": next_review.due_date,
    }


def _verse_numbers(session: Session, translation: str) -> List[int]:
    rows = session.query(Verse.verse_number).filter(Verse.translation == translation).all()
    return sorted(r.verse_number for r in rows)


def record_run(
    user_id: str,
    verse_start: int,
    verse_end: int,
    hint_level: int,
    input_text: str,
    duration_ms: int = 0,
) -> Dict[str, Any]:
    """Score a recitation of a verse range against the concatenated phrases.

    Also scores the input against each phrase on its own and reports those
    below PASS as weak phrases.
    """
    require_verse_range(verse_start, verse_end)
    require_hint_level(hint_level)
    require_input_text(input_text)
    require_duration(duration_ms)

    user = get_user(user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    translation = user["translation"] or config.DEFAULT_TRANSLATION

    phrases = get_phrases_in_range(verse_start, verse_end, translation)
    combined_text = " ".join(p["phrase_text"] for p in phrases)
    result = calculate_score(input_text, combined_text)

    weak_phrases = []
    for phrase in phrases:
        phrase_score = calculate_score(input_text, phrase["phrase_text"]).score
        if phrase_score < PASS:
            weak_phrases.append({
                "phraseId": phrase["id"],
                "phraseText": phrase["phrase_text"],
                "score": phrase_score,
            })

    session: Session = get_session()
    try:
        numbers = _verse_numbers(session, translation)
        covers_all = bool(numbers) and verse_start <= numbers[0] and verse_end >= numbers[-1]
        event_type = "chapter" if covers_all else "verse"
        session.add(PracticeEvent(
            user_id=user_id,
            phrase_id=None,
            event_type=event_type,
            hint_level=hint_level,
            input_text=input_text,
            score=clamp_score(result.score),
            self_rating=None,
            duration_ms=duration_ms,
        ))
        session.commit()
    finally:
        session.close()

    logger.debug("Run user=%s verses=%d-%d score=%.3f type=%s", user_id, verse_start, verse_end, result.score, event_type)
    return {
        "score": result.score,
        "wordResults": [w.to_dict() for w in result.word_results],
        "weakPhrases": weak_phrases,
        "eventType": event_type,
    }


# ── Progress ──────────────────────────────────────────────────────────

def compute_streak(practice_days: List[datetime.date], today: datetime.date) -> int:
    """Count consecutive days with practice ending today.

    Only the most recent STREAK_LOOKBACK_DAYS distinct days are considered.
    """
    recent = sorted(set(practice_days), reverse=True)[:STREAK_LOOKBACK_DAYS]
    streak = 0
    for offset, day in enumerate(recent):
        if day != today - datetime.timedelta(days=offset):
            break
        streak += 1
    return streak


def get_progress(user_id: str, today: Optional[datetime.date] = None) -> Dict[str, Any]:
    """Return mastery counts, due reviews, streak and milestones for a user."""
    today = today or utc_today()
    translation = get_user_translation(user_id)
    session: Session = get_session()
    try:
        total_phrases = (
            session.query(func.count(Phrase.id))
            .join(Verse, Phrase.verse_id == Verse.id)
            .filter(Verse.translation == translation)
            .scalar()
        ) or 0

        phrases_mastered = (
            session.query(func.count(PhraseProgress.id))
            .join(Phrase, PhraseProgress.phrase_id == Phrase.id)
            .join(Verse, Phrase.verse_id == Verse.id)
            .filter(
                PhraseProgress.user_id == user_id,
                PhraseProgress.mastery_level >= MASTERED_LEVEL,
                Verse.translation == translation,
            )
            .scalar()
        ) or 0

        reviews_due = (
            session.query(func.count(PhraseProgress.id))
            .join(Phrase, PhraseProgress.phrase_id == Phrase.id)
            .join(Verse, Phrase.verse_id == Verse.id)
            .filter(
                PhraseProgress.user_id == user_id,
                PhraseProgress.due_date <= today,
                Verse.translation == translation,
            )
            .scalar()
        ) or 0

        # Per-verse mastery: a verse counts once every phrase in it is mastered.
        rows = (
            session.query(Verse.verse_number, Phrase.id, PhraseProgress.mastery_level)
            .join(Phrase, Phrase.verse_id == Verse.id)
            .outerjoin(
                PhraseProgress,
                (PhraseProgress.phrase_id == Phrase.id) & (PhraseProgress.user_id == user_id),
            )
            .filter(Verse.translation == translation)
            .order_by(Verse.verse_number)
            .all()
        )
        verse_totals: Dict[int, List[int]] = {}
        for verse_number, _phrase_id, mastery in rows:
            counts = verse_totals.setdefault(verse_number, [0, 0])
            counts[0] += 1
            if mastery is not None and mastery >= MASTERED_LEVEL:
                counts[1] += 1
        verse_done = {n: total == mastered and mastered > 0 for n, (total, mastered) in verse_totals.items()}
        verses_mastered = sum(1 for done in verse_done.values() if done)
        total_verses = len(verse_totals)

        event_times = (
            session.query(PracticeEvent.created_at)
            .filter(PracticeEvent.user_id == user_id)
            .all()
        )
        streak = compute_streak([r.created_at.date() for r in event_times], today)
    finally:
        session.close()

    first_four = list(verse_done.values())[:4]
    milestones = [
        {
            "name": f"{config.PASSAGE_NAME}:1-4 Memorized",
            "complete": len(first_four) == 4 and all(first_four),
        },
        {
            "name": "Half Chapter Recalled",
            "complete": total_verses > 0 and verses_mastered >= (total_verses + 1) // 2,
        },
        {
            "name": "Full Chapter Mastered",
            "complete": total_verses > 0 and verses_mastered >= total_verses,
        },
    ]

    return {
        "totalPhrases": total_phrases,
        "phrasesMastered": phrases_mastered,
        "totalVerses": total_verses,
        "versesMastered": verses_mastered,
        "reviewsDueToday": reviews_due,
        "streak": streak,
        "milestones": milestones,
        "translation": translation,
    }
