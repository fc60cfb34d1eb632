import datetime
from typing import Any, Dict, Generator, List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from verse_recall import db

CSB_VERSES = [
    (1, "There is now no condemnation for those in Christ Jesus."),
    (2, "because the law of the Spirit of life in Christ Jesus has set you free from the law of sin and death."),
    (3, "We know that all things work together, for the good of those who love God."),
    (4, "Abba, Father, we cry."),
]

ESV_VERSES = [
    (1, "There is therefore now no condemnation for those who are in Christ Jesus."),
]


@pytest.fixture
def temp_db(tmp_path: Any, monkeypatch: Any) -> Generator[Any, None, None]:
    """Rebind the engine and session factory to a throwaway SQLite file."""
    path = tmp_path / "test_verse_recall.db"
    engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False})
    monkeypatch.setattr(db, "engine", engine)
    monkeypatch.setattr(db, "SessionLocal", sessionmaker(bind=engine, expire_on_commit=False))
    db.Base.metadata.create_all(bind=engine)
    yield db
    engine.dispose()


@pytest.fixture
def seeded_db(temp_db: Any) -> Any:
    """Database holding four CSB verses (7 phrases) and one ESV verse."""
    for number, text in CSB_VERSES:
        temp_db.add_verse(number, text, "csb")
    for number, text in ESV_VERSES:
        temp_db.add_verse(number, text, "esv")
    return temp_db


@pytest.fixture
def user_id(seeded_db: Any) -> str:
    return seeded_db.create_user("Tester", "csb")


@pytest.fixture
def today() -> datetime.date:
    return datetime.date(2024, 3, 15)


def csb_phrases() -> List[Dict[str, Any]]:
    return db.get_phrases("csb")


def set_progress(user: str, phrase_id: int, **fields: Any) -> None:
    """Insert or overwrite a phrase_progress row directly."""
    session = db.get_session()
    row = session.query(db.PhraseProgress).filter_by(user_id=user, phrase_id=phrase_id).first()
    if row is None:
        row = db.PhraseProgress(user_id=user, phrase_id=phrase_id)
        session.add(row)
    for key, value in fields.items():
        setattr(row, key, value)
    session.commit()
    session.close()
