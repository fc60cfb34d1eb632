import json
import random
from typing import Optional

import click

from . import config, db
from .errors import VerseRecallError
from .hints import describe_hint_level, generate_hint
from .scoring import calculate_score
from .session import generate_daily_session
from .validation import VALID_TRANSLATIONS


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug: bool) -> None:
    """Memorize a passage with scored recall and spaced repetition."""
    config.configure_logging(debug or config.DEBUG_MODE)


@cli.command("init-db")
def init_db() -> None:
    """Initialize the verse recall database."""
    db.init_db()
    click.echo("Database initialized.")


@cli.command("import-verses")
@click.argument("csv_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--translation", type=click.Choice(VALID_TRANSLATIONS), default="csb", help="Translation code")
def import_verses(csv_path: str, translation: str) -> None:
    """Import verses (columns: verse_number,text) and split them into phrases."""
    db.init_db()
    count = db.import_verses_csv(csv_path, translation)
    if count == 0:
        click.echo("All verses already imported (0 new).")
    else:
        click.echo(f"Imported {count} verses.")


@cli.command("score")
@click.argument("input_text")
@click.argument("expected")
def score(input_text: str, expected: str) -> None:
    """Score INPUT_TEXT against EXPECTED and print word diagnostics."""
    result = calculate_score(input_text, expected)
    click.echo(f"Score: {result.score:.3f} ({result.category})")
    for word in result.word_results:
        click.echo(f"  {word.status:<8} {word.word}")


@cli.command("hint")
@click.argument("text")
@click.option("--level", type=click.IntRange(0, 3), default=1, help="0 full text .. 3 hidden")
def hint(text: str, level: int) -> None:
    """Show TEXT obfuscated at the given hint level."""
    click.echo(f"[{describe_hint_level(level)}] {generate_hint(text, level)}")


@cli.command("session")
@click.argument("user_id")
@click.option("--translation", type=click.Choice(VALID_TRANSLATIONS), default=None, help="Defaults to the user's translation")
@click.option("--seed", type=int, default=None, help="Seed for the warm-up sample")
def session(user_id: str, translation: Optional[str], seed: Optional[int]) -> None:
    """Print today's practice session for USER_ID as JSON."""
    translation = translation or db.get_user_translation(user_id)
    rng = random.Random(seed) if seed is not None else None
    daily = generate_daily_session(user_id, translation, rng=rng)
    click.echo(json.dumps(daily.to_dict(), indent=2))


@cli.command("progress")
@click.argument("user_id")
def progress(user_id: str) -> None:
    """Print progress statistics for USER_ID."""
    try:
        stats = db.get_progress(user_id)
    except VerseRecallError as e:
        raise click.ClickException(str(e))
    click.echo(f"Phrases mastered: {stats['phrasesMastered']}/{stats['totalPhrases']}")
    click.echo(f"Verses mastered: {stats['versesMastered']}/{stats['totalVerses']}")
    click.echo(f"Reviews due today: {stats['reviewsDueToday']}")
    click.echo(f"Streak: {stats['streak']} day(s)")
    for milestone in stats["milestones"]:
        mark = "x" if milestone["complete"] else " "
        click.echo(f"  [{mark}] {milestone['name']}")


if __name__ == "__main__":
    cli()
