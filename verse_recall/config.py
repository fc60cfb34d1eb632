"""Runtime configuration read from the environment (and an optional .env file)."""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"
DB_PATH: str = os.environ.get("VERSE_RECALL_DB", "verse_recall.db")
SECRET_KEY: str = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")
DEFAULT_TRANSLATION: str = os.environ.get("VERSE_RECALL_TRANSLATION", "csb")
PASSAGE_NAME: str = os.environ.get("VERSE_RECALL_PASSAGE", "Romans 8")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(debug: bool = DEBUG_MODE) -> None:
    """Set up root logging once for scripts, the CLI and the web app."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
    )
