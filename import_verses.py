#!/usr/bin/env python3
"""
Import verses from CSV into the database, splitting each verse into phrases.

The CSV needs ``verse_number`` and ``text`` columns.

Usage:
    python import_verses.py data/romans8_csb.csv
    python import_verses.py data/romans8_esv.csv --translation esv
"""

import argparse
import logging
import os
import sys

from verse_recall import config, db
from verse_recall.validation import VALID_TRANSLATIONS

logger = logging.getLogger("import_verses")


def main() -> None:
    parser = argparse.ArgumentParser(description="Import verse CSV into the database")
    parser.add_argument("csv", help="Path to a CSV file with verse_number,text columns")
    parser.add_argument(
        "--translation",
        choices=VALID_TRANSLATIONS,
        default="csb",
        help="Translation code (default: csb)",
    )
    args = parser.parse_args()
    config.configure_logging()

    if not os.path.exists(args.csv):
        logger.error("CSV file not found: %s", args.csv)
        sys.exit(1)

    if not db.is_db_initialized():
        db.init_db()
        logger.info("Database initialized")

    count = db.import_verses_csv(args.csv, args.translation)
    if count == 0:
        logger.info("All verses already imported (0 new)")
    else:
        logger.info("Successfully imported %d verses", count)

    verses = db.get_verses(args.translation)
    phrases = db.get_phrases(args.translation)
    logger.info("%s: %d verses, %d phrases", args.translation.upper(), len(verses), len(phrases))


if __name__ == "__main__":
    main()
