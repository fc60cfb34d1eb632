"""
Verse Recall

Memorize a passage phrase by phrase with scored free-text recall and
SM-2 spaced repetition.
"""

from . import text
from . import scoring
from . import scheduler
from . import hints
from . import db
from . import session

__version__ = "0.1.0"
__all__ = ["text", "scoring", "scheduler", "hints", "db", "session"]
