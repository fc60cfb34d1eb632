"""Exceptions raised by the verse_recall core and store."""


class VerseRecallError(Exception):
    """Base class for all verse_recall errors."""


class ValidationError(VerseRecallError, ValueError):
    """Raised when a caller passes a value outside the accepted contract."""


class NotFoundError(VerseRecallError, LookupError):
    """Raised when a referenced user, verse or phrase does not exist."""
