# FILE: driftpin/errors.py
class MessageError(Exception):
    """Base class for Driftpin message errors."""


class MessageNotFoundError(MessageError):
    pass


class MessageExpiredError(MessageError):
    """Raised when a message exists but its lifetime has run out."""


class InvalidLocationError(MessageError, ValueError):
    """Coordinates are missing, non-finite, or out of range."""


class StoreUnavailableError(MessageError):
    """The backing store could not be reached."""
