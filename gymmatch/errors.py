"""Exception hierarchy for the gym matching core."""


class GymMatchError(Exception):
    """Base error for the gym matching core."""


class ValidationError(GymMatchError, ValueError):
    """Raised when a record or review request is malformed or not allowed."""


class NotFoundError(GymMatchError, LookupError):
    """Raised when a referenced gym, match or submission does not exist."""


class ConflictError(GymMatchError):
    """Raised by a conditional write when the key already exists."""


class GeocodingError(GymMatchError):
    """Raised when the geocoding provider cannot be reached or answers with an error."""
