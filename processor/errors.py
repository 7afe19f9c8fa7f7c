"""Exception types raised by the hackathon scout."""


class HackathonScoutError(Exception):
    """Base class for hackathon scout errors."""
    pass


class RecordValidationError(HackathonScoutError, ValueError):
    """Raised when a record is missing required fields or has unusable dates."""
    pass


class ProviderError(HackathonScoutError, RuntimeError):
    """Raised when the AI provider cannot be reached or returns an error."""
    pass


class ProviderAuthorizationError(ProviderError):
    """Raised when the AI provider rejects the configured credentials."""
    pass
