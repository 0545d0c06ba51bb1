"""
Error taxonomy for the request admission layer.

Every error that can reach a client carries its own HTTP status and a
client-safe message. main.py renders them as {"error": <message>}.

StoreUnavailable is the one exception here that must never reach a client:
the rate limiter falls back to its local table and the summary cache
falls through to the real query.
"""


class AdmissionError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(AdmissionError):
    """Unknown application or API key id."""

    status_code = 404
    default_message = "Not found"


class InvalidCredential(AdmissionError):
    """Missing, unmatched, expired, or revoked API key.

    The message is deliberately generic; the reason is only logged.
    """

    status_code = 401
    default_message = "Invalid or expired API key"


class RateLimited(AdmissionError):
    """Request counter for the caller is over the configured threshold."""

    status_code = 429
    default_message = "Rate limit exceeded"


class StoreUnavailable(AdmissionError):
    """A shared store (Redis) could not be reached within the timeout."""

    status_code = 503
    default_message = "Shared store unavailable"
