"""Error classification shared by the governor and the API adapters.

Adapters that talk to a remote API translate a "slow down" response into
``RateLimitedError``. Every other exception is treated by the governor as
an ordinary failure and passed through untouched.
"""

from typing import Optional


class GovernedCallError(Exception):
    """Base class for errors raised by governed operations."""
    pass


class RateLimitedError(GovernedCallError):
    """Raised when the remote resource signals HTTP 429.

    Attributes:
        retry_after_seconds: Server-suggested wait before the next attempt,
            or None when the server did not suggest one.
    """

    status_code = 429

    def __init__(self, message: str = "Rate limited", retry_after_seconds: Optional[float] = None):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds
