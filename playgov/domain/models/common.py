"""Defines common Value Objects used across different domain contexts.

These objects represent simple values or concepts like access tokens,
playlist identifiers and governor settings, ensuring consistency and
type safety.
"""

from typing import Any, Awaitable, Callable, NewType, Optional, TypedDict, TypeVar

# === Spotify Context ===

# Using NewType for semantic clarity, although they are strings at runtime.
AccessToken = NewType("AccessToken", str)   # Bearer token supplied by the caller
UserId = NewType("UserId", str)             # Spotify user id
PlaylistId = NewType("PlaylistId", str)     # Spotify playlist id
TrackUri = NewType("TrackUri", str)         # e.g. 'spotify:track:4uLU6hMCjMI75M1A2tKUQC'

# === Governed Execution Context ===

TaskLabel = NewType("TaskLabel", str)       # Human-readable name for a task, e.g. 'GET /me'

T = TypeVar("T")

# A zero-argument callable producing an awaitable; the unit of work the
# governor schedules.
Operation = Callable[[], Awaitable[T]]

# Receives domain events emitted by the governor.
EventSink = Callable[[Any], None]


class GovernorPolicy(TypedDict):
    """Value Object representing call governor configuration."""
    min_interval_ms: float
    max_retries: int
    default_retry_after_s: float
    call_timeout_s: Optional[float]


# --- Spotify payload shapes (subset used by the services) ---

class PagingObject(TypedDict, total=False):
    """A page of results as returned by Spotify list endpoints."""
    items: list
    next: Optional[str]
    total: int
    limit: int
    offset: int
