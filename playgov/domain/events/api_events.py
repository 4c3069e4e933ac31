"""Domain Events related to governed API calls.

Emitted by the call governor when a task is queued, deferred, started,
retried, and when it finally succeeds or fails.
"""

from dataclasses import dataclass, field
import time


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


# --- Governed Task Events ---

@dataclass
class TaskQueued(DomainEvent):
    """Event triggered when a task is appended to the governor queue."""
    label: str
    queue_depth: int # Tasks waiting, including this one
    timestamp: float = field(default_factory=time.time)

@dataclass
class TaskDeferred(DomainEvent):
    """Event triggered when an attempt must wait out the minimum interval."""
    label: str
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class TaskStarted(DomainEvent):
    """Event triggered right before an attempt is invoked."""
    label: str
    attempt_number: int # 1 for the initial attempt
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a rate-limited attempt will be retried."""
    label: str
    attempt_number: int # The attempt that was rate limited
    delay_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class TaskSucceeded(DomainEvent):
    """Event triggered when a task settles with a value."""
    label: str
    attempts: int
    latency_ms: float # Time spent in the final attempt
    timestamp: float = field(default_factory=time.time)

@dataclass
class TaskFailed(DomainEvent):
    """Event triggered when a task settles with an error (after retries)."""
    label: str
    attempts: int
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)
