"""Call governor for a rate-limited remote API.

Accepts asynchronous operations from any number of callers and runs them
one at a time, in submission order. Consecutive attempt start times are
spaced by a minimum interval, and an operation that reports being rate
limited (``RateLimitedError``) is retried a bounded number of times after
the server-suggested delay.

The governor is a transparent pass-through for final outcomes: callers get
the operation's own value, or the very exception object it raised last.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Optional

from playgov.domain.events.api_events import (
    DomainEvent, TaskQueued, TaskDeferred, TaskStarted,
    RetryScheduled, TaskSucceeded, TaskFailed,
)
from playgov.domain.models.common import EventSink, Operation, T
from playgov.domain.models.errors import RateLimitedError

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_MS = 100
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_AFTER_S = 1.0


@dataclass
class _QueuedTask:
    """A submitted operation plus the future its caller is awaiting."""
    operation: Operation
    label: str
    future: asyncio.Future


def _describe(operation: Operation) -> str:
    return getattr(operation, "__qualname__", None) or type(operation).__name__


class CallGovernor:
    """Serializes, spaces out and retries calls against a rate-limited API.

    Task lifecycle: Queued -> Running -> Succeeded | Failed, with
    Running -> RetryWaiting -> Running at most ``max_retries`` times, and
    only when the attempt raised ``RateLimitedError``.
    """

    def __init__(
        self,
        min_interval_ms: float = DEFAULT_MIN_INTERVAL_MS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        default_retry_after_s: float = DEFAULT_RETRY_AFTER_S,
        call_timeout_s: Optional[float] = None,
        event_sink: Optional[EventSink] = None,
    ):
        """Initializes the governor.

        Args:
            min_interval_ms: Minimum gap between the start times of two
                consecutive attempts, retries included.
            max_retries: Retries allowed per task, counted only against
                rate-limited attempts.
            default_retry_after_s: Backoff used when a rate-limited error
                carries no suggested delay.
            call_timeout_s: Optional bound on a single attempt. A timeout is
                an ordinary failure and is not retried.
            event_sink: Optional callable receiving domain events.
        """
        if min_interval_ms < 0:
            raise ValueError("min_interval_ms must not be negative.")
        if max_retries < 0:
            raise ValueError("max_retries must not be negative.")
        if default_retry_after_s < 0:
            raise ValueError("default_retry_after_s must not be negative.")
        if call_timeout_s is not None and call_timeout_s <= 0:
            raise ValueError("call_timeout_s must be positive when set.")

        self._min_interval_ms = min_interval_ms
        self._max_retries = max_retries
        self._default_retry_after_s = default_retry_after_s
        self._call_timeout_s = call_timeout_s
        self._event_sink = event_sink

        self._queue: Deque[_QueuedTask] = deque()
        self._processing = False
        self._last_request: Optional[float] = None # monotonic start of the latest attempt
        self._drain_task: Optional[asyncio.Task] = None

        logger.info(
            f"CallGovernor initialized: min_interval={min_interval_ms}ms, "
            f"max_retries={max_retries}, default_retry_after={default_retry_after_s}s, "
            f"call_timeout={call_timeout_s if call_timeout_s is not None else 'None'}"
        )

    # --- Introspection ---

    @property
    def min_interval_ms(self) -> float:
        return self._min_interval_ms

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def default_retry_after_s(self) -> float:
        return self._default_retry_after_s

    @property
    def call_timeout_s(self) -> Optional[float]:
        return self._call_timeout_s

    @property
    def pending(self) -> int:
        """Number of tasks queued and not yet started."""
        return len(self._queue)

    @property
    def is_processing(self) -> bool:
        """True while a drain loop is consuming the queue."""
        return self._processing

    # --- Public API ---

    async def submit(self, operation: Operation[T], label: Optional[str] = None) -> T:
        """Queues an operation and waits for its final outcome.

        Args:
            operation: Zero-argument callable returning an awaitable.
            label: Name used in logs and events (defaults to the callable's name).

        Returns:
            The value produced by the operation.

        Raises:
            Exception: Whatever the last attempt raised, unchanged.
        """
        loop = asyncio.get_running_loop()
        task = _QueuedTask(operation=operation, label=label or _describe(operation), future=loop.create_future())
        self._queue.append(task)
        self._dispatch(TaskQueued(label=task.label, queue_depth=len(self._queue)))

        if not self._processing:
            # Set before the loop is scheduled so a second submit in the same tick does not start another.
            self._processing = True
            self._drain_task = loop.create_task(self._drain())

        return await task.future

    # --- Internals ---

    async def _drain(self) -> None:
        """Runs queued tasks to completion, one at a time, until the queue is empty."""
        logger.debug("Drain loop started.")
        loop = asyncio.get_running_loop()
        try:
            while self._queue:
                task = self._queue.popleft()
                if task.future.done():
                    # Caller stopped waiting before the task started.
                    logger.debug(f"Skipping '{task.label}': caller is no longer waiting.")
                    continue
                # A child task keeps an operation that raises CancelledError apart
                # from cancellation of the drain loop itself.
                runner = loop.create_task(self._execute_with_retry(task))
                try:
                    await asyncio.wait({runner})
                except asyncio.CancelledError:
                    runner.cancel()
                    if not task.future.done():
                        task.future.cancel()
                    raise
                self._settle(task, runner)
        finally:
            self._processing = False
            self._release_stranded()
            logger.debug("Drain loop finished.")

    @staticmethod
    def _settle(task: _QueuedTask, runner: asyncio.Task) -> None:
        """Hands the runner's outcome to the waiting caller."""
        if runner.cancelled():
            logger.debug(f"'{task.label}' was cancelled while running.")
            if not task.future.done():
                task.future.cancel()
            return
        error = runner.exception()
        if task.future.done():
            return
        if error is not None:
            task.future.set_exception(error)
        else:
            task.future.set_result(runner.result())

    def _release_stranded(self) -> None:
        """Cancels callers still queued when the loop exits early."""
        stranded = [task for task in self._queue if not task.future.done()]
        self._queue.clear()
        if stranded:
            logger.warning(f"Drain loop stopped with {len(stranded)} queued task(s); cancelling them.")
        for task in stranded:
            task.future.cancel()

    async def _execute_with_retry(self, task: _QueuedTask) -> Any:
        retries_remaining = self._max_retries
        attempt = 0

        while True:
            attempt += 1
            await self._wait_for_slot(task.label)

            self._last_request = time.monotonic()
            self._dispatch(TaskStarted(label=task.label, attempt_number=attempt))
            start_time = time.perf_counter()

            try:
                result = await self._invoke(task.operation)
            except RateLimitedError as e:
                if retries_remaining <= 0:
                    self._dispatch(TaskFailed(
                        label=task.label, attempts=attempt,
                        error_type=type(e).__name__, error_message=str(e),
                    ))
                    raise
                retries_remaining -= 1
                delay = e.retry_after_seconds if e.retry_after_seconds is not None else self._default_retry_after_s
                delay = max(0.0, delay)
                logger.warning(
                    f"'{task.label}' rate limited on attempt {attempt}/{self._max_retries + 1}. "
                    f"Retrying in {delay:.2f}s..."
                )
                self._dispatch(RetryScheduled(label=task.label, attempt_number=attempt, delay_seconds=delay))
                await asyncio.sleep(delay)
            except Exception as e:
                self._dispatch(TaskFailed(
                    label=task.label, attempts=attempt,
                    error_type=type(e).__name__, error_message=str(e),
                ))
                raise
            else:
                latency_ms = (time.perf_counter() - start_time) * 1000
                self._dispatch(TaskSucceeded(label=task.label, attempts=attempt, latency_ms=latency_ms))
                return result

    async def _wait_for_slot(self, label: str) -> None:
        """Sleeps until min_interval has passed since the last attempt started."""
        if self._last_request is None:
            return
        wait_time = self._last_request + self._min_interval_ms / 1000 - time.monotonic()
        if wait_time > 0:
            logger.debug(f"'{label}' deferred for {wait_time * 1000:.1f}ms.")
            self._dispatch(TaskDeferred(label=label, wait_time_seconds=wait_time))
            await asyncio.sleep(wait_time)

    async def _invoke(self, operation: Operation) -> Any:
        awaitable = operation()
        if self._call_timeout_s is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self._call_timeout_s)

    def _dispatch(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self._event_sink is None:
            return
        try:
            self._event_sink(event)
        except Exception as e:
            logger.error(f"Event sink failed on {type(event).__name__}: {e}", exc_info=True)
