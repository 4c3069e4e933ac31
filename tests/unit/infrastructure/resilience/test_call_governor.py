import asyncio
import time
from typing import List
from unittest.mock import MagicMock

import pytest

from playgov.domain.events.api_events import (
    TaskQueued, TaskDeferred, TaskStarted, RetryScheduled, TaskSucceeded, TaskFailed,
)
from playgov.domain.models.errors import RateLimitedError
from playgov.infrastructure.resilience.call_governor import CallGovernor

# asyncio.sleep may wake marginally early relative to time.monotonic
TOLERANCE_S = 0.005


class FlakyOperation:
    """Async callable that raises the queued errors in order, then returns ``value``."""

    def __init__(self, errors=(), value="ok", starts: List[float] = None):
        self.errors = list(errors)
        self.value = value
        self.calls = 0
        self.starts = starts if starts is not None else []

    async def __call__(self):
        self.calls += 1
        self.starts.append(time.monotonic())
        await asyncio.sleep(0)
        if self.errors:
            raise self.errors.pop(0)
        return self.value


def run(coro):
    return asyncio.run(coro)


# --- Ordering & spacing ---

def test_tasks_start_in_submission_order():
    """Concurrently submitted tasks start in exactly the order they were queued."""
    governor = CallGovernor(min_interval_ms=1)
    started: List[int] = []

    def make(i):
        async def op():
            started.append(i)
            await asyncio.sleep(0.005 if i % 2 else 0)
            return i
        return op

    async def scenario():
        return await asyncio.gather(*(governor.submit(make(i)) for i in range(8)))

    results = run(scenario())
    assert started == list(range(8))
    assert results == list(range(8))


def test_consecutive_starts_respect_min_interval():
    governor = CallGovernor(min_interval_ms=50)
    starts: List[float] = []

    async def scenario():
        ops = [FlakyOperation(starts=starts) for _ in range(5)]
        await asyncio.gather(*(governor.submit(op) for op in ops))

    run(scenario())
    gaps = [b - a for a, b in zip(starts, starts[1:])]
    assert len(gaps) == 4
    assert all(gap >= 0.05 - TOLERANCE_S for gap in gaps), gaps


def test_first_task_is_not_delayed():
    governor = CallGovernor(min_interval_ms=500)

    async def scenario():
        begin = time.monotonic()
        await governor.submit(FlakyOperation())
        return time.monotonic() - begin

    assert run(scenario()) < 0.25


def test_spacing_is_measured_from_start_not_completion():
    """A slow task does not push the next start further than min_interval after its own start."""
    governor = CallGovernor(min_interval_ms=50)
    starts: List[float] = []

    async def slow():
        starts.append(time.monotonic())
        await asyncio.sleep(0.12)

    async def fast():
        starts.append(time.monotonic())

    async def scenario():
        await asyncio.gather(governor.submit(slow), governor.submit(fast))

    run(scenario())
    gap = starts[1] - starts[0]
    # Fast starts as soon as slow completes, with no extra min_interval wait on top.
    assert 0.12 - TOLERANCE_S <= gap < 0.12 + 0.05


# --- Retry policy ---

def test_always_rate_limited_is_attempted_four_times_then_rejects_with_original_error():
    governor = CallGovernor(min_interval_ms=1)
    errors = [RateLimitedError("slow down", retry_after_seconds=0.01) for _ in range(4)]
    last = errors[-1]
    op = FlakyOperation(errors=errors)

    async def scenario():
        with pytest.raises(RateLimitedError) as exc_info:
            await governor.submit(op)
        return exc_info.value

    raised = run(scenario())
    assert op.calls == 4
    assert raised is last


def test_last_rate_limit_error_object_is_surfaced_unchanged():
    governor = CallGovernor(min_interval_ms=1)
    errors = [RateLimitedError(f"attempt {i}", retry_after_seconds=0) for i in range(1, 5)]
    final = errors[-1]
    op = FlakyOperation(errors=errors)

    async def scenario():
        try:
            await governor.submit(op)
        except RateLimitedError as e:
            return e
        return None

    assert run(scenario()) is final


def test_non_rate_limit_error_fails_immediately_without_retry():
    governor = CallGovernor(min_interval_ms=1, default_retry_after_s=1.0)
    boom = KeyError("boom")
    op = FlakyOperation(errors=[boom])

    async def scenario():
        begin = time.monotonic()
        try:
            await governor.submit(op)
        except KeyError as e:
            return e, time.monotonic() - begin
        return None, None

    raised, elapsed = run(scenario())
    assert raised is boom
    assert op.calls == 1
    assert elapsed < 0.5


def test_success_on_second_attempt_waits_for_retry_after():
    governor = CallGovernor(min_interval_ms=1)
    op = FlakyOperation(errors=[RateLimitedError(retry_after_seconds=0.2)], value="second")

    async def scenario():
        begin = time.monotonic()
        result = await governor.submit(op)
        return result, time.monotonic() - begin

    result, elapsed = run(scenario())
    assert result == "second"
    assert op.calls == 2
    assert elapsed >= 0.2 - TOLERANCE_S


def test_missing_retry_after_defaults_to_one_second():
    governor = CallGovernor(min_interval_ms=1)
    op = FlakyOperation(errors=[RateLimitedError()], value=42)

    async def scenario():
        begin = time.monotonic()
        result = await governor.submit(op)
        return result, time.monotonic() - begin

    result, elapsed = run(scenario())
    assert result == 42
    assert elapsed >= 1.0 - TOLERANCE_S


def test_zero_retry_after_is_honored_not_replaced_by_default():
    governor = CallGovernor(min_interval_ms=1, default_retry_after_s=5.0)
    op = FlakyOperation(errors=[RateLimitedError(retry_after_seconds=0)])

    async def scenario():
        begin = time.monotonic()
        await governor.submit(op)
        return time.monotonic() - begin

    assert run(scenario()) < 1.0


def test_retries_also_wait_out_min_interval():
    governor = CallGovernor(min_interval_ms=100)
    starts: List[float] = []
    op = FlakyOperation(errors=[RateLimitedError(retry_after_seconds=0)], starts=starts)

    run(governor.submit(op))
    assert len(starts) == 2
    assert starts[1] - starts[0] >= 0.1 - TOLERANCE_S


def test_retry_budget_is_per_task():
    governor = CallGovernor(min_interval_ms=1)
    first = FlakyOperation(errors=[RateLimitedError(retry_after_seconds=0) for _ in range(3)], value="a")
    second = FlakyOperation(errors=[RateLimitedError(retry_after_seconds=0) for _ in range(3)], value="b")

    async def scenario():
        return await asyncio.gather(governor.submit(first), governor.submit(second))

    assert run(scenario()) == ["a", "b"]
    assert first.calls == 4
    assert second.calls == 4


def test_max_retries_is_configurable():
    governor = CallGovernor(min_interval_ms=1, max_retries=0)
    op = FlakyOperation(errors=[RateLimitedError(retry_after_seconds=0)])

    with pytest.raises(RateLimitedError):
        run(governor.submit(op))
    assert op.calls == 1


def test_synchronous_raise_from_operation_propagates():
    governor = CallGovernor(min_interval_ms=1)
    boom = RuntimeError("not even a coroutine")

    def broken():
        raise boom

    with pytest.raises(RuntimeError) as exc_info:
        run(governor.submit(broken))
    assert exc_info.value is boom


# --- Serialization ---

def test_queued_task_waits_for_retries_of_previous_task():
    governor = CallGovernor(min_interval_ms=1)
    log: List[str] = []

    def make(name, fail_first):
        attempts = {"n": 0}

        async def op():
            attempts["n"] += 1
            log.append(f"{name}{attempts['n']}")
            if fail_first and attempts["n"] == 1:
                raise RateLimitedError(retry_after_seconds=0.05)
            return name
        return op

    async def scenario():
        return await asyncio.gather(
            governor.submit(make("A", True)),
            governor.submit(make("B", False)),
        )

    assert run(scenario()) == ["A", "B"]
    assert log == ["A1", "A2", "B1"]


def test_submissions_during_drain_do_not_start_a_second_loop(mocker):
    governor = CallGovernor(min_interval_ms=1)
    drain_spy = mocker.spy(governor, "_drain")
    state = {"in_flight": 0, "max_in_flight": 0}
    late_results = []

    async def op():
        state["in_flight"] += 1
        state["max_in_flight"] = max(state["max_in_flight"], state["in_flight"])
        await asyncio.sleep(0.01)
        state["in_flight"] -= 1
        return "done"

    async def scenario():
        first = asyncio.ensure_future(governor.submit(op))
        await asyncio.sleep(0)  # let the drain loop start
        assert governor.is_processing
        late = [asyncio.ensure_future(governor.submit(op)) for _ in range(4)]
        late_results.extend(await asyncio.gather(*late))
        return await first

    assert run(scenario()) == "done"
    assert late_results == ["done"] * 4
    assert state["max_in_flight"] == 1
    assert drain_spy.call_count == 1


def test_processing_flag_and_pending_count():
    governor = CallGovernor(min_interval_ms=1)
    observed = {}

    async def op():
        observed.setdefault("processing", governor.is_processing)
        observed.setdefault("pending", governor.pending)
        return None

    async def scenario():
        assert not governor.is_processing
        await asyncio.gather(governor.submit(op), governor.submit(op), governor.submit(op))

    run(scenario())
    assert observed == {"processing": True, "pending": 2}
    assert not governor.is_processing
    assert governor.pending == 0


def test_governor_restarts_after_queue_drains():
    governor = CallGovernor(min_interval_ms=1)

    async def scenario():
        first = await governor.submit(FlakyOperation(value=1))
        assert not governor.is_processing
        second = await governor.submit(FlakyOperation(value=2))
        return first, second

    assert run(scenario()) == (1, 2)


# --- Hardening options ---

def test_cancelled_caller_skips_queued_task():
    governor = CallGovernor(min_interval_ms=1)
    skipped = FlakyOperation(value="never")

    async def blocker():
        await asyncio.sleep(0.05)
        return "blocker"

    async def scenario():
        head = asyncio.ensure_future(governor.submit(blocker))
        queued = asyncio.ensure_future(governor.submit(skipped))
        await asyncio.sleep(0.01)
        queued.cancel()
        tail = await governor.submit(FlakyOperation(value="tail"))
        return await head, tail

    assert run(scenario()) == ("blocker", "tail")
    assert skipped.calls == 0


def test_call_timeout_fails_task_without_retry_and_unblocks_queue():
    governor = CallGovernor(min_interval_ms=1, call_timeout_s=0.05)
    calls = {"n": 0}

    async def hangs():
        calls["n"] += 1
        await asyncio.sleep(10)

    async def scenario():
        results = await asyncio.gather(
            governor.submit(hangs),
            governor.submit(FlakyOperation(value="next")),
            return_exceptions=True,
        )
        return results

    hung, following = run(scenario())
    assert isinstance(hung, asyncio.TimeoutError)
    assert following == "next"
    assert calls["n"] == 1


def test_operation_raising_cancelled_does_not_strand_queue():
    governor = CallGovernor(min_interval_ms=1)
    following = FlakyOperation(value="next")

    async def scenario():
        inner = asyncio.get_running_loop().create_future()
        inner.cancel()

        async def awaits_cancelled_future():
            await inner

        first = asyncio.ensure_future(governor.submit(awaits_cancelled_future))
        second = asyncio.ensure_future(governor.submit(following))
        result = await asyncio.wait_for(second, timeout=1)
        await asyncio.wait({first}, timeout=1)
        return first, result

    first, result = run(scenario())
    assert first.cancelled()
    assert result == "next"
    assert following.calls == 1
    assert governor.pending == 0
    assert not governor.is_processing


def test_cancelling_drain_loop_releases_queued_callers():
    governor = CallGovernor(min_interval_ms=1)
    queued = FlakyOperation(value="never")

    async def scenario():
        started = asyncio.Event()

        async def slow():
            started.set()
            await asyncio.sleep(10)

        head = asyncio.ensure_future(governor.submit(slow))
        tail = asyncio.ensure_future(governor.submit(queued))
        await started.wait()
        governor._drain_task.cancel()
        await asyncio.wait({head, tail}, timeout=1)
        return head, tail

    head, tail = run(scenario())
    assert head.cancelled()
    assert tail.cancelled()
    assert queued.calls == 0
    assert governor.pending == 0
    assert not governor.is_processing


@pytest.mark.parametrize(
    "kwargs",
    [
        {"min_interval_ms": -1},
        {"max_retries": -1},
        {"default_retry_after_s": -0.5},
        {"call_timeout_s": 0},
    ],
)
def test_invalid_configuration_is_rejected(kwargs):
    with pytest.raises(ValueError):
        CallGovernor(**kwargs)


def test_defaults():
    governor = CallGovernor()
    assert governor.min_interval_ms == 100
    assert governor.max_retries == 3
    assert governor.default_retry_after_s == 1.0
    assert governor.call_timeout_s is None


# --- Events ---

def test_event_sink_receives_task_lifecycle():
    sink = MagicMock()
    governor = CallGovernor(min_interval_ms=1, event_sink=sink)
    op = FlakyOperation(errors=[RateLimitedError(retry_after_seconds=0.01)], value="ok")

    run(governor.submit(op, label="GET /me"))

    events = [c.args[0] for c in sink.call_args_list]
    kinds = [type(e) for e in events if not isinstance(e, TaskDeferred)]
    assert kinds == [TaskQueued, TaskStarted, RetryScheduled, TaskStarted, TaskSucceeded]
    assert all(e.label == "GET /me" for e in events)
    retry = next(e for e in events if isinstance(e, RetryScheduled))
    assert retry.attempt_number == 1
    assert retry.delay_seconds == pytest.approx(0.01)
    assert events[-1].attempts == 2


def test_failure_event_reports_attempts():
    sink = MagicMock()
    governor = CallGovernor(min_interval_ms=1, max_retries=1, event_sink=sink)
    op = FlakyOperation(errors=[RateLimitedError(retry_after_seconds=0), RateLimitedError("still", retry_after_seconds=0)])

    with pytest.raises(RateLimitedError):
        run(governor.submit(op, label="x"))

    failed = sink.call_args_list[-1].args[0]
    assert isinstance(failed, TaskFailed)
    assert failed.attempts == 2
    assert failed.error_type == "RateLimitedError"
    assert failed.error_message == "still"


def test_failing_event_sink_does_not_affect_task():
    sink = MagicMock(side_effect=RuntimeError("sink down"))
    governor = CallGovernor(min_interval_ms=1, event_sink=sink)

    assert run(governor.submit(FlakyOperation(value="fine"))) == "fine"
    assert sink.called
