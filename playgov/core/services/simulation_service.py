"""Simulation Service: drives synthetic tasks through the call governor.

Useful for seeing the governor's ordering, spacing and retry behavior
without touching the real API.
"""

import asyncio
import logging
import time
from typing import List, Optional

from playgov.domain.models.errors import RateLimitedError
from playgov.domain.models.simulation import SimulationRecord
from playgov.infrastructure.resilience.call_governor import CallGovernor

logger = logging.getLogger(__name__)


class _SyntheticOperation:
    """A fake API call that can be told to be rate limited on its first attempt."""

    def __init__(self, record: SimulationRecord, run_started: float, rate_limit_first: bool, retry_after_s: Optional[float]):
        self.record = record
        self.run_started = run_started
        self.rate_limit_first = rate_limit_first
        self.retry_after_s = retry_after_s

    async def __call__(self) -> int:
        self.record.attempts += 1
        if self.record.first_start_offset_ms is None:
            self.record.first_start_offset_ms = (time.monotonic() - self.run_started) * 1000
        await asyncio.sleep(0)
        if self.rate_limit_first and self.record.attempts == 1:
            raise RateLimitedError(f"Synthetic 429 for {self.record.label}", retry_after_seconds=self.retry_after_s)
        return self.record.index


class SimulationService:
    """Runs batches of synthetic tasks through a governor."""

    def __init__(self, governor: CallGovernor):
        self.governor = governor

    async def run(
        self,
        task_count: int,
        rate_limit_every: int = 0,
        retry_after_s: Optional[float] = None,
    ) -> List[SimulationRecord]:
        """Submits ``task_count`` tasks at once and waits for all of them.

        Args:
            task_count: Number of synthetic tasks.
            rate_limit_every: Every n-th task (1-based) is rate limited once; 0 disables.
            retry_after_s: Suggested delay carried by the synthetic 429s
                (None falls back to the governor default).

        Returns:
            One record per task, ordered by index.
        """
        if task_count < 0:
            raise ValueError("task_count must not be negative.")
        if rate_limit_every < 0:
            raise ValueError("rate_limit_every must not be negative.")

        run_started = time.monotonic()
        records = [SimulationRecord(index=i, label=f"task-{i}") for i in range(1, task_count + 1)]

        async def submit_one(record: SimulationRecord) -> None:
            operation = _SyntheticOperation(
                record, run_started,
                rate_limit_first=bool(rate_limit_every) and record.index % rate_limit_every == 0,
                retry_after_s=retry_after_s,
            )
            try:
                await self.governor.submit(operation, label=record.label)
                record.outcome = "ok"
            except RateLimitedError as e:
                record.outcome = type(e).__name__
            finally:
                record.finished_offset_ms = (time.monotonic() - run_started) * 1000

        logger.info(f"Simulating {task_count} tasks (rate_limit_every={rate_limit_every}).")
        await asyncio.gather(*(submit_one(record) for record in records))
        return records
