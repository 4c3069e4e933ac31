"""Domain models for governor simulation runs."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class SimulationRecord:
    """What happened to one synthetic task during a simulation run."""
    index: int
    label: str
    attempts: int = 0
    first_start_offset_ms: Optional[float] = None # Relative to the start of the run
    finished_offset_ms: Optional[float] = None
    outcome: str = "pending" # 'ok' or the error type name
