"""
Module: editing.phase_log

Purpose:
    Timing instrumentation for structural operations. Each operation records
    how long its phases (make room, materialize, relationships, slide list,
    content types) took; the durations are returned on the operation result
    and summarised at DEBUG level.

Key Classes:
    - PhaseLog: Collects phase -> seconds for one operation

Key Functions:
    - timed_phase: Context manager for timing a phase

Dependencies:
    - time (std)
    - contextlib (std)

Used By:
    - editing.cascade
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Generator

logger = logging.getLogger(__name__)


@dataclass
class PhaseLog:
    """
    Phase durations of one structural operation.

    Attributes:
        operation: Operation name the phases belong to
        timings: phase -> duration in seconds, in execution order

    Example:
        >>> log = PhaseLog("insert_blank_slide")
        >>> with timed_phase(log, "make_room"):
        ...     rename_slides()
        >>> print(log.summary())
    """
    operation: str
    timings: Dict[str, float] = field(default_factory=dict)

    def log_phase(self, phase: str, duration: float) -> None:
        """Record a phase; repeated phases accumulate."""
        self.timings[phase] = self.timings.get(phase, 0.0) + duration

    @property
    def total(self) -> float:
        return sum(self.timings.values())

    def slowest_phase(self) -> str:
        if not self.timings:
            return ""
        return max(self.timings.items(), key=lambda x: x[1])[0]

    def summary(self) -> str:
        """Single-line human-readable summary."""
        phases = ", ".join(f"{phase}={duration * 1000:.1f}ms" for phase, duration in self.timings.items())
        return f"{self.operation}: {self.total * 1000:.1f}ms ({phases})"


@contextmanager
def timed_phase(log: PhaseLog, phase: str) -> Generator[None, None, None]:
    """
    Context manager for timing a phase.

    The duration is recorded even when the phase raises.
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        log.log_phase(phase, time.perf_counter() - start)
