import math
import re
from dataclasses import dataclass, fields
from typing import Any, Optional

from .channels import Mechanism

MIN_PERIOD_MS = 100
DEFAULT_TICK_MS = 100
DEFAULT_CAPACITY = 10

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _as_int(value: Any) -> Optional[int]:
    """Read an int out of user input, or None when there is none to read."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else None
    return None


def normalize_period(value: Any) -> int:
    """
    Turn user input into a valid actor period in milliseconds.

    Numbers are truncated to int, strings are read up to the first non-digit
    ("250ms" -> 250). Anything non-numeric, non-finite or below
    MIN_PERIOD_MS becomes MIN_PERIOD_MS.
    """
    period = _as_int(value)
    if period is None:
        return MIN_PERIOD_MS
    return max(MIN_PERIOD_MS, period)


def period_in_ticks(period_ms: int, tick_ms: int = DEFAULT_TICK_MS) -> int:
    # round half up in integer arithmetic, never below one tick
    return max(1, (2 * period_ms + tick_ms) // (2 * tick_ms))


@dataclass
class SimulationConfig:
    mechanism: Mechanism = Mechanism.PIPE
    producer_period_ms: int = 500
    consumer_period_ms: int = 800
    capacity: int = DEFAULT_CAPACITY
    tick_ms: int = DEFAULT_TICK_MS
    metrics_every: int = 10
    race_every: int = 100
    event_log_size: int = 50
    seed: Optional[int] = None

    def __post_init__(self):
        defaults = {f.name: f.default for f in fields(self)}
        self.producer_period_ms = normalize_period(self.producer_period_ms)
        self.consumer_period_ms = normalize_period(self.consumer_period_ms)
        for name in ("capacity", "tick_ms", "metrics_every", "race_every", "event_log_size"):
            value = _as_int(getattr(self, name))
            setattr(self, name, defaults[name] if value is None else max(1, value))
        self.seed = _as_int(self.seed)

    @property
    def producer_every(self) -> int:
        return period_in_ticks(self.producer_period_ms, self.tick_ms)

    @property
    def consumer_every(self) -> int:
        return period_in_ticks(self.consumer_period_ms, self.tick_ms)
