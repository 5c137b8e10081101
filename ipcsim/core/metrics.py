from dataclasses import asdict, dataclass
from typing import Any, Dict


@dataclass
class Metrics:
    produced_count: int = 0
    consumed_count: int = 0
    tick_count: int = 0

    # derived, refreshed by Diagnostics every `metrics_every` ticks
    throughput: float = 0.0
    avg_wait_a: float = 0.0
    avg_wait_b: float = 0.0

    def recompute(self, wait_ticks_a: int, wait_ticks_b: int, tick_ms: int):
        """
        Refresh the derived rates from the running counters.

        Elapsed time is simulated time (ticks * tick_ms), so a run gives the
        same figures however fast the real-time driver happens to go.
        Average wait is milliseconds spent waiting per completed operation.
        """
        elapsed_s = self.tick_count * tick_ms / 1000.0
        total = self.produced_count + self.consumed_count
        self.throughput = round(total / elapsed_s, 2) if elapsed_s > 0 else 0.0

        self.avg_wait_a = (
            round(wait_ticks_a * tick_ms / self.produced_count, 2)
            if self.produced_count > 0 else 0.0
        )
        self.avg_wait_b = (
            round(wait_ticks_b * tick_ms / self.consumed_count, 2)
            if self.consumed_count > 0 else 0.0
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
