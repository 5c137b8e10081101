from typing import TYPE_CHECKING

from .actors import Actor, Phase
from .channels import Pipe, ResourcePair, SharedMemory
from .events import Severity

if TYPE_CHECKING:
    from .engine import SimulationEngine


class Diagnostics:
    """
    Per-tick checks run after both actors have had their turn.

    - Pipe / priority queue: bottleneck (full and producer blocked) and
      starvation (empty and consumer blocked), re-reported every tick the
      condition holds.
    - Shared memory: high contention, plus the periodic unguarded write that
      demonstrates a race.
    - Resource pair: deadlock, which pins both actors and halts the driver.

    Derived metrics are refreshed here every `metrics_every` ticks.
    """

    def __init__(self, engine: "SimulationEngine"):
        self.engine = engine

    def run(self):
        channel = self.engine.channel
        if isinstance(channel, ResourcePair):
            self._check_deadlock(channel)
        elif isinstance(channel, Pipe):
            self._check_buffer(channel)
        elif isinstance(channel, SharedMemory):
            self._check_contention(channel)
            self._inject_race(channel)
        self._refresh_metrics()

    # ---------- CHECKS ----------

    def _check_buffer(self, pipe: Pipe):
        eng = self.engine
        producer = eng.actors[Actor.A]
        consumer = eng.actors[Actor.B]

        if not pipe.can_write() and producer.phase == Phase.BLOCKED:
            eng.issue_counts["bottleneck"] += 1
            eng.emit(
                Severity.WARNING,
                "Bottleneck: Persistent Producer Blocking (Consumer too slow)",
                kind="bottleneck",
            )
        if not pipe.can_read() and consumer.phase == Phase.BLOCKED:
            eng.issue_counts["starvation"] += 1
            eng.emit(
                Severity.WARNING,
                "Starvation: Persistent Consumer Blocking (Producer too slow)",
                kind="starvation",
            )

    def _check_contention(self, shm: SharedMemory):
        eng = self.engine
        both_waiting = all(st.phase == Phase.WAITING for st in eng.actors.values())
        if both_waiting and not shm.is_free():
            eng.issue_counts["contention"] += 1
            eng.emit(
                Severity.WARNING,
                "High Contention: Both processes are constantly waiting for the Mutex.",
                kind="contention",
            )

    def _inject_race(self, shm: SharedMemory):
        eng = self.engine
        tick = eng.tick
        if tick > 0 and tick % eng.config.race_every == 0:
            value = shm.inject_unguarded_write()
            eng.issue_counts["race"] += 1
            eng.emit(
                Severity.ERROR,
                "RACE CONDITION DETECTED! Data modified without lock protection (Simulated).",
                kind="race",
                value=value,
            )

    def _check_deadlock(self, pair: ResourcePair):
        if not pair.deadlocked:
            return
        eng = self.engine
        r1 = pair.holder_of("R1")
        r2 = pair.holder_of("R2")
        eng.issue_counts["deadlock"] += 1
        eng.emit(
            Severity.DEADLOCK,
            "!!! DEADLOCK DETECTED !!! "
            f"P-{_name(r1)} holds R1, waits for R2. "
            f"P-{_name(r2)} holds R2, waits for R1 (Circular Wait).",
            kind="deadlock",
        )
        for state in eng.actors.values():
            state.phase = Phase.DEADLOCKED
        eng.halt()

    # ---------- METRICS ----------

    def _refresh_metrics(self):
        eng = self.engine
        if eng.tick % eng.config.metrics_every != 0:
            return
        eng.metrics.recompute(
            eng.actors[Actor.A].wait_ticks,
            eng.actors[Actor.B].wait_ticks,
            eng.config.tick_ms,
        )


def _name(actor) -> str:
    return actor.value if actor else "?"
