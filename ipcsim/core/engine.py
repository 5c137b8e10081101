import logging
import random
from collections import Counter, defaultdict, deque
from typing import Any, Deque, Dict, List, Optional

from .actors import Actor, ActorState, Item, Phase
from .channels import Channel, Mechanism, create_channel
from .config import SimulationConfig, normalize_period, period_in_ticks
from .diagnostics import Diagnostics
from .events import Event, EventLog, Severity
from .metrics import Metrics

logger = logging.getLogger(__name__)

# phases kept per actor for timelines
HISTORY_LIMIT = 500


class SimulationEngine:
    """
    One self-contained simulation: configuration, the active channel, both
    actors, metrics and the event stream.

    Time only moves through `step()`. A real-time driver (the GUI timer)
    calls it at `config.tick_ms` intervals while `running` is set; tests call
    it directly.
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config: SimulationConfig = config or SimulationConfig()
        self.running: bool = False
        self._init_state()

    def _init_state(self):
        cfg = self.config
        self.channel: Channel = create_channel(cfg.mechanism, cfg.capacity)
        self.actors: Dict[Actor, ActorState] = {
            Actor.A: ActorState(Actor.A, cfg.producer_period_ms),
            Actor.B: ActorState(Actor.B, cfg.consumer_period_ms),
        }
        self.metrics: Metrics = Metrics()
        self.events: EventLog = EventLog(cfg.event_log_size)
        self.halted: bool = False

        self.state_history: Dict[Actor, Deque[Phase]] = {
            actor: deque(maxlen=HISTORY_LIMIT) for actor in Actor
        }
        self.block_counts: Dict[Actor, int] = defaultdict(int)
        self.issue_counts: Counter = Counter()

        self.diagnostics = Diagnostics(self)
        self._rng = random.Random(cfg.seed)
        self._tick_events: List[Event] = []

    @property
    def tick(self) -> int:
        return self.metrics.tick_count

    # ---------- CONTROL ----------

    def start(self):
        if self.running:
            return
        self.running = True
        logger.info("simulation started (%s, tick %d)", self.config.mechanism.name, self.tick)

    def pause(self):
        if not self.running:
            return
        self.running = False
        logger.info("simulation paused at tick %d", self.tick)

    def toggle(self):
        if self.running:
            self.pause()
        else:
            self.start()

    def reset(self):
        self.pause()
        self._init_state()
        logger.info("simulation reset (%s)", self.config.mechanism.name)

    def halt(self):
        self.running = False
        if not self.halted:
            logger.warning("simulation halted at tick %d", self.tick)
        self.halted = True

    def set_mechanism(self, mechanism: Mechanism):
        self.config.mechanism = mechanism
        self.reset()

    def set_periods(self, producer_ms: Any = None, consumer_ms: Any = None):
        if producer_ms is not None:
            self.config.producer_period_ms = normalize_period(producer_ms)
            self.actors[Actor.A].period_ms = self.config.producer_period_ms
        if consumer_ms is not None:
            self.config.consumer_period_ms = normalize_period(consumer_ms)
            self.actors[Actor.B].period_ms = self.config.consumer_period_ms
        logger.debug(
            "periods set: producer=%dms consumer=%dms",
            self.config.producer_period_ms,
            self.config.consumer_period_ms,
        )

    # ---------- HELPERS USED BY CHANNELS ----------

    def next_item(self) -> Item:
        return Item(value=self._rng.randint(1, 9), priority=self._rng.randint(1, 3))

    def emit(self, severity: Severity, message: str, actor: Optional[Actor] = None, **details: Any) -> Event:
        ev = Event(
            tick=self.tick,
            timestamp=self.tick * self.config.tick_ms,
            severity=severity,
            message=message,
            actor=actor,
            details=details,
        )
        self.events.add(ev)
        self._tick_events.append(ev)
        return ev

    def block(self, state: ActorState, phase: Phase, reason: str):
        state.wait(phase, reason)
        self.block_counts[state.actor] += 1

    # ---------- SCHEDULER ----------

    def _acts_on(self, state: ActorState, tick: int) -> bool:
        return tick % period_in_ticks(state.period_ms, self.config.tick_ms) == 0

    def step(self) -> List[Event]:
        """
        Advance one tick: producer first, then consumer, then diagnostics.

        Returns the events emitted during this tick, oldest first.
        """
        self._tick_events = []
        self.metrics.tick_count += 1
        tick = self.tick

        producer = self.actors[Actor.A]
        if self._acts_on(producer, tick):
            self.channel.attempt_produce(producer, self)
        else:
            producer.go_idle()

        consumer = self.actors[Actor.B]
        if self._acts_on(consumer, tick):
            self.channel.attempt_consume(consumer, self)
        else:
            consumer.go_idle()

        self.diagnostics.run()
        self.snapshot_states()

        logger.debug(
            "tick %d: A=%s B=%s",
            tick,
            producer.phase.name,
            consumer.phase.name,
        )
        return list(self._tick_events)

    def run(self, max_steps: int = 1000) -> int:
        """Drive synchronously until halted or `max_steps` ticks have passed."""
        self.start()
        steps = 0
        while steps < max_steps and self.running:
            self.step()
            steps += 1
        self.pause()
        return steps

    # ---------- OBSERVATION ----------

    def snapshot_states(self):
        for actor, state in self.actors.items():
            self.state_history[actor].append(state.phase)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "tick": self.tick,
            "mechanism": self.config.mechanism.name,
            "running": self.running,
            "halted": self.halted,
            "channel": self.channel.snapshot(),
            "actors": {
                actor.value: {
                    "phase": state.phase.name,
                    "period_ms": state.period_ms,
                    "wait_ticks": state.wait_ticks,
                    "wait_reason": state.wait_reason,
                }
                for actor, state in self.actors.items()
            },
            "metrics": self.metrics.to_dict(),
        }


def advance_one_tick(engine: SimulationEngine) -> List[Event]:
    return engine.step()
