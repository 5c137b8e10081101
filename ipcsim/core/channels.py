from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Deque, Dict, Optional, Tuple

from .actors import Actor, ActorState, Item, Phase
from .events import Severity

if TYPE_CHECKING:
    from .engine import SimulationEngine


class Mechanism(Enum):
    PIPE = "Pipe (FIFO)"
    PRIORITY_QUEUE = "Message Queue (Priority)"
    SHARED_MEMORY = "Shared Memory (Mutex)"
    RESOURCE_PAIR = "Resource Deadlock (Simulated)"

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "Mechanism":
        for mech in cls:
            if text in (mech.name, mech.value):
                return mech
        raise ValueError(f"Unknown mechanism: {text!r}")


class Channel:
    """
    Common produce/consume contract shared by every IPC discipline.

    Each attempt runs on behalf of one actor, inside one tick. It updates the
    actor's phase and wait accounting, the engine's counters, and reports
    what happened through `engine.emit`.
    """

    mechanism: Mechanism

    def attempt_produce(self, state: ActorState, engine: "SimulationEngine"):
        raise NotImplementedError

    def attempt_consume(self, state: ActorState, engine: "SimulationEngine"):
        raise NotImplementedError

    def snapshot(self) -> Dict[str, Any]:
        raise NotImplementedError


# ---------- BUFFERED CHANNELS ----------

@dataclass
class Pipe(Channel):
    capacity: int = 10
    buffer: Deque[Item] = None

    mechanism = Mechanism.PIPE

    def __init__(self, capacity: int = 10):
        self.capacity = capacity
        self.buffer = deque()

    def __len__(self) -> int:
        return len(self.buffer)

    def can_write(self) -> bool:
        return len(self.buffer) < self.capacity

    def can_read(self) -> bool:
        return len(self.buffer) > 0

    def push(self, item: Item):
        if not self.can_write():
            raise RuntimeError("Buffer full")
        self.buffer.append(item)

    def next_index(self) -> int:
        return 0

    def pop(self) -> Item:
        if not self.can_read():
            raise RuntimeError("Buffer empty")
        index = self.next_index()
        item = self.buffer[index]
        del self.buffer[index]
        return item

    def _consume_note(self, item: Item) -> str:
        return "FIFO"

    def attempt_produce(self, state: ActorState, engine: "SimulationEngine"):
        actor = state.actor
        if not self.can_write():
            engine.block(state, Phase.BLOCKED, "buffer full")
            engine.emit(
                Severity.WARNING,
                f"{actor.tag} Buffer Full. Producer Blocked (Bottleneck)",
                actor=actor,
                fill=len(self.buffer),
            )
            return

        item = engine.next_item()
        self.push(item)
        engine.metrics.produced_count += 1
        state.run()
        engine.emit(
            Severity.INFO,
            f"{actor.tag} Produced chunk: {item.value} (Prio: {item.priority}). "
            f"Buffer size: {len(self.buffer)}/{self.capacity}",
            actor=actor,
            value=item.value,
            priority=item.priority,
        )

    def attempt_consume(self, state: ActorState, engine: "SimulationEngine"):
        actor = state.actor
        if not self.can_read():
            engine.block(state, Phase.BLOCKED, "buffer empty")
            engine.emit(
                Severity.WARNING,
                f"{actor.tag} Buffer Empty. Consumer Blocked (Starvation)",
                actor=actor,
                fill=0,
            )
            return

        item = self.pop()
        engine.metrics.consumed_count += 1
        state.run()
        engine.emit(
            Severity.INFO,
            f"{actor.tag} Consumed chunk: {item.value} ({self._consume_note(item)}). "
            f"Buffer size: {len(self.buffer)}/{self.capacity}",
            actor=actor,
            value=item.value,
            priority=item.priority,
        )

    def snapshot(self) -> Dict[str, Any]:
        return {
            "mechanism": self.mechanism.name,
            "capacity": self.capacity,
            "length": len(self.buffer),
            "items": [{"value": it.value, "priority": it.priority} for it in self.buffer],
        }


class PriorityQueue(Pipe):
    """
    Bounded queue that hands out the most urgent item first.

    Items are appended at the tail like a pipe; ordering only happens on
    consume, where the lowest priority number wins and ties go to the item
    that was inserted first.
    """

    mechanism = Mechanism.PRIORITY_QUEUE

    def next_index(self) -> int:
        best = 0
        for index, item in enumerate(self.buffer):
            # strict < keeps the earliest of equal priorities
            if item.priority < self.buffer[best].priority:
                best = index
        return best

    def _consume_note(self, item: Item) -> str:
        return f"PRIO {item.priority}"

    def snapshot(self) -> Dict[str, Any]:
        snap = super().snapshot()
        snap["next_index"] = self.next_index() if self.buffer else None
        return snap


# ---------- SHARED MEMORY ----------

@dataclass
class SharedMemory(Channel):
    value: int = 0
    access_count: int = 0
    lock_holder: Optional[Actor] = None

    mechanism = Mechanism.SHARED_MEMORY

    def __init__(self, initial_value: int = 0):
        self.value = initial_value
        self.access_count = 0
        self.lock_holder = None

    def is_free(self) -> bool:
        return self.lock_holder is None

    def acquire(self, actor: Actor) -> bool:
        if self.is_free():
            self.lock_holder = actor
            return True
        return self.lock_holder == actor

    def release(self, actor: Actor):
        if self.lock_holder != actor:
            raise RuntimeError("Unlock by non-holder")
        self.lock_holder = None

    def _contended(self, state: ActorState, engine: "SimulationEngine") -> bool:
        if self.acquire(state.actor):
            return False
        engine.block(state, Phase.WAITING, f"mutex held by {self.lock_holder.value}")
        return True

    def attempt_produce(self, state: ActorState, engine: "SimulationEngine"):
        actor = state.actor
        if self._contended(state, engine):
            return
        state.run()
        self.value += 1
        self.access_count += 1
        engine.metrics.produced_count += 1
        engine.emit(
            Severity.INFO,
            f"{actor.tag} Wrote {self.value} to Shared Mem. Lock Acquired.",
            actor=actor,
            value=self.value,
        )
        self.release(actor)
        engine.emit(Severity.INFO, f"{actor.tag} Lock Released.", actor=actor)

    def attempt_consume(self, state: ActorState, engine: "SimulationEngine"):
        actor = state.actor
        if self._contended(state, engine):
            return
        state.run()
        read_value = self.value
        engine.emit(
            Severity.INFO,
            f"{actor.tag} Read {read_value} from Shared Mem. Lock Acquired.",
            actor=actor,
            value=read_value,
        )
        self.release(actor)
        engine.metrics.consumed_count += 1
        engine.emit(Severity.INFO, f"{actor.tag} Lock Released.", actor=actor)

    def inject_unguarded_write(self) -> int:
        """Double the value without taking the lock. Used for race demos."""
        self.value *= 2
        self.access_count += 1
        return self.value

    def snapshot(self) -> Dict[str, Any]:
        return {
            "mechanism": self.mechanism.name,
            "value": self.value,
            "access_count": self.access_count,
            "lock_holder": self.lock_holder.value if self.lock_holder else None,
        }


# ---------- RESOURCE PAIR (circular wait) ----------

@dataclass
class Resource:
    name: str
    held_by: Optional[Actor] = None
    requested_by: Optional[Actor] = None


# A takes R1 then R2, B takes R2 then R1
ACQUIRE_ORDER: Dict[Actor, Tuple[str, str]] = {
    Actor.A: ("R1", "R2"),
    Actor.B: ("R2", "R1"),
}


@dataclass
class ResourcePair(Channel):
    resources: Dict[str, Resource] = None
    deadlocked: bool = False

    mechanism = Mechanism.RESOURCE_PAIR

    def __init__(self):
        self.resources = {}
        self.deadlocked = False
        self._free_all()

    def _free_all(self):
        self.resources = {name: Resource(name) for name in ("R1", "R2")}

    def holder_of(self, name: str) -> Optional[Actor]:
        return self.resources[name].held_by

    def attempt(self, state: ActorState, engine: "SimulationEngine"):
        """
        Advance one step of the actor's two-phase acquisition.

        While the actor does not hold its first resource it tries to take it.
        Once it does, it tries the second; success completes the task and
        frees both resources. A blocked request on the second resource while
        the other actor is queued on the first one closes the circular wait.
        """
        actor = state.actor
        if self.deadlocked:
            state.phase = Phase.DEADLOCKED
            return

        first_name, second_name = ACQUIRE_ORDER[actor]
        first = self.resources[first_name]
        second = self.resources[second_name]

        if first.held_by != actor:
            if first.held_by is None:
                first.held_by = actor
                first.requested_by = None
                state.run()
                engine.emit(Severity.INFO, f"{actor.tag} Acquired Resource {first.name}.", actor=actor)
            else:
                first.requested_by = actor
                engine.block(state, Phase.BLOCKED, f"waiting for {first.name}")
                engine.emit(
                    Severity.WARNING,
                    f"{actor.tag} Waiting for {first.name} (held by P-{first.held_by.value}).",
                    actor=actor,
                )
            return

        if second.held_by is None:
            second.held_by = actor
            state.run()
            engine.emit(
                Severity.INFO,
                f"{actor.tag} Acquired Resource {second.name}. Task Complete!",
                actor=actor,
            )
            self._free_all()
            return

        second.requested_by = actor
        engine.block(state, Phase.BLOCKED, f"waiting for {second.name}")
        engine.emit(
            Severity.WARNING,
            f"{actor.tag} Holding {first.name}, waiting for {second.name} (held by P-{second.held_by.value}).",
            actor=actor,
        )
        if first.requested_by == actor.other:
            self.deadlocked = True

    def attempt_produce(self, state: ActorState, engine: "SimulationEngine"):
        self.attempt(state, engine)

    def attempt_consume(self, state: ActorState, engine: "SimulationEngine"):
        self.attempt(state, engine)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "mechanism": self.mechanism.name,
            "resources": {
                name: {
                    "held_by": res.held_by.value if res.held_by else None,
                    "requested_by": res.requested_by.value if res.requested_by else None,
                }
                for name, res in self.resources.items()
            },
            "deadlocked": self.deadlocked,
        }


def create_channel(mechanism: Mechanism, capacity: int = 10) -> Channel:
    if mechanism == Mechanism.PIPE:
        return Pipe(capacity=capacity)
    elif mechanism == Mechanism.PRIORITY_QUEUE:
        return PriorityQueue(capacity=capacity)
    elif mechanism == Mechanism.SHARED_MEMORY:
        return SharedMemory()
    elif mechanism == Mechanism.RESOURCE_PAIR:
        return ResourcePair()
    else:
        raise ValueError(f"Unknown mechanism: {mechanism}")
