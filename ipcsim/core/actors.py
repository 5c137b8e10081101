from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class Actor(Enum):
    A = "A"
    B = "B"

    @property
    def label(self) -> str:
        return "Producer A" if self is Actor.A else "Consumer B"

    @property
    def tag(self) -> str:
        # prefix used in activity messages
        return "[P-A]" if self is Actor.A else "[C-B]"

    @property
    def other(self) -> "Actor":
        return Actor.B if self is Actor.A else Actor.A


class Phase(Enum):
    IDLE = auto()
    RUNNING = auto()
    BLOCKED = auto()
    WAITING = auto()
    DEADLOCKED = auto()


@dataclass(frozen=True)
class Item:
    value: int
    priority: int = 1


@dataclass
class ActorState:
    actor: Actor
    period_ms: int
    phase: Phase = Phase.IDLE
    wait_ticks: int = 0
    wait_reason: Optional[str] = None

    def is_deadlocked(self) -> bool:
        return self.phase == Phase.DEADLOCKED

    def go_idle(self):
        """Drop to IDLE for a tick the actor sits out. DEADLOCKED is sticky."""
        if self.phase != Phase.DEADLOCKED:
            self.phase = Phase.IDLE
            self.wait_reason = None

    def run(self):
        self.phase = Phase.RUNNING
        self.wait_reason = None

    def wait(self, phase: Phase, reason: str):
        self.phase = phase
        self.wait_reason = reason
        self.wait_ticks += 1
