from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, Iterator, List, Optional

from .actors import Actor


class Severity(Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    DEADLOCK = "DEADLOCK"


@dataclass
class Event:
    tick: int
    timestamp: int  # simulated ms
    severity: Severity
    message: str
    actor: Optional[Actor] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tick": self.tick,
            "timestamp": self.timestamp,
            "severity": self.severity.value,
            "message": self.message,
            "actor": self.actor.value if self.actor else None,
            "details": dict(self.details),
        }


class EventLog:
    """
    Bounded event stream, newest first.

    Only the most recent `maxlen` records are kept; older ones fall off the
    end as new ones arrive.
    """

    def __init__(self, maxlen: int = 50):
        self.maxlen = maxlen
        self._records: Deque[Event] = deque(maxlen=maxlen)

    def add(self, event: Event):
        self._records.appendleft(event)

    def clear(self):
        self._records.clear()

    def latest(self) -> Optional[Event]:
        return self._records[0] if self._records else None

    def by_severity(self, severity: Severity) -> List[Event]:
        return [ev for ev in self._records if ev.severity == severity]

    def __iter__(self) -> Iterator[Event]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, index: int) -> Event:
        return self._records[index]
