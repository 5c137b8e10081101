from typing import Callable, Dict, Optional

from ipcsim.core.channels import Mechanism
from ipcsim.core.config import SimulationConfig


def build_bottleneck_scenario(seed: Optional[int] = None) -> SimulationConfig:
    # fast producer, slow consumer: the pipe fills and the producer stalls
    return SimulationConfig(
        mechanism=Mechanism.PIPE,
        producer_period_ms=100,
        consumer_period_ms=1000,
        seed=seed,
    )


def build_starvation_scenario(seed: Optional[int] = None) -> SimulationConfig:
    return SimulationConfig(
        mechanism=Mechanism.PIPE,
        producer_period_ms=1000,
        consumer_period_ms=100,
        seed=seed,
    )


def build_priority_scenario(seed: Optional[int] = None) -> SimulationConfig:
    return SimulationConfig(
        mechanism=Mechanism.PRIORITY_QUEUE,
        producer_period_ms=200,
        consumer_period_ms=600,
        seed=seed,
    )


def build_shared_memory_scenario(seed: Optional[int] = None) -> SimulationConfig:
    return SimulationConfig(
        mechanism=Mechanism.SHARED_MEMORY,
        producer_period_ms=100,
        consumer_period_ms=100,
        seed=seed,
    )


def build_deadlock_scenario(seed: Optional[int] = None) -> SimulationConfig:
    # both actors every tick: each grabs its first resource, then waits forever
    return SimulationConfig(
        mechanism=Mechanism.RESOURCE_PAIR,
        producer_period_ms=100,
        consumer_period_ms=100,
        seed=seed,
    )


SCENARIOS: Dict[str, Callable[..., SimulationConfig]] = {
    "Bottleneck (Pipe)": build_bottleneck_scenario,
    "Starvation (Pipe)": build_starvation_scenario,
    "Priority Queue": build_priority_scenario,
    "Shared Memory (Mutex)": build_shared_memory_scenario,
    "Deadlock (Resources)": build_deadlock_scenario,
}
