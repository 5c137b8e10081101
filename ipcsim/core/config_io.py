import json
from typing import Any, Dict

from .channels import Mechanism
from .config import SimulationConfig, normalize_period
from .engine import SimulationEngine


# ---------- SERIALIZATION HELPERS ----------

def _mechanism_from_value(value: Any) -> Mechanism:
    if isinstance(value, Mechanism):
        return value
    return Mechanism.parse(str(value))


# ---------- PUBLIC API ----------

def config_to_dict(cfg: SimulationConfig) -> Dict[str, Any]:
    return {
        "mechanism": cfg.mechanism.name,
        "producer_period_ms": cfg.producer_period_ms,
        "consumer_period_ms": cfg.consumer_period_ms,
        "capacity": cfg.capacity,
        "tick_ms": cfg.tick_ms,
        "metrics_every": cfg.metrics_every,
        "race_every": cfg.race_every,
        "event_log_size": cfg.event_log_size,
        "seed": cfg.seed,
    }


def config_from_dict(d: Dict[str, Any]) -> SimulationConfig:
    defaults = SimulationConfig()
    return SimulationConfig(
        mechanism=_mechanism_from_value(d.get("mechanism", defaults.mechanism.name)),
        producer_period_ms=normalize_period(d.get("producer_period_ms", defaults.producer_period_ms)),
        consumer_period_ms=normalize_period(d.get("consumer_period_ms", defaults.consumer_period_ms)),
        capacity=d.get("capacity", defaults.capacity),
        tick_ms=d.get("tick_ms", defaults.tick_ms),
        metrics_every=d.get("metrics_every", defaults.metrics_every),
        race_every=d.get("race_every", defaults.race_every),
        event_log_size=d.get("event_log_size", defaults.event_log_size),
        seed=d.get("seed"),
    )


def save_config_to_json(filepath: str, cfg: SimulationConfig) -> None:
    data = config_to_dict(cfg)
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def load_config_from_json(filepath: str) -> SimulationConfig:
    with open(filepath, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("Config file must contain a JSON object")
    return config_from_dict(data)


def save_snapshot_to_json(filepath: str, engine: SimulationEngine) -> None:
    data = {
        "config": config_to_dict(engine.config),
        "state": engine.snapshot(),
        "events": [ev.to_dict() for ev in engine.events],
    }
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
