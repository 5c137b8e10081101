from typing import Any, Dict, List, Tuple

import networkx as nx

from ipcsim.core.actors import Actor, Phase
from ipcsim.core.channels import Pipe, ResourcePair, SharedMemory
from ipcsim.core.engine import SimulationEngine


class AnalysisEngine:
    """
    Analysis layer on top of SimulationEngine:
    - Resource allocation graph and cycle-based deadlock detection
    - Bottleneck detection from per-actor block counts
    - Simple risk scoring (Low / Medium / High) based on features
    """

    def __init__(self, sim: SimulationEngine):
        self.sim = sim

    # ---------- ALLOCATION GRAPH ----------

    def allocation_graph(self) -> nx.DiGraph:
        """
        Directed graph of who holds and who wants what.

        Edges run resource -> holder for held resources and
        actor -> resource for pending requests, so a circular wait shows up
        as a directed cycle.
        """
        G = nx.DiGraph()
        for actor, state in self.sim.actors.items():
            G.add_node(actor.value, kind="actor", label=actor.label, phase=state.phase.name)

        channel = self.sim.channel
        if isinstance(channel, ResourcePair):
            for name, res in channel.resources.items():
                G.add_node(name, kind="resource", label=name)
                if res.held_by:
                    G.add_edge(name, res.held_by.value, relation="held")
                if res.requested_by and res.requested_by != res.held_by:
                    G.add_edge(res.requested_by.value, name, relation="requested")

        elif isinstance(channel, SharedMemory):
            G.add_node("mutex", kind="lock", label=f"mutex ({channel.value})")
            if channel.lock_holder:
                G.add_edge("mutex", channel.lock_holder.value, relation="held")
            for actor, state in self.sim.actors.items():
                if state.phase == Phase.WAITING and actor != channel.lock_holder:
                    G.add_edge(actor.value, "mutex", relation="requested")

        elif isinstance(channel, Pipe):
            G.add_node("buffer", kind="buffer", label=f"{len(channel)}/{channel.capacity}")
            G.add_edge(Actor.A.value, "buffer", relation="writes")
            G.add_edge("buffer", Actor.B.value, relation="reads")

        return G

    # ---------- DEADLOCK ----------

    def detect_deadlock(self) -> Dict[str, Any]:
        G = self.allocation_graph()
        try:
            cycle = nx.find_cycle(G)
        except nx.NetworkXNoCycle:
            cycle = []

        in_cycle = {u for u, _ in cycle} | {v for _, v in cycle}
        actors = sorted(n for n in in_cycle if G.nodes[n].get("kind") == "actor")

        flagged = isinstance(self.sim.channel, ResourcePair) and self.sim.channel.deadlocked
        return {
            "is_deadlocked": flagged or bool(actors),
            "cycle": cycle,
            "actors": actors,
        }

    # ---------- BOTTLENECKS ----------

    def detect_bottlenecks(self) -> List[Dict[str, Any]]:
        """
        Use block_counts as a rough indicator for the actor that stalls most.
        """
        counts = {a: c for a, c in self.sim.block_counts.items() if c > 0}
        if not counts:
            return []

        max_blocks = max(counts.values())
        bottlenecks = []
        for actor, count in counts.items():
            if count >= max_blocks:
                bottlenecks.append(
                    {
                        "actor": actor.value,
                        "label": actor.label,
                        "block_count": count,
                    }
                )
        return bottlenecks

    # ---------- FEATURES + RISK SCORE ----------

    def compute_features(self) -> Dict[str, Any]:
        deadlock_info = self.detect_deadlock()
        issues = self.sim.issue_counts
        blocks = self.sim.block_counts

        return {
            "is_deadlocked": bool(deadlock_info["is_deadlocked"]),
            "num_deadlocked_actors": len(deadlock_info["actors"]),
            "total_block_events": sum(blocks.values()),
            "max_block_on_single_actor": max(blocks.values()) if blocks else 0,
            "num_races": issues["race"],
            "num_bottleneck_warnings": issues["bottleneck"],
            "num_starvation_warnings": issues["starvation"],
            "num_contention_warnings": issues["contention"],
            "ticks": self.sim.tick,
        }

    def compute_risk_score(self) -> Tuple[float, str]:
        """
        Heuristic risk model:
        - Deadlock contributes heavily.
        - Blocking, persistent buffer warnings and races raise risk.
        Returns (score in [0,1], label 'Low'/'Medium'/'High').
        """
        f = self.compute_features()

        score = 0.0

        if f["is_deadlocked"]:
            score += 0.6
            if f["num_deadlocked_actors"] > 1:
                score += 0.1

        if f["total_block_events"] > 0:
            score += min(0.2, f["total_block_events"] / 50.0)
        if f["max_block_on_single_actor"] > 0:
            score += min(0.1, f["max_block_on_single_actor"] / 30.0)

        warnings = (
            f["num_bottleneck_warnings"]
            + f["num_starvation_warnings"]
            + f["num_contention_warnings"]
        )
        if warnings > 0:
            score += min(0.1, warnings / 100.0)

        if f["num_races"] > 0:
            score += min(0.2, f["num_races"] / 10.0)

        score = max(0.0, min(1.0, score))

        if score < 0.3:
            label = "Low"
        elif score < 0.7:
            label = "Medium"
        else:
            label = "High"

        return score, label

    def risk_summary_text(self) -> str:
        score, label = self.compute_risk_score()
        return f"{label} ({score:.2f})"

    # ---------- HUMAN-READABLE ISSUE LIST ----------

    def summarize_issues(self) -> List[str]:
        msgs: List[str] = []

        dl = self.detect_deadlock()
        if dl["is_deadlocked"]:
            if dl["actors"]:
                msgs.append(f"Deadlock detected involving actors: {', '.join(dl['actors'])}")
            else:
                msgs.append("Deadlock detected (circular wait on resources).")

        for b in self.detect_bottlenecks():
            msgs.append(f"{b['label']} stalled {b['block_count']} times.")

        issues = self.sim.issue_counts
        if issues["bottleneck"]:
            msgs.append(f"Bottleneck persisted for {issues['bottleneck']} ticks (consumer too slow).")
        if issues["starvation"]:
            msgs.append(f"Starvation persisted for {issues['starvation']} ticks (producer too slow).")
        if issues["contention"]:
            msgs.append(f"High mutex contention on {issues['contention']} ticks.")
        if issues["race"]:
            msgs.append(f"{issues['race']} unguarded write(s) to shared memory.")

        return msgs
