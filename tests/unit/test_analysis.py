"""Unit tests for post-run analysis and scenario presets."""

import pytest

from ipcsim.analysis.analysis import AnalysisEngine
from ipcsim.core.actors import Actor, Phase
from ipcsim.core.channels import Mechanism
from ipcsim.core.engine import SimulationEngine
from ipcsim.scenarios.presets import (
    SCENARIOS,
    build_bottleneck_scenario,
    build_deadlock_scenario,
)


class TestAllocationGraph:
    def test_held_resources_before_deadlock(self, deadlock_engine):
        deadlock_engine.step()
        G = AnalysisEngine(deadlock_engine).allocation_graph()

        assert set(G.edges) == {("R1", "A"), ("R2", "B")}
        assert G.nodes["R1"]["kind"] == "resource"
        assert G.nodes["A"]["phase"] == "RUNNING"

    def test_circular_wait_edges(self, deadlock_engine):
        deadlock_engine.run(max_steps=10)
        G = AnalysisEngine(deadlock_engine).allocation_graph()

        assert set(G.edges) == {("R1", "A"), ("A", "R2"), ("R2", "B"), ("B", "R1")}

    def test_waiting_on_mutex(self, make_engine):
        engine = make_engine(Mechanism.SHARED_MEMORY)
        engine.channel.lock_holder = Actor.B
        engine.actors[Actor.A].phase = Phase.WAITING

        G = AnalysisEngine(engine).allocation_graph()

        assert set(G.edges) == {("mutex", "B"), ("A", "mutex")}

    def test_buffer_flow(self, bottleneck_engine):
        G = AnalysisEngine(bottleneck_engine).allocation_graph()
        assert set(G.edges) == {("A", "buffer"), ("buffer", "B")}


class TestDeadlockAnalysis:
    def test_cycle_found(self, deadlock_engine):
        deadlock_engine.run(max_steps=10)
        info = AnalysisEngine(deadlock_engine).detect_deadlock()

        assert info["is_deadlocked"]
        assert info["actors"] == ["A", "B"]
        assert len(info["cycle"]) == 4

    def test_no_cycle_on_pipe(self, bottleneck_engine, run_ticks):
        run_ticks(bottleneck_engine, 30)
        info = AnalysisEngine(bottleneck_engine).detect_deadlock()

        assert not info["is_deadlocked"]
        assert info["cycle"] == []

    def test_risk_high_on_deadlock(self, deadlock_engine):
        deadlock_engine.run(max_steps=10)
        analysis = AnalysisEngine(deadlock_engine)

        score, label = analysis.compute_risk_score()
        assert label == "High"
        assert 0.7 <= score <= 1.0
        assert analysis.risk_summary_text().startswith("High (")
        assert "Deadlock detected involving actors: A, B" in analysis.summarize_issues()


class TestBottleneckAnalysis:
    def test_producer_is_the_bottleneck(self, bottleneck_engine, run_ticks):
        run_ticks(bottleneck_engine, 30)
        analysis = AnalysisEngine(bottleneck_engine)

        bottlenecks = analysis.detect_bottlenecks()
        assert len(bottlenecks) == 1
        assert bottlenecks[0]["actor"] == "A"
        assert bottlenecks[0]["block_count"] == bottleneck_engine.block_counts[Actor.A]

        features = analysis.compute_features()
        assert features["num_bottleneck_warnings"] == bottleneck_engine.issue_counts["bottleneck"]
        assert not features["is_deadlocked"]

        issues = analysis.summarize_issues()
        assert any(msg.startswith("Producer A stalled") for msg in issues)
        assert any(msg.startswith("Bottleneck persisted") for msg in issues)

    def test_fresh_run_is_low_risk(self, make_engine):
        analysis = AnalysisEngine(make_engine())
        assert analysis.compute_risk_score() == (0.0, "Low")
        assert analysis.detect_bottlenecks() == []
        assert analysis.summarize_issues() == []


class TestPresets:
    @pytest.mark.parametrize("name", list(SCENARIOS))
    def test_every_preset_runs(self, name):
        engine = SimulationEngine(SCENARIOS[name](seed=1))
        engine.run(max_steps=50)
        assert engine.tick > 0

    def test_deadlock_preset(self):
        engine = SimulationEngine(build_deadlock_scenario())
        engine.run(max_steps=100)
        assert engine.channel.deadlocked
        assert engine.tick == 2

    def test_bottleneck_preset(self):
        cfg = build_bottleneck_scenario(seed=3)
        assert cfg.mechanism == Mechanism.PIPE
        assert (cfg.producer_every, cfg.consumer_every) == (1, 10)
        assert cfg.seed == 3
